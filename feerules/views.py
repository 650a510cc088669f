import logging

from django.conf import settings
from django.db.models import Sum
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsSystemAdmin, IsSystemAdminOrReadOnly
from feerules.exceptions import FeeRuleError
from feerules.models import FeeRule
from feerules.serializers import (
    FeeRuleSerializer,
    ScheduleFeeRuleSerializer,
    AssignFeeRuleUnitsSerializer,
)
from feerules.services import FeeSchedulingService
from payments.models import Payment

logger = logging.getLogger(__name__)


def validation_failed(errors):
    return Response(
        {"success": False, "message": "Validation failed", "errors": errors},
        status=status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


def server_error(message, exc):
    detail = f"{message}: {str(exc)}" if settings.DEBUG else message
    return Response(
        {"success": False, "message": detail},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class FeeRuleListCreateView(generics.ListCreateAPIView):
    queryset = FeeRule.objects.not_deleted().prefetch_related("unit_assignments__unit")
    serializer_class = FeeRuleSerializer
    permission_classes = [IsSystemAdminOrReadOnly]

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("type"):
            queryset = queryset.filter(type=params["type"])
        if params.get("search"):
            queryset = queryset.filter(name__icontains=params["search"])
        return queryset

    def perform_create(self, serializer):
        fee_rule = serializer.save(created_by=self.request.user)
        logger.info(
            f"Fee rule {fee_rule.reference} created by {self.request.user.member_no} "
            f"with status {fee_rule.status}"
        )


class FeeRuleDetailView(generics.RetrieveUpdateDestroyAPIView):
    queryset = FeeRule.objects.not_deleted().prefetch_related("unit_assignments__unit")
    serializer_class = FeeRuleSerializer
    permission_classes = [IsSystemAdminOrReadOnly]
    lookup_field = "reference"

    def destroy(self, request, *args, **kwargs):
        fee_rule = self.get_object()
        if fee_rule.fee_applications.exists():
            return Response(
                {"detail": "Cannot delete fee rule with existing applications."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        fee_rule.soft_delete()
        logger.info(f"Fee rule {fee_rule.reference} deleted by {request.user.member_no}")
        return Response(status=status.HTTP_204_NO_CONTENT)


class FeeRuleStatsView(APIView):
    permission_classes = [IsSystemAdmin]

    def get(self, request, reference):
        fee_rule = get_object_or_404(FeeRule.objects.not_deleted(), reference=reference)
        applications = fee_rule.fee_applications.all()
        payments = Payment.objects.filter(fee_application__fee_rule=fee_rule)
        stats = {
            "total_applications": applications.count(),
            "pending_applications": applications.pending().count(),
            "overdue_applications": applications.overdue().count(),
            "paid_applications": applications.paid().count(),
            "total_amount_due": applications.open().aggregate(total=Sum("amount"))["total"] or 0,
            "total_amount_paid": applications.paid().aggregate(total=Sum("amount"))["total"] or 0,
            "successful_payments": payments.successful().count(),
            "failed_payments": payments.failed().count(),
        }
        return Response({"success": True, "data": stats}, status=status.HTTP_200_OK)


class RestoreFeeRuleView(APIView):
    permission_classes = [IsSystemAdmin]

    def post(self, request, reference):
        fee_rule = get_object_or_404(FeeRule.objects.filter(is_deleted=True), reference=reference)
        fee_rule.restore()
        logger.info(f"Fee rule {fee_rule.reference} restored by {request.user.member_no}")
        return Response(
            {"success": True, "data": FeeRuleSerializer(fee_rule).data},
            status=status.HTTP_200_OK,
        )


"""
Scheduling actions
- Apply an active rule now
- Schedule a rule for a future date
- Assign a rule to units, with optional per unit amounts
- Activate scheduled rules whose date has come
"""


class FeeSchedulingMixin:
    service_class = FeeSchedulingService

    def get_service(self):
        return self.service_class()

    def get_fee_rule(self, reference):
        return get_object_or_404(FeeRule.objects.not_deleted(), reference=reference)


class ApplyFeeRuleView(FeeSchedulingMixin, APIView):
    permission_classes = [IsSystemAdmin]

    def post(self, request, reference):
        fee_rule = self.get_fee_rule(reference)
        logger.info(
            f"Applying fee rule {fee_rule.reference} requested by {request.user.member_no}"
        )

        service = self.get_service()
        try:
            service.ensure_applicable(fee_rule)
            result = service.apply_fee_rule(fee_rule)
        except FeeRuleError as e:
            return Response(
                {"success": False, "message": e.message}, status=e.status_code
            )
        except Exception as e:
            logger.exception(f"Error applying fee rule {fee_rule.reference}")
            return server_error("Failed to apply fee rule", e)

        if result["applied_count"] > 0:
            message = f"Fee rule applied successfully! {result['applied_count']} applications created."
        else:
            message = "No new applications were created. Users may already have pending applications for this rule."

        return Response(
            {
                "success": True,
                "message": message,
                "applied_count": result["applied_count"],
                "skipped_count": result["skipped_count"],
                "errors": result["errors"],
            },
            status=status.HTTP_200_OK,
        )


class ScheduleFeeRuleView(FeeSchedulingMixin, APIView):
    permission_classes = [IsSystemAdmin]

    def post(self, request, reference):
        fee_rule = self.get_fee_rule(reference)
        serializer = ScheduleFeeRuleSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_failed(serializer.errors)

        effective_date = serializer.validated_data["effective_date"]
        if not self.get_service().schedule_fee_rule(fee_rule, effective_date):
            return Response(
                {"success": False, "message": "Failed to schedule fee rule"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        return Response(
            {
                "success": True,
                "message": "Fee rule scheduled successfully",
                "data": FeeRuleSerializer(fee_rule).data,
            },
            status=status.HTTP_200_OK,
        )


class AssignFeeRuleUnitsView(FeeSchedulingMixin, APIView):
    permission_classes = [IsSystemAdmin]

    def post(self, request, reference):
        fee_rule = self.get_fee_rule(reference)
        serializer = AssignFeeRuleUnitsSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_failed(serializer.errors)

        result = self.get_service().assign_fee_rule_to_units(
            fee_rule,
            serializer.validated_data["unit_ids"],
            serializer.validated_data.get("custom_amounts"),
        )
        return Response(
            {
                "success": True,
                "message": f"Fee rule assigned to {result['assigned_count']} units",
                "assigned_count": result["assigned_count"],
                "errors": result["errors"],
            },
            status=status.HTTP_200_OK,
        )


class ActivateScheduledFeeRulesView(FeeSchedulingMixin, APIView):
    permission_classes = [IsSystemAdmin]

    def post(self, request):
        result = self.get_service().activate_scheduled_rules()
        return Response(
            {
                "success": True,
                "message": f"Activated {result['activated_count']} scheduled fee rules",
                "activated_count": result["activated_count"],
                "errors": result["errors"],
            },
            status=status.HTTP_200_OK,
        )
