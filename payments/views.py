import logging

from django.conf import settings
from rest_framework import generics, status
from rest_framework.exceptions import ParseError
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.exceptions import PaymentError
from payments.models import Payment
from payments.serializers import (
    InitiatePaymentSerializer,
    PaymentStatusSerializer,
    PaymentSerializer,
)
from payments.services import PaymentOrchestrator

logger = logging.getLogger(__name__)


def validation_failed(errors):
    return Response(
        {"success": False, "message": "Validation failed", "errors": errors},
        status=status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


def payment_error(exc):
    return Response(exc.to_response_data(), status=exc.status_code)


def server_error(message, exc):
    detail = f"{message}: {str(exc)}" if settings.DEBUG else message
    return Response(
        {"success": False, "message": detail},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class PaymentOrchestratorMixin:
    orchestrator_class = PaymentOrchestrator

    def get_orchestrator(self):
        return self.orchestrator_class()


class InitiatePaymentView(PaymentOrchestratorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = InitiatePaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_failed(serializer.errors)

        data = serializer.validated_data
        try:
            summary = self.get_orchestrator().initiate_payment(
                request.user,
                phone_number=data["phone_number"],
                amount=data["amount"],
                description=data["description"],
                fee_application_ids=data["fee_application_ids"],
                payment_type=data["payment_type"],
            )
        except PaymentError as e:
            return payment_error(e)
        except Exception as e:
            logger.exception(f"Payment initiation failed for {request.user.member_no}")
            return server_error("Payment initiation failed", e)

        return Response(
            {
                "success": True,
                "message": "Payment initiated successfully",
                "data": summary,
            },
            status=status.HTTP_200_OK,
        )


class PaymentStatusView(PaymentOrchestratorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return self.check_status(request, request.query_params)

    def post(self, request):
        return self.check_status(request, request.data)

    def check_status(self, request, params):
        serializer = PaymentStatusSerializer(data=params)
        if not serializer.is_valid():
            return validation_failed(serializer.errors)

        reference_id = serializer.validated_data["reference_id"]
        try:
            summary = self.get_orchestrator().check_payment_status(
                request.user, reference_id
            )
        except PaymentError as e:
            return payment_error(e)
        except Exception as e:
            logger.exception(f"Payment status check failed for {reference_id}")
            return server_error("Payment status check failed", e)

        return Response({"success": True, "data": summary}, status=status.HTTP_200_OK)


class PaymentHistoryPagination(PageNumberPagination):
    page_size = settings.PAYMENT_HISTORY_PAGE_SIZE

    def get_paginated_response(self, data):
        response = super().get_paginated_response(data)
        response.data["success"] = True
        return response


class PaymentHistoryView(generics.ListAPIView):
    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = PaymentHistoryPagination

    def get_queryset(self):
        return (
            Payment.objects.filter(user=self.request.user)
            .select_related("fee_application__fee_rule")
            .order_by("-created_at")
        )


class PaymentCallbackView(PaymentOrchestratorMixin, APIView):
    """
    Provider webhook. Always answers 200 so the provider does not retry.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        try:
            payload = request.data
        except ParseError:
            logger.warning("MTN MoMo callback with malformed body")
            return Response(
                {"success": False, "message": "Malformed callback payload"},
                status=status.HTTP_200_OK,
            )

        try:
            result = self.get_orchestrator().handle_callback(payload)
        except Exception:
            logger.exception("MTN MoMo callback processing failed")
            result = {"success": False, "message": "Callback processing failed"}

        return Response(result, status=status.HTTP_200_OK)
