from decimal import Decimal

from django.utils import timezone
from rest_framework import serializers

from feerules.models import FeeRule, FeeRuleUnitAssignment


class FeeRuleUnitAssignmentSerializer(serializers.ModelSerializer):
    unit = serializers.CharField(source="unit.code", read_only=True)
    unit_id = serializers.UUIDField(source="unit.id", read_only=True)
    unit_name = serializers.CharField(source="unit.name", read_only=True)

    class Meta:
        model = FeeRuleUnitAssignment
        fields = (
            "unit",
            "unit_id",
            "unit_name",
            "custom_amount",
            "is_active",
            "created_at",
            "updated_at",
        )


class FeeRuleSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0")
    )
    created_by = serializers.CharField(
        source="created_by.member_no", read_only=True, default=None
    )
    unit_assignments = FeeRuleUnitAssignmentSerializer(many=True, read_only=True)

    class Meta:
        model = FeeRule
        fields = (
            "id",
            "name",
            "type",
            "amount",
            "frequency",
            "unit",
            "status",
            "applicable_to",
            "description",
            "effective_date",
            "is_deleted",
            "created_by",
            "unit_assignments",
            "created_at",
            "updated_at",
            "reference",
        )
        read_only_fields = ("id", "is_deleted")

    def validate(self, attrs):
        if "status" in attrs or "effective_date" in attrs:
            status = attrs.get(
                "status", getattr(self.instance, "status", FeeRule.STATUS_DRAFT)
            )
            effective_date = attrs.get(
                "effective_date", getattr(self.instance, "effective_date", None)
            )
            attrs["status"] = FeeRule.resolve_status(status, effective_date)
        return attrs


class ScheduleFeeRuleSerializer(serializers.Serializer):
    effective_date = serializers.DateField()

    def validate_effective_date(self, value):
        if value <= timezone.localdate():
            raise serializers.ValidationError("Effective date must be after today.")
        return value


class AssignFeeRuleUnitsSerializer(serializers.Serializer):
    unit_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    custom_amounts = serializers.DictField(
        child=serializers.DecimalField(
            max_digits=12, decimal_places=2, min_value=Decimal("0")
        ),
        required=False,
        default=dict,
    )
