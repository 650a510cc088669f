from rest_framework import serializers

from feerules.models import FeeRule
from feeapplications.models import FeeApplication


class FeeRuleSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = FeeRule
        fields = ("reference", "name", "type", "frequency", "unit", "amount")


class FeeApplicationSerializer(serializers.ModelSerializer):
    user = serializers.CharField(source="user.member_no", read_only=True)
    fee_rule = FeeRuleSummarySerializer(read_only=True)
    unit = serializers.CharField(source="unit.code", read_only=True, default=None)
    calculation_data = serializers.SerializerMethodField()

    class Meta:
        model = FeeApplication
        fields = (
            "id",
            "user",
            "fee_rule",
            "unit",
            "amount",
            "status",
            "due_date",
            "paid_date",
            "calculation_data",
            "notes",
            "created_at",
            "updated_at",
            "reference",
        )
        read_only_fields = fields

    def get_calculation_data(self, obj):
        snapshot = obj.snapshot
        return snapshot.to_dict() if snapshot and snapshot.applied_at else obj.calculation_data
