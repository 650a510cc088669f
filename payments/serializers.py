from decimal import Decimal

from rest_framework import serializers

from payments.models import Payment


class InitiatePaymentSerializer(serializers.Serializer):
    PAYMENT_TYPE_CHOICES = ["single", "bulk"]

    phone_number = serializers.CharField(min_length=10, max_length=15)
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    description = serializers.CharField(max_length=255)
    fee_application_ids = serializers.ListField(
        child=serializers.UUIDField(), required=False, default=list
    )
    # Older clients send a single id
    fee_application_id = serializers.UUIDField(required=False)
    payment_type = serializers.ChoiceField(
        choices=PAYMENT_TYPE_CHOICES, required=False, default="single"
    )

    def validate(self, attrs):
        single_id = attrs.pop("fee_application_id", None)
        if attrs["payment_type"] == "single" and single_id is not None:
            attrs["fee_application_ids"] = [single_id]
        return attrs


class PaymentStatusSerializer(serializers.Serializer):
    reference_id = serializers.CharField(max_length=100)


class PaymentSerializer(serializers.ModelSerializer):
    fee_application = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = (
            "id",
            "reference_id",
            "external_id",
            "amount",
            "currency",
            "status",
            "phone_number",
            "description",
            "payment_method",
            "financial_transaction_id",
            "reason",
            "paid_at",
            "fee_application",
            "created_at",
            "reference",
        )
        read_only_fields = fields

    def get_fee_application(self, obj):
        fee_application = obj.fee_application
        if fee_application is None:
            return None
        return {
            "id": str(fee_application.id),
            "reference": fee_application.reference,
            "status": fee_application.status,
            "fee_rule": {
                "name": fee_application.fee_rule.name,
                "description": fee_application.fee_rule.description,
            },
        }
