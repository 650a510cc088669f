from django.contrib import admin

from payments.models import Payment


class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "reference_id",
        "user",
        "fee_application",
        "amount",
        "currency",
        "status",
        "paid_at",
        "created_at",
    )
    search_fields = ("reference_id", "external_id", "user__member_no", "phone_number")
    list_filter = ("status", "payment_method", "created_at")
    ordering = ("-created_at",)
    readonly_fields = ("callback_data",)


admin.site.register(Payment, PaymentAdmin)
