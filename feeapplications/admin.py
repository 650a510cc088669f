from django.contrib import admin

from feeapplications.models import FeeApplication


class FeeApplicationAdmin(admin.ModelAdmin):
    list_display = (
        "reference",
        "user",
        "fee_rule",
        "amount",
        "status",
        "due_date",
        "paid_date",
        "created_at",
    )
    search_fields = ("reference", "user__member_no", "fee_rule__name")
    list_filter = ("status", "due_date", "created_at")
    ordering = ("-created_at",)
    readonly_fields = ("calculation_data",)


admin.site.register(FeeApplication, FeeApplicationAdmin)
