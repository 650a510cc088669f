from django.contrib import admin

from feerules.models import FeeRule, FeeRuleUnitAssignment


class FeeRuleUnitAssignmentInline(admin.TabularInline):
    model = FeeRuleUnitAssignment
    extra = 0


class FeeRuleAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "type",
        "amount",
        "frequency",
        "status",
        "applicable_to",
        "effective_date",
        "is_deleted",
        "created_at",
    )
    search_fields = ("name", "description", "reference")
    list_filter = ("status", "type", "frequency", "applicable_to", "is_deleted")
    ordering = ("-created_at",)
    inlines = [FeeRuleUnitAssignmentInline]


class FeeRuleUnitAssignmentAdmin(admin.ModelAdmin):
    list_display = ("fee_rule", "unit", "custom_amount", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("fee_rule__name", "unit__code", "unit__name")


admin.site.register(FeeRule, FeeRuleAdmin)
admin.site.register(FeeRuleUnitAssignment, FeeRuleUnitAssignmentAdmin)
