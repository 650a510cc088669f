from django.contrib import admin

from accounts.models import User


class UserAdmin(admin.ModelAdmin):
    list_display = (
        "member_no",
        "first_name",
        "last_name",
        "role",
        "status",
        "unit",
        "created_at",
    )
    search_fields = ("member_no", "first_name", "last_name", "email", "phone")
    list_filter = ("role", "status", "unit", "created_at")
    ordering = ("-created_at",)


admin.site.register(User, UserAdmin)
