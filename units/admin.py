from django.contrib import admin

from units.models import Zone, Unit


class ZoneAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "is_active", "created_at")
    search_fields = ("name", "code")
    list_filter = ("is_active",)


class UnitAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "zone", "leader", "status", "created_at")
    search_fields = ("name", "code")
    list_filter = ("status", "zone")
    ordering = ("name",)


admin.site.register(Zone, ZoneAdmin)
admin.site.register(Unit, UnitAdmin)
