from django.apps import AppConfig


class FeeapplicationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "feeapplications"
