from django.apps import AppConfig


class FeerulesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "feerules"
