from django.apps import AppConfig


class SuspicionConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "suspicion"
