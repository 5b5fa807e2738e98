from django.apps import AppConfig


class SecurityEventsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "security_events"
