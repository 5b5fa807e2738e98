from django.apps import AppConfig


class IpReputationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ip_reputation"
