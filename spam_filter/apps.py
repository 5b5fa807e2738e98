from django.apps import AppConfig


class SpamFilterConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "spam_filter"
