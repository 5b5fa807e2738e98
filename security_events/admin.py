from django.contrib import admin
from .models import SecurityLog


@admin.register(SecurityLog)
class SecurityLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "event_type", "ip_address", "severity", "blocked")
    search_fields = ("ip_address", "event_type", "details")
    list_filter = ("event_type", "severity", "blocked")
    readonly_fields = [f.name for f in SecurityLog._meta.fields]
