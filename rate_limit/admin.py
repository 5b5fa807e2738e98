from django.contrib import admin
from .models import RateLimitWindow


@admin.register(RateLimitWindow)
class RateLimitWindowAdmin(admin.ModelAdmin):
    list_display = ("ip_address", "endpoint", "request_count", "window_start", "last_request")
    search_fields = ("ip_address", "endpoint")
