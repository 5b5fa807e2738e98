from django.contrib import admin
from .models import BlockedIp


@admin.register(BlockedIp)
class BlockedIpAdmin(admin.ModelAdmin):
    list_display = ("ip_address", "permanent", "blocked_until", "blocked_count", "updated_at")
    search_fields = ("ip_address", "reason")
    list_filter = ("permanent",)
    readonly_fields = ("blocked_count", "created_at", "updated_at")
