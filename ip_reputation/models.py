from django.db import models
from django.utils import timezone

from decision_engine.store import ReputationRecord


class BlockedIp(models.Model):
    ip_address = models.GenericIPAddressField(unique=True)
    reason = models.TextField(blank=True, default="")
    blocked_until = models.DateTimeField(null=True, blank=True)  # null = tanpa batas waktu
    permanent = models.BooleanField(default=False)
    blocked_count = models.PositiveIntegerField(default=0)  # hanya bertambah
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = "blocked IP"
        verbose_name_plural = "blocked IPs"

    def is_blocking(self, now=None):
        return self.to_record().is_blocking(now or timezone.now())

    def to_record(self):
        return ReputationRecord(
            ip=self.ip_address,
            reason=self.reason,
            blocked_until=self.blocked_until,
            permanent=self.permanent,
            blocked_count=self.blocked_count,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __str__(self):
        state = "permanent" if self.permanent else f"until {self.blocked_until}"
        return f"{self.ip_address} - {state} (x{self.blocked_count})"
