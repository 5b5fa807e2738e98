from django.db import models
from django.utils import timezone

from .events import SecurityEvent, Severity


class SecurityLog(models.Model):
    SEVERITY_CHOICES = [(s.value, s.value) for s in Severity]

    event_type = models.CharField(max_length=64)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default="")
    request_data = models.JSONField(null=True, blank=True)
    blocked = models.BooleanField(default=False)
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default=Severity.INFO.value)
    details = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["ip_address", "event_type", "created_at"], name="seclog_ip_type_created"),
            models.Index(fields=["created_at"], name="seclog_created"),
        ]

    @classmethod
    def from_event(cls, event: SecurityEvent):
        log = cls(
            event_type=event.event_type,
            ip_address=event.ip or None,
            user_agent=(event.user_agent or "")[:1000],
            request_data=event.request_data or None,
            blocked=event.blocked,
            severity=Severity(event.severity).value,
            details=event.details,
        )
        if event.created_at is not None:
            log.created_at = event.created_at
        return log

    def __str__(self):
        status = "BLOCKED" if self.blocked else self.severity.upper()
        return f"[{status}] {self.event_type} {self.ip_address}"
