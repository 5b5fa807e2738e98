from django.db import models
from django.utils import timezone

from decision_engine.store import RateWindow


class RateLimitWindow(models.Model):
    ip_address = models.GenericIPAddressField()
    endpoint = models.CharField(max_length=255)  # "*" = limiter global
    window_start = models.DateTimeField(default=timezone.now)
    request_count = models.PositiveIntegerField(default=1)
    last_request = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["ip_address", "endpoint"], name="unique_rate_window"),
        ]

    def to_window(self):
        return RateWindow(
            ip=self.ip_address,
            endpoint=self.endpoint,
            window_start=self.window_start,
            request_count=self.request_count,
            last_request=self.last_request,
        )

    def __str__(self):
        return f"{self.ip_address} {self.endpoint}: {self.request_count} since {self.window_start}"
