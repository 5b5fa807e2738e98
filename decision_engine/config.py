import ipaddress
import logging
from dataclasses import dataclass, fields
from typing import Optional, Tuple

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

TOR_EXIT_LIST_URL = "https://check.torproject.org/torbulkexitlist"

DEFAULT_WHITELIST = (
    "127.0.0.1",
    "::1",
    "192.168.0.0/16",
    "10.0.0.0/8",
    "172.16.0.0/12",
)


@dataclass(frozen=True)
class ShieldConfig:
    """
    Semua opsi pipeline dalam satu object.
    Dibuat sekali saat startup lalu di-inject ke setiap komponen.
    """

    # rate limit per endpoint
    window_ms: int = 3_600_000
    max_requests: int = 3
    # rate limit global (seluruh permukaan)
    global_window_ms: int = 60_000
    global_max_requests: int = 100

    # progressive throttle
    delay_after: int = 1
    per_request_delay_ms: int = 500
    max_delay_ms: int = 5000

    # blokir & eskalasi
    block_duration_hours: int = 24
    permanent_block_threshold: int = 10
    suspicious_activity_threshold: int = 5
    violation_window_seconds: int = 3600
    spam_event_threshold: int = 3
    spam_block_hours: int = 24

    # scoring
    spam_threshold: int = 50
    suspicion_threshold: int = 40
    max_urls_allowed: int = 0
    max_capital_percentage: float = 30.0
    profanity_filter: bool = True
    spam_keywords_file: Optional[str] = None
    frequency_window_seconds: int = 60
    high_frequency_threshold: int = 50

    whitelist: Tuple[str, ...] = DEFAULT_WHITELIST

    # wiring HTTP
    protected_paths: Tuple[str, ...] = ("/api/contact",)
    skip_paths: Tuple[str, ...] = ("/admin", "/static", "/healthz", "/readyz", "/ops")
    content_fields: Tuple[str, ...] = ("problem_description", "problemDescription", "message")

    exit_node_feed_url: str = TOR_EXIT_LIST_URL
    exit_node_cache_ttl: int = 3600
    sweep_interval_seconds: int = 300
    alert_email: Optional[str] = None
    retention_days: int = 30

    @classmethod
    def from_settings(cls, settings):
        """Build the config from Django settings (``SHIELD_<FIELD>`` names)."""
        kwargs = {}
        for f in fields(cls):
            setting_name = f"SHIELD_{f.name.upper()}"
            if not hasattr(settings, setting_name):
                continue
            value = getattr(settings, setting_name)
            if isinstance(value, list):
                value = tuple(value)
            kwargs[f.name] = value
        config = cls(**kwargs)
        config.validate()
        return config

    def validate(self):
        errors = []

        for name in ("window_ms", "global_window_ms", "max_requests", "global_max_requests",
                     "sweep_interval_seconds", "violation_window_seconds"):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        for name in ("delay_after", "per_request_delay_ms", "max_delay_ms", "max_urls_allowed",
                     "block_duration_hours", "spam_block_hours"):
            if getattr(self, name) < 0:
                errors.append(f"{name} must not be negative")

        if self.suspicious_activity_threshold < 1:
            errors.append("suspicious_activity_threshold must be at least 1")
        if self.permanent_block_threshold < self.suspicious_activity_threshold:
            errors.append("permanent_block_threshold must be >= suspicious_activity_threshold")
        if not 0 <= self.max_capital_percentage <= 100:
            errors.append("max_capital_percentage must be between 0 and 100")

        if errors:
            raise ConfigurationError(f"Security configuration errors: {', '.join(errors)}")

        # entry whitelist yang rusak tidak fatal, cukup diabaikan saat dicek
        for entry in self.whitelist:
            try:
                if "/" in entry:
                    ipaddress.ip_network(entry, strict=False)
                else:
                    ipaddress.ip_address(entry)
            except ValueError:
                logger.warning("Ignoring malformed whitelist entry %r", entry)
        return True
