from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class EventType:
    REQUEST_ALLOWED = "request_allowed"
    WHITELISTED_REQUEST = "whitelisted_request"
    BLOCKED_IP_ATTEMPT = "blocked_ip_attempt"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    SPAM_DETECTED = "spam_detected"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    IP_BLOCKED = "ip_blocked"
    IP_UNBLOCKED = "ip_unblocked"
    VALIDATION_FAILED = "validation_failed"

    # event yang dihitung sebagai pelanggaran (status "watched")
    VIOLATIONS = (RATE_LIMIT_EXCEEDED, SPAM_DETECTED, SUSPICIOUS_ACTIVITY)


@dataclass
class SecurityEvent:
    """One audit-trail entry. Append-only."""

    event_type: str
    ip: str
    user_agent: str = ""
    request_data: dict = field(default_factory=dict)
    blocked: bool = False
    severity: Severity = Severity.INFO
    details: str = ""
    created_at: Optional[datetime] = None
