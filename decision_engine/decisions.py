from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from spam_filter.services import SpamAnalysisResult
from suspicion.services import SuspicionAnalysisResult


class ReasonCode(str, Enum):
    OK = "OK"
    IP_BLOCKED = "IP_BLOCKED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SPAM_DETECTED = "SPAM_DETECTED"


@dataclass
class ShieldRequest:
    ip: str
    endpoint: str
    method: str = "GET"
    user_agent: str = ""
    referer: str = ""
    accept: str = ""
    accept_language: str = ""
    # None = request tanpa konten (GET, dsb.)
    submitted_fields: Optional[dict] = None

    @property
    def content_bearing(self):
        return self.submitted_fields is not None

    def summary(self):
        """Small, log-safe subset of the request for SecurityEvent.request_data."""
        data = {"endpoint": self.endpoint, "method": self.method}
        if self.referer:
            data["referer"] = self.referer
        return data


@dataclass
class Decision:
    allowed: bool
    http_status: int = 200
    reason_code: ReasonCode = ReasonCode.OK
    retry_after_seconds: Optional[int] = None
    spam_analysis: Optional[SpamAnalysisResult] = None
    suspicion_analysis: Optional[SuspicionAnalysisResult] = None
    delay_ms: int = 0
    errors: list = field(default_factory=list)

    @classmethod
    def allow(cls, **kwargs):
        return cls(allowed=True, http_status=200, reason_code=ReasonCode.OK, **kwargs)

    @classmethod
    def reject(cls, http_status, reason_code, **kwargs):
        return cls(allowed=False, http_status=http_status, reason_code=reason_code, **kwargs)

    def to_dict(self):
        data = {
            "allowed": self.allowed,
            "http_status": self.http_status,
            "reason_code": self.reason_code.value,
        }
        if self.retry_after_seconds is not None:
            data["retry_after_seconds"] = self.retry_after_seconds
        if self.spam_analysis is not None:
            data["spam_analysis"] = self.spam_analysis.to_dict()
        if self.suspicion_analysis is not None:
            data["suspicion_analysis"] = self.suspicion_analysis.to_dict()
        return data
