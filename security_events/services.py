import logging

from decision_engine.exceptions import StoreUnavailable

from .events import SecurityEvent, Severity

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class SecurityEventSink:
    """
    Audit trail consumer. Setiap keputusan pipeline lewat sini:
    ditulis ke log (level sesuai severity) lalu disimpan ke store.
    Kegagalan store tidak pernah menggagalkan request.
    """

    def __init__(self, store):
        self.store = store

    async def append(self, event: SecurityEvent) -> bool:
        severity = Severity(event.severity)
        logger.log(
            LOG_LEVELS[severity],
            "[%s] %s ip=%s blocked=%s %s",
            severity.value.upper(), event.event_type, event.ip, event.blocked, event.details,
        )
        try:
            await self.store.append_security_event(event)
        except StoreUnavailable as e:
            logger.error("Security event %s for %s not persisted: %s", event.event_type, event.ip, e)
            return False
        return True

    async def count_recent(self, ip, event_type, since_hours=1) -> int:
        """Raises StoreUnavailable; callers decide how to degrade."""
        return await self.store.count_recent_events(ip, event_type, since_hours)
