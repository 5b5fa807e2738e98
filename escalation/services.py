import logging
import threading
import time
from enum import Enum

from asgiref.sync import sync_to_async

from decision_engine.clock import utcnow
from decision_engine.exceptions import StoreUnavailable
from security_events.events import EventType, SecurityEvent, Severity

logger = logging.getLogger(__name__)


class EscalationState(str, Enum):
    CLEAN = "clean"
    WATCHED = "watched"
    BLOCKED_TEMPORARY = "blocked-temporary"
    BLOCKED_PERMANENT = "blocked-permanent"


def classify(record, watched, now):
    """Escalation state from a reputation record (or None) and the watch flag."""
    if record is not None and record.is_blocking(now):
        return EscalationState.BLOCKED_PERMANENT if record.permanent else EscalationState.BLOCKED_TEMPORARY
    if watched:
        return EscalationState.WATCHED
    return EscalationState.CLEAN


class ViolationTracker:
    """
    Hitungan pelanggaran per IP, hanya di memory proses ini.
    Bukan sumber kebenaran: kalau proses restart, hitungan mulai dari nol.
    """

    def __init__(self, window_seconds=3600, clock=time.monotonic):
        self.window_seconds = window_seconds
        self.clock = clock
        self._violations = {}  # ip -> [count, first_violation_at]
        self._watched = {}  # ip -> last flagged
        self._lock = threading.Lock()

    def record(self, ip, escalate_at):
        """
        Count one violation. Returns ``(count, escalate)``; when ``escalate``
        is True the entry has already been removed, so exactly one caller
        gets to issue the block.
        """
        now = self.clock()
        with self._lock:
            entry = self._violations.get(ip)
            if entry is None or now - entry[1] > self.window_seconds:
                entry = [0, now]
                self._violations[ip] = entry
            entry[0] += 1
            count = entry[0]
            if count >= escalate_at:
                del self._violations[ip]
                self._watched.pop(ip, None)
                return count, True
            return count, False

    def count(self, ip):
        now = self.clock()
        with self._lock:
            entry = self._violations.get(ip)
            if entry is None or now - entry[1] > self.window_seconds:
                return 0
            return entry[0]

    def watch(self, ip):
        with self._lock:
            self._watched[ip] = self.clock()

    def is_watched(self, ip):
        now = self.clock()
        with self._lock:
            flagged_at = self._watched.get(ip)
            return flagged_at is not None and now - flagged_at <= self.window_seconds

    def clear(self, ip):
        with self._lock:
            self._violations.pop(ip, None)
            self._watched.pop(ip, None)

    def sweep(self):
        """Remove entries older than the window. Returns how many were dropped."""
        cutoff = self.clock() - self.window_seconds
        with self._lock:
            stale = [ip for ip, (_, first) in self._violations.items() if first < cutoff]
            for ip in stale:
                del self._violations[ip]
            stale_watch = [ip for ip, flagged_at in self._watched.items() if flagged_at < cutoff]
            for ip in stale_watch:
                del self._watched[ip]
        return len(stale) + len(stale_watch)

    def __len__(self):
        with self._lock:
            return len(self._violations)


class EscalationEngine:
    """
    Promote repeated violations into IPReputationStore blocks.

    State per IP: clean -> watched -> blocked-temporary -> blocked-permanent.
    A temporary block falls back to clean on its own once ``blocked_until``
    passes; nothing transitions it actively.
    """

    def __init__(
        self,
        reputation,
        sink,
        tracker=None,
        notifier=None,
        suspicious_activity_threshold=5,
        permanent_block_threshold=10,
        block_duration_hours=24,
        spam_event_threshold=3,
        spam_block_hours=24,
        clock=utcnow,
    ):
        self.reputation = reputation
        self.sink = sink
        self.tracker = tracker if tracker is not None else ViolationTracker()
        self.notifier = notifier
        self.suspicious_activity_threshold = suspicious_activity_threshold
        self.permanent_block_threshold = permanent_block_threshold
        self.block_duration_hours = block_duration_hours
        self.spam_event_threshold = spam_event_threshold
        self.spam_block_hours = spam_block_hours
        self.clock = clock

    @classmethod
    def from_config(cls, config, reputation, sink, notifier=None, clock=utcnow, monotonic=time.monotonic):
        return cls(
            reputation,
            sink,
            tracker=ViolationTracker(window_seconds=config.violation_window_seconds, clock=monotonic),
            notifier=notifier,
            suspicious_activity_threshold=config.suspicious_activity_threshold,
            permanent_block_threshold=config.permanent_block_threshold,
            block_duration_hours=config.block_duration_hours,
            spam_event_threshold=config.spam_event_threshold,
            spam_block_hours=config.spam_block_hours,
            clock=clock,
        )

    async def record_rate_limit_violation(self, ip, reason="Repeated rate limit violations"):
        if self.reputation.is_whitelisted(ip):
            return None

        count, escalate = self.tracker.record(ip, self.suspicious_activity_threshold)
        logger.debug("Rate limit violation %s for %s", count, ip)
        if not escalate:
            return None

        previous_count = 0
        try:
            previous = await self.reputation.store.get_reputation(ip)
            if previous is not None:
                previous_count = previous.blocked_count
        except StoreUnavailable as e:
            logger.error("Could not read reputation for %s before escalating: %s", ip, e)

        permanent = (
            count >= self.permanent_block_threshold
            or previous_count + 1 >= self.permanent_block_threshold
        )
        duration = None if permanent else self.block_duration_hours
        return await self._issue_block(
            ip, f"{reason} ({count} within the hour)", duration, permanent, trigger=EventType.RATE_LIMIT_EXCEEDED,
        )

    async def record_spam_event(self, ip):
        if self.reputation.is_whitelisted(ip):
            return None
        try:
            recent = await self.sink.count_recent(ip, EventType.SPAM_DETECTED, since_hours=1)
        except StoreUnavailable as e:
            logger.error("Could not count spam events for %s: %s", ip, e)
            return None

        if recent < self.spam_event_threshold:
            self.tracker.watch(ip)
            return None

        return await self._issue_block(
            ip,
            f"Multiple spam attempts ({recent} in the last hour)",
            self.spam_block_hours,
            False,
            trigger=EventType.SPAM_DETECTED,
        )

    def mark_suspicious(self, ip):
        if not self.reputation.is_whitelisted(ip):
            self.tracker.watch(ip)

    async def status(self, ip) -> EscalationState:
        try:
            record = await self.reputation.store.get_reputation(ip)
        except StoreUnavailable as e:
            logger.error("Reputation lookup failed for %s: %s", ip, e)
            record = None
        watched = self.tracker.is_watched(ip) or self.tracker.count(ip) > 0
        return classify(record, watched, self.clock())

    async def unblock(self, ip, actor=""):
        released = await self.reputation.unblock(ip)
        self.tracker.clear(ip)
        if released:
            await self.sink.append(SecurityEvent(
                event_type=EventType.IP_UNBLOCKED,
                ip=ip,
                severity=Severity.INFO,
                details=f"Unblocked by {actor}" if actor else "Unblocked",
            ))
        return released

    def sweep(self):
        removed = self.tracker.sweep()
        if removed:
            logger.info("Escalation sweep removed %s stale tracker entries", removed)
        return removed

    async def _issue_block(self, ip, reason, duration_hours, permanent, trigger):
        try:
            record = await self.reputation.block(ip, reason, duration_hours, permanent)
        except StoreUnavailable as e:
            # fail open: IP tetap bisa request, tracker mulai lagi dari nol
            logger.error("Escalation block for %s not persisted: %s", ip, e)
            return None
        if record is None:
            return None

        self.tracker.clear(ip)
        kind = "permanent" if record.permanent else f"temporary until {record.blocked_until}"
        logger.warning("Escalated %s to %s block after %s", ip, kind, trigger)
        await self.sink.append(SecurityEvent(
            event_type=EventType.IP_BLOCKED,
            ip=ip,
            request_data={"trigger": trigger, "blocked_count": record.blocked_count},
            blocked=True,
            severity=Severity.ERROR,
            details=f"{reason}; {kind}",
        ))

        if self.notifier is not None:
            await sync_to_async(self.notifier.notify, thread_sensitive=False)(record)
        return record
