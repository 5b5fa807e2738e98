import asyncio
import logging
import time

from escalation.services import EscalationEngine
from escalation.sweeper import PeriodicSweeper
from ip_reputation.services import IPReputationStore
from rate_limit.services import GLOBAL_ENDPOINT, RateLimiter
from rate_limit.throttle import ProgressiveThrottle
from security_events.events import EventType, SecurityEvent, Severity
from security_events.services import SecurityEventSink
from spam_filter.services import SpamScorer
from suspicion.services import RequestFrequencyTracker, SuspicionScorer

from .clock import utcnow
from .decisions import Decision, ReasonCode
from .exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class DefensePipeline:
    """
    Satu instance per proses. Semua state transient (tracker pelanggaran,
    frekuensi request) dimiliki instance ini, bukan variabel modul.

    Urutan per request yang dilindungi:
      whitelist -> reputasi IP -> limiter global -> limiter endpoint
      -> throttle -> suspicion -> spam (kalau ada konten) -> eskalasi
      -> security event (selalu)
    """

    def __init__(self, config, store, exit_node_lookup=None, notifier=None,
                 sleep=asyncio.sleep, clock=utcnow, monotonic=time.monotonic):
        self.config = config
        self.store = store
        self.exit_node_lookup = exit_node_lookup
        self.sleep = sleep
        self.clock = clock

        self.reputation = IPReputationStore(store, whitelist=config.whitelist, clock=clock)
        self.endpoint_limiter = RateLimiter(
            store, config.window_ms, config.max_requests, name="endpoint", clock=clock,
        )
        self.global_limiter = RateLimiter(
            store, config.global_window_ms, config.global_max_requests, name="global", clock=clock,
        )
        self.throttle = ProgressiveThrottle(
            delay_after=config.delay_after,
            per_request_delay_ms=config.per_request_delay_ms,
            max_delay_ms=config.max_delay_ms,
        )
        self.spam_scorer = SpamScorer.from_config(config)
        self.suspicion_scorer = SuspicionScorer(
            suspicion_threshold=config.suspicion_threshold,
            high_frequency_threshold=config.high_frequency_threshold,
        )
        self.frequency = RequestFrequencyTracker(window_seconds=config.frequency_window_seconds, clock=monotonic)
        self.sink = SecurityEventSink(store)
        self.escalation = EscalationEngine.from_config(
            config, self.reputation, self.sink, notifier=notifier, clock=clock, monotonic=monotonic,
        )
        self.sweeper = PeriodicSweeper(config.sweep_interval_seconds, self.escalation.sweep, self.frequency.sweep)

    def start(self):
        self.sweeper.start()

    def stop(self):
        self.sweeper.stop()

    async def evaluate(self, request) -> Decision:
        ip = request.ip

        if self.reputation.is_whitelisted(ip):
            await self._record(request, EventType.WHITELISTED_REQUEST, details="Whitelisted IP")
            return Decision.allow()

        errors = []

        # 1) reputasi
        state = await self.reputation.check(ip)
        if state.error:
            logger.error("Reputation check failed for %s, failing open: %s", ip, state.error)
            errors.append(state.error)
        if state.blocked:
            kind = "permanent" if state.permanent else f"temporary until {state.until}"
            await self._record(
                request, EventType.BLOCKED_IP_ATTEMPT,
                blocked=True, severity=Severity.ERROR,
                details=f"Blocked IP ({kind}): {state.reason}",
            )
            return Decision.reject(403, ReasonCode.IP_BLOCKED, errors=errors)

        recent_count = self.frequency.hit(ip)

        # 2) limiter global lalu limiter endpoint
        global_hit = await self._increment(self.global_limiter, ip, GLOBAL_ENDPOINT, errors)
        if global_hit is not None and self.global_limiter.exceeded(global_hit):
            return await self._rate_limited(request, self.global_limiter, global_hit, errors)

        hit = await self._increment(self.endpoint_limiter, ip, request.endpoint, errors)
        if hit is not None and self.endpoint_limiter.exceeded(hit):
            return await self._rate_limited(request, self.endpoint_limiter, hit, errors)

        # 3) throttle
        delay_ms = self.throttle.delay_for(hit.total_hits) if hit is not None else 0
        if delay_ms:
            logger.debug("Delaying %s by %sms (request %s in window)", ip, delay_ms, hit.total_hits)
            await self.sleep(delay_ms / 1000)

        # 4) suspicion, hanya advisory
        suspicion = self.suspicion_scorer.analyze(
            request.user_agent,
            request.referer,
            request.accept,
            request.accept_language,
            recent_request_count=recent_count,
            is_known_exit_node=self._is_exit_node(ip),
        )

        # 5) spam
        spam = None
        if request.content_bearing:
            fields = request.submitted_fields
            spam = self.spam_scorer.analyze(
                str(fields.get("name") or ""), str(fields.get("email") or ""), self._content_text(fields),
            )
            if spam.is_spam:
                await self._record(
                    request, EventType.SPAM_DETECTED,
                    blocked=True, severity=Severity.WARNING,
                    details=f"Spam score {spam.score}: {'; '.join(spam.reasons)}",
                    extra={"spam": spam.to_dict(), "suspicion": suspicion.to_dict()},
                )
                await self.escalation.record_spam_event(ip)
                return Decision.reject(
                    403, ReasonCode.SPAM_DETECTED,
                    spam_analysis=spam, suspicion_analysis=suspicion, delay_ms=delay_ms, errors=errors,
                )

        if suspicion.is_suspicious:
            self.escalation.mark_suspicious(ip)
            await self._record(
                request, EventType.SUSPICIOUS_ACTIVITY,
                severity=Severity.WARNING,
                details=f"Suspicion score {suspicion.score}: {'; '.join(suspicion.reasons)}",
                extra={"suspicion": suspicion.to_dict(), "spam": spam.to_dict() if spam else None},
            )
        else:
            await self._record(
                request, EventType.REQUEST_ALLOWED,
                extra={"spam_score": spam.score if spam else None, "suspicion_score": suspicion.score},
            )

        return Decision.allow(spam_analysis=spam, suspicion_analysis=suspicion, delay_ms=delay_ms, errors=errors)

    async def check_global(self, request) -> Decision:
        """Global limiter only, for paths outside the protected set."""
        if self.reputation.is_whitelisted(request.ip):
            return Decision.allow()
        # frekuensi dihitung untuk seluruh situs, bukan hanya path yang dilindungi
        self.frequency.hit(request.ip)
        errors = []
        hit = await self._increment(self.global_limiter, request.ip, GLOBAL_ENDPOINT, errors)
        if hit is not None and self.global_limiter.exceeded(hit):
            return await self._rate_limited(request, self.global_limiter, hit, errors)
        return Decision.allow(errors=errors)

    async def _increment(self, limiter, ip, endpoint, errors):
        try:
            return await limiter.increment(ip, endpoint)
        except StoreUnavailable as e:
            logger.error("%s rate limiter unavailable for %s, failing open: %s", limiter.name, ip, e)
            errors.append(str(e))
            return None

    async def _rate_limited(self, request, limiter, hit, errors):
        retry_after = limiter.retry_after_seconds(hit)
        await self._record(
            request, EventType.RATE_LIMIT_EXCEEDED,
            blocked=True, severity=Severity.WARNING,
            details=f"{limiter.name} limit exceeded: {hit.total_hits}/{limiter.max_requests}, retry after {retry_after}s",
            extra={"limiter": limiter.name, "total_hits": hit.total_hits},
        )
        await self.escalation.record_rate_limit_violation(request.ip, reason=f"Repeated {limiter.name} rate limit violations")
        return Decision.reject(429, ReasonCode.RATE_LIMIT_EXCEEDED, retry_after_seconds=retry_after, errors=errors)

    def _is_exit_node(self, ip):
        if self.exit_node_lookup is None:
            return False
        try:
            return bool(self.exit_node_lookup(ip))
        except Exception as e:
            logger.warning("Exit node lookup failed for %s: %s", ip, e)
            return False

    def _content_text(self, fields):
        for name in self.config.content_fields:
            value = fields.get(name)
            if value:
                return str(value)
        return ""

    async def _record(self, request, event_type, blocked=False, severity=Severity.INFO, details="", extra=None):
        data = request.summary()
        if extra:
            data.update(extra)
        await self.sink.append(SecurityEvent(
            event_type=event_type,
            ip=request.ip,
            user_agent=request.user_agent,
            request_data=data,
            blocked=blocked,
            severity=severity,
            details=details,
        ))
