import ipaddress
import json
import logging

from asgiref.sync import markcoroutinefunction
from django.conf import settings
from django.http import JsonResponse

from decision_engine.config import ShieldConfig
from decision_engine.decisions import ReasonCode, ShieldRequest
from decision_engine.django_store import DjangoStore
from decision_engine.pipeline import DefensePipeline
from decision_engine.redis_client import RedisClientSingleton
from escalation.notifications import BlockNotifier
from suspicion.feeds import ExitNodeFeed

logger = logging.getLogger(__name__)

REJECTION_MESSAGES = {
    ReasonCode.IP_BLOCKED: ("Forbidden", "Your IP address has been blocked."),
    ReasonCode.RATE_LIMIT_EXCEEDED: ("Too many requests", "Too many requests, please try again later."),
    ReasonCode.SPAM_DETECTED: ("Submission rejected", "Your submission was flagged as spam."),
}


def build_pipeline(config):
    """Wire the production pipeline: ORM store, exit node feed and e-mail alerts."""
    feed = ExitNodeFeed(
        url=config.exit_node_feed_url,
        ttl=config.exit_node_cache_ttl,
        redis_client=RedisClientSingleton.get_client(),
    )
    notifier = BlockNotifier(config.alert_email) if config.alert_email else None
    return DefensePipeline(config, DjangoStore(), exit_node_lookup=feed.contains, notifier=notifier)


def client_ip(request):
    """First X-Forwarded-For hop if it is a valid address, else REMOTE_ADDR."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        try:
            ipaddress.ip_address(first)
            return first
        except ValueError:
            logger.debug("Ignoring invalid X-Forwarded-For value %r", forwarded)
    return request.META.get("REMOTE_ADDR", "") or ""


def submitted_fields(request):
    if request.method != "POST":
        return None
    content_type = (request.content_type or "").lower()
    if "application/json" in content_type:
        try:
            payload = json.loads(request.body.decode("utf-8") or "{}")
        except (ValueError, UnicodeDecodeError):
            # body rusak tetap dianggap konten kosong, view yang menolak
            return {}
        return payload if isinstance(payload, dict) else {}
    return {key: request.POST.get(key) for key in request.POST}


class ShieldMiddleware:
    """
    Async middleware di depan endpoint form publik.

    - path di ``skip_paths`` (admin, static, health, ops) lewat langsung
    - path di ``protected_paths`` menjalankan pipeline lengkap
    - path lain hanya dicek limiter global
    Kalau pipeline error, request diteruskan (fail open) dan error di-log.
    """

    async_capable = True
    sync_capable = False

    def __init__(self, get_response):
        self.get_response = get_response
        markcoroutinefunction(self)
        self.config = ShieldConfig.from_settings(settings)
        self.pipeline = build_pipeline(self.config)
        self.pipeline.start()

    async def __call__(self, request):
        path = request.path
        if any(path.startswith(prefix) for prefix in self.config.skip_paths):
            return await self.get_response(request)

        try:
            shield_request = self.build_request(request)
            if not shield_request.ip:
                logger.warning("No client IP resolved for %s, skipping shield", path)
                return await self.get_response(request)
            if self.is_protected(path):
                decision = await self.pipeline.evaluate(shield_request)
            else:
                decision = await self.pipeline.check_global(shield_request)
        except Exception as e:
            logger.exception("Shield pipeline failed for %s, letting request through: %s", path, e)
            return await self.get_response(request)

        request.shield_decision = decision
        if not decision.allowed:
            return self.reject(decision)
        return await self.get_response(request)

    def is_protected(self, path):
        return any(path.rstrip("/") == protected.rstrip("/") for protected in self.config.protected_paths)

    def build_request(self, request):
        fields = submitted_fields(request) if self.is_protected(request.path) else None
        return ShieldRequest(
            ip=client_ip(request),
            endpoint=request.path,
            method=request.method,
            user_agent=request.META.get("HTTP_USER_AGENT", ""),
            referer=request.META.get("HTTP_REFERER", ""),
            accept=request.META.get("HTTP_ACCEPT", ""),
            accept_language=request.META.get("HTTP_ACCEPT_LANGUAGE", ""),
            submitted_fields=fields,
        )

    @staticmethod
    def reject(decision):
        error, message = REJECTION_MESSAGES[decision.reason_code]
        body = {"error": error, "message": message, "code": decision.reason_code.value}
        if decision.retry_after_seconds is not None:
            body["retry_after"] = decision.retry_after_seconds
        response = JsonResponse(body, status=decision.http_status)
        if decision.retry_after_seconds is not None:
            response["Retry-After"] = str(decision.retry_after_seconds)
        return response
