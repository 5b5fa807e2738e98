import ipaddress
import logging
from datetime import timedelta

from asgiref.sync import async_to_sync
from django.conf import settings
from django.contrib.auth.decorators import login_required
from django.db.models import Count, Q
from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_POST
from openpyxl import Workbook

from decision_engine.config import ShieldConfig
from decision_engine.django_store import DjangoStore
from escalation.services import EscalationEngine, classify
from ip_reputation.models import BlockedIp
from ip_reputation.services import IPReputationStore
from rate_limit.models import RateLimitWindow
from security_events.events import EventType
from security_events.models import SecurityLog
from security_events.services import SecurityEventSink

logger = logging.getLogger(__name__)

MAX_HOURS = 24 * 30


def _hours(request, default=24):
    try:
        hours = int(request.GET.get("hours", default))
    except (TypeError, ValueError):
        hours = default
    return max(1, min(hours, MAX_HOURS))


def _valid_ip(ip_address):
    try:
        ipaddress.ip_address(ip_address)
        return True
    except ValueError:
        return False


def _log_to_dict(log):
    return {
        "event_type": log.event_type,
        "ip_address": log.ip_address,
        "severity": log.severity,
        "blocked": log.blocked,
        "details": log.details,
        "created_at": log.created_at.isoformat(),
    }


@login_required
def security_stats(request):
    """Ringkasan security event N jam terakhir (default 24)."""
    hours = _hours(request)
    now = timezone.now()
    logs = SecurityLog.objects.filter(created_at__gte=now - timedelta(hours=hours))

    by_type = {row["event_type"]: row["count"] for row in logs.values("event_type").annotate(count=Count("id"))}
    by_severity = {row["severity"]: row["count"] for row in logs.values("severity").annotate(count=Count("id"))}
    top_ips = list(
        logs.filter(blocked=True)
        .values("ip_address")
        .annotate(count=Count("id"))
        .order_by("-count")[:10]
    )

    active_blocks = BlockedIp.objects.filter(Q(permanent=True) | Q(blocked_until__gt=now))

    return JsonResponse({
        "hours": hours,
        "total_events": logs.count(),
        "blocked_events": logs.filter(blocked=True).count(),
        "by_event_type": by_type,
        "by_severity": by_severity,
        "top_blocked_ips": top_ips,
        "active_blocks": active_blocks.count(),
        "permanent_blocks": active_blocks.filter(permanent=True).count(),
    })


@login_required
def ip_statistics(request, ip_address):
    if not _valid_ip(ip_address):
        return JsonResponse({"error": "Invalid IP address"}, status=400)

    config = ShieldConfig.from_settings(settings)
    now = timezone.now()

    row = BlockedIp.objects.filter(ip_address=ip_address).first()
    record = row.to_record() if row else None

    recent = SecurityLog.objects.filter(ip_address=ip_address, created_at__gte=now - timedelta(hours=1))
    violations = recent.filter(event_type__in=EventType.VIOLATIONS).count()

    window_cutoff = now - timedelta(milliseconds=config.window_ms)
    windows = RateLimitWindow.objects.filter(ip_address=ip_address, window_start__gt=window_cutoff)

    whitelist = IPReputationStore(store=None, whitelist=config.whitelist)

    return JsonResponse({
        "ip_address": ip_address,
        "whitelisted": whitelist.is_whitelisted(ip_address),
        "state": classify(record, violations > 0, now).value,
        "block": {
            "blocked": bool(record and record.is_blocking(now)),
            "permanent": bool(record and record.permanent),
            "reason": record.reason if record else "",
            "blocked_until": record.blocked_until.isoformat() if record and record.blocked_until else None,
            "blocked_count": record.blocked_count if record else 0,
        },
        "rate_windows": {w.endpoint: w.request_count for w in windows},
        "violations_last_hour": violations,
        "recent_events": [_log_to_dict(log) for log in recent.order_by("-created_at")[:20]],
    })


@login_required
@require_POST
def unblock_ip(request, ip_address):
    if not _valid_ip(ip_address):
        return JsonResponse({"error": "Invalid IP address"}, status=400)

    config = ShieldConfig.from_settings(settings)
    store = DjangoStore()
    reputation = IPReputationStore(store, whitelist=config.whitelist)
    engine = EscalationEngine.from_config(config, reputation, SecurityEventSink(store))

    released = async_to_sync(engine.unblock)(ip_address, actor=request.user.get_username())
    if not released:
        return JsonResponse({"success": False, "message": f"{ip_address} is not in the blocklist"}, status=404)

    logger.info("IP %s unblocked from ops by %s", ip_address, request.user.get_username())
    return JsonResponse({"success": True, "message": f"{ip_address} unblocked"})


@login_required
def export_security_events(request):
    hours = _hours(request, default=24 * 7)
    logs = SecurityLog.objects.filter(
        created_at__gte=timezone.now() - timedelta(hours=hours)
    ).order_by("-created_at")

    event_type = request.GET.get("event_type", "")
    if event_type:
        logs = logs.filter(event_type=event_type)

    wb = Workbook()
    ws = wb.active
    ws.title = "Security Events"

    ws.append([
        "No.", "Timestamp", "Event Type", "IP Address", "Severity",
        "Blocked", "Details", "User Agent",
    ])

    for idx, log in enumerate(logs, start=1):
        ws.append([
            idx,
            log.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            log.event_type,
            log.ip_address,
            log.severity,
            "yes" if log.blocked else "no",
            log.details,
            log.user_agent,
        ])

    response = HttpResponse(
        content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    response["Content-Disposition"] = 'attachment; filename="security_events.xlsx"'
    wb.save(response)
    return response
