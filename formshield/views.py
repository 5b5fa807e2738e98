import logging

from asgiref.sync import async_to_sync
from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from decision_engine.config import ShieldConfig
from decision_engine.django_store import DjangoStore
from decision_engine.middleware import client_ip, submitted_fields
from security_events.events import EventType, SecurityEvent, Severity
from security_events.services import SecurityEventSink

from .forms import ContactForm

logger = logging.getLogger("security_events")

CONTENT_FIELDS = getattr(settings, "SHIELD_CONTENT_FIELDS", ShieldConfig.content_fields)


def healthz(request):
    return JsonResponse({"status": "ok"})


@csrf_exempt
@require_POST
def contact_submit(request):
    """
    Endpoint form publik. Pengecekan abuse (reputasi, rate limit, spam)
    sudah dijalankan ShieldMiddleware; di sini tinggal validasi input.
    """
    form = ContactForm.from_payload(submitted_fields(request), CONTENT_FIELDS)
    if not form.is_valid():
        details = form.error_details()
        ip = client_ip(request)
        async_to_sync(SecurityEventSink(DjangoStore()).append)(SecurityEvent(
            event_type=EventType.VALIDATION_FAILED,
            ip=ip,
            user_agent=request.META.get("HTTP_USER_AGENT", ""),
            request_data={"fields": sorted(form.errors)},
            severity=Severity.WARNING,
            details=f"Input validation failed for: {', '.join(sorted(form.errors))}",
        ))
        return JsonResponse({
            "error": "Invalid data",
            "message": "Please correct the errors in the form.",
            "details": details,
            "code": "VALIDATION_ERROR",
        }, status=400)

    data = form.cleaned_data
    logger.info("Contact submission accepted from %s <%s>", data["name"], data["email"])
    return JsonResponse({
        "success": True,
        "message": "Submission received",
        "data": {
            "name": data["name"],
            "email": data["email"],
            "phone": data["phone"],
            "equipment_type": data["equipment_type"],
        },
    }, status=201)
