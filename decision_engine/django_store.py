import functools
import logging
from datetime import timedelta

from asgiref.sync import sync_to_async
from django.core.exceptions import ObjectDoesNotExist
from django.db import DatabaseError, IntegrityError, models, transaction
from django.db.models import Case, F, Value, When
from django.utils import timezone

from ip_reputation.models import BlockedIp
from rate_limit.models import RateLimitWindow
from security_events.models import SecurityLog

from .exceptions import StoreUnavailable
from .store import RateWindowHit, ShieldStore

logger = logging.getLogger(__name__)


def _store_operation(func):
    """
    Run an ORM operation off the event loop. DB errors, and a row that vanished
    between the upsert and the read back, become StoreUnavailable.
    """
    operation = func.__name__.lstrip("_")

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await sync_to_async(func, thread_sensitive=True)(self, *args, **kwargs)
        except (DatabaseError, ObjectDoesNotExist) as e:
            raise StoreUnavailable(operation, str(e)) from e

    return wrapper


class DjangoStore(ShieldStore):
    """
    Store berbasis Django ORM (sqlite untuk dev, Postgres untuk production).

    Semua mutasi memakai UPDATE dengan ekspresi F()/Case sehingga nilai
    berikutnya dihitung oleh database, bukan read-then-write di Python.
    Insert pertama yang bentrok (unique) diulang sebagai UPDATE.
    """

    @_store_operation
    def get_reputation(self, ip):
        row = BlockedIp.objects.filter(ip_address=ip).first()
        return row.to_record() if row else None

    @_store_operation
    def upsert_reputation(self, ip, reason, duration_hours=None, permanent=False):
        now = timezone.now()
        blocked_until = None
        if duration_hours is not None:
            blocked_until = now + timedelta(hours=duration_hours)

        changes = {
            "reason": reason,
            "blocked_until": blocked_until,
            "blocked_count": F("blocked_count") + 1,
            "updated_at": now,
        }
        # blokir permanen tidak pernah diturunkan jadi sementara
        if permanent:
            changes["permanent"] = True

        with transaction.atomic():
            updated = BlockedIp.objects.filter(ip_address=ip).update(**changes)
            if not updated:
                try:
                    with transaction.atomic():
                        BlockedIp.objects.create(
                            ip_address=ip,
                            reason=reason,
                            blocked_until=blocked_until,
                            permanent=permanent,
                            blocked_count=1,
                            created_at=now,
                            updated_at=now,
                        )
                except IntegrityError:
                    # request lain membuat row duluan
                    BlockedIp.objects.filter(ip_address=ip).update(**changes)
            row = BlockedIp.objects.get(ip_address=ip)
        return row.to_record()

    @_store_operation
    def release_reputation(self, ip):
        updated = BlockedIp.objects.filter(ip_address=ip).update(
            permanent=False,
            blocked_until=None,
            updated_at=timezone.now(),
        )
        return updated > 0

    @_store_operation
    def get_rate_window(self, ip, endpoint, window_ms):
        cutoff = timezone.now() - timedelta(milliseconds=window_ms)
        row = RateLimitWindow.objects.filter(
            ip_address=ip, endpoint=endpoint, window_start__gt=cutoff
        ).first()
        return row.to_window() if row else None

    @_store_operation
    def upsert_rate_window(self, ip, endpoint, window_ms):
        now = timezone.now()
        window = timedelta(milliseconds=window_ms)
        cutoff = now - window

        changes = {
            "request_count": Case(
                When(window_start__gt=cutoff, then=F("request_count") + 1),
                default=Value(1),
                output_field=models.PositiveIntegerField(),
            ),
            "window_start": Case(
                When(window_start__gt=cutoff, then=F("window_start")),
                default=Value(now),
                output_field=models.DateTimeField(),
            ),
            "last_request": now,
        }

        with transaction.atomic():
            rows = RateLimitWindow.objects.filter(ip_address=ip, endpoint=endpoint)
            if not rows.update(**changes):
                try:
                    with transaction.atomic():
                        RateLimitWindow.objects.create(
                            ip_address=ip,
                            endpoint=endpoint,
                            window_start=now,
                            request_count=1,
                            last_request=now,
                        )
                except IntegrityError:
                    rows.update(**changes)
            row = rows.get()
        return RateWindowHit(total_hits=row.request_count, reset_time=row.window_start + window)

    @_store_operation
    def append_security_event(self, event):
        SecurityLog.from_event(event).save()

    @_store_operation
    def count_recent_events(self, ip, event_type, since_hours):
        since = timezone.now() - timedelta(hours=since_hours)
        return SecurityLog.objects.filter(
            ip_address=ip, event_type=event_type, created_at__gte=since
        ).count()
