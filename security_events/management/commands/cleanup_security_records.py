import logging
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone

from ip_reputation.models import BlockedIp
from rate_limit.models import RateLimitWindow
from security_events.models import SecurityLog

logger = logging.getLogger("security_events")

RATE_WINDOW_RETENTION_DAYS = 7


class Command(BaseCommand):
    help = "Delete old security logs and rate windows, clear lapsed temporary blocks"

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=getattr(settings, "SHIELD_RETENTION_DAYS", 30),
            help="Keep security logs newer than this many days",
        )

    def handle(self, *args, **options):
        logger.info("=== Security records cleanup started ===")
        now = timezone.now()

        try:
            logs_deleted, _ = SecurityLog.objects.filter(
                created_at__lt=now - timedelta(days=options["days"])
            ).delete()
            windows_deleted, _ = RateLimitWindow.objects.filter(
                last_request__lt=now - timedelta(days=RATE_WINDOW_RETENTION_DAYS)
            ).delete()
            # row dan blocked_count tetap ada, hanya tanggal yang kadaluarsa
            lapsed = BlockedIp.objects.filter(
                Q(permanent=False) & Q(blocked_until__lt=now)
            ).update(blocked_until=None, updated_at=now)
        except DatabaseError as e:
            logger.exception("Cleanup failed due to: %s", e)
            raise

        logger.info(
            "Cleanup done: %s security logs, %s rate windows deleted, %s lapsed blocks cleared",
            logs_deleted, windows_deleted, lapsed,
        )
        self.stdout.write(self.style.SUCCESS(
            f"Deleted {logs_deleted} logs, {windows_deleted} windows; cleared {lapsed} lapsed blocks"
        ))
        logger.info("=== Security records cleanup finished ===")
