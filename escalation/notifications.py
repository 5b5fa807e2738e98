import logging
from smtplib import SMTPException

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


class BlockNotifier:
    """Kirim email ke admin setiap kali eskalasi mem-blok IP."""

    def __init__(self, recipient, from_email=None):
        self.recipient = recipient
        self.from_email = from_email or getattr(settings, "DEFAULT_FROM_EMAIL", None)

    def notify(self, record):
        if not self.recipient:
            return False

        if record.permanent:
            subject = f"[FormShield] IP {record.ip} blocked permanently"
            until = "never (permanent)"
        else:
            subject = f"[FormShield] IP {record.ip} blocked"
            until = record.blocked_until.isoformat() if record.blocked_until else "-"

        body = (
            f"IP address: {record.ip}\n"
            f"Reason: {record.reason}\n"
            f"Blocked until: {until}\n"
            f"Times blocked: {record.blocked_count}\n"
        )
        try:
            send_mail(subject, body, self.from_email, [self.recipient], fail_silently=False)
        except (SMTPException, OSError) as e:
            logger.error("Block notification for %s failed: %s", record.ip, e)
            return False
        logger.info("Block notification for %s sent to %s", record.ip, self.recipient)
        return True
