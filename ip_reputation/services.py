import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from decision_engine.clock import utcnow
from decision_engine.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


def ip_to_int(ip: str) -> int:
    """Dotted IPv4 -> 32-bit integer. Raises ValueError for anything else."""
    octets = ip.strip().split(".")
    if len(octets) != 4:
        raise ValueError(f"not an IPv4 address: {ip!r}")
    value = 0
    for octet in octets:
        number = int(octet)
        if not 0 <= number <= 255:
            raise ValueError(f"octet out of range in {ip!r}")
        value = (value << 8) + number
    return value


def ip_in_cidr(ip: str, cidr: str) -> bool:
    """
    True kalau ``ip`` ada di dalam blok ``cidr`` (IPv4).
    Entry CIDR yang rusak tidak pernah raise, hasilnya cukup False.
    """
    try:
        network, prefix = cidr.split("/")
        prefix_len = int(prefix)
        if not 0 <= prefix_len <= 32:
            return False
        mask = (0xFFFFFFFF << (32 - prefix_len)) & 0xFFFFFFFF
        return (ip_to_int(ip) & mask) == (ip_to_int(network) & mask)
    except (ValueError, AttributeError):
        return False


@dataclass
class BlockState:
    blocked: bool
    reason: str = ""
    until: Optional[datetime] = None
    permanent: bool = False
    blocked_count: int = 0
    error: Optional[str] = None  # diisi kalau store gagal (fail open)


class IPReputationStore:
    """Persisted block/allow state per IP, plus the static whitelist."""

    def __init__(self, store, whitelist=(), clock=utcnow):
        self.store = store
        self.whitelist = tuple(entry.strip() for entry in whitelist if entry and entry.strip())
        self.clock = clock

    def is_whitelisted(self, ip: str) -> bool:
        if not ip:
            return False
        for entry in self.whitelist:
            if "/" in entry:
                if ip_in_cidr(ip, entry):
                    return True
            elif ip == entry:
                return True
        return False

    async def check(self, ip: str) -> BlockState:
        try:
            record = await self.store.get_reputation(ip)
        except StoreUnavailable as e:
            # fallback: jangan blok request
            return BlockState(blocked=False, error=str(e))

        if record is None or not record.is_blocking(self.clock()):
            return BlockState(blocked=False, blocked_count=record.blocked_count if record else 0)

        return BlockState(
            blocked=True,
            reason=record.reason,
            until=record.blocked_until,
            permanent=record.permanent,
            blocked_count=record.blocked_count,
        )

    async def block(self, ip, reason, duration_hours=None, permanent=False):
        """Upsert the block record. Raises StoreUnavailable on store failure."""
        if self.is_whitelisted(ip):
            logger.info("Not blocking whitelisted IP %s (%s)", ip, reason)
            return None

        record = await self.store.upsert_reputation(ip, reason, duration_hours, permanent)
        if record.permanent:
            logger.warning("IP %s blocked permanently: %s (count=%s)", ip, reason, record.blocked_count)
        else:
            logger.warning(
                "IP %s blocked until %s: %s (count=%s)",
                ip, record.blocked_until, reason, record.blocked_count,
            )
        return record

    async def unblock(self, ip) -> bool:
        released = await self.store.release_reputation(ip)
        if released:
            logger.info("IP %s unblocked", ip)
        return released
