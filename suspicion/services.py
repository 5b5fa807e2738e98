import re
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import List
from urllib.parse import urlparse

BOT_USER_AGENT_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"curl", r"wget", r"python", r"requests", r"scrapy",
        r"bot", r"crawler", r"spider", r"scraper",
        r"headless", r"phantom", r"selenium", r"webdriver",
    )
]

# dicek terhadap hostname referer
LOW_TRUST_REFERER_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\.tk$", r"\.ml$", r"\.ga$", r"\.cf$",  # free domains
        r"bit\.ly", r"tinyurl", r"goo\.gl",  # URL shorteners
        r"localhost", r"127\.0\.0\.1",
    )
]

MIN_USER_AGENT_LENGTH = 10


@dataclass
class SuspicionAnalysisResult:
    score: int = 0
    reasons: List[str] = field(default_factory=list)
    is_suspicious: bool = False

    def to_dict(self):
        return {"score": self.score, "reasons": list(self.reasons), "is_suspicious": self.is_suspicious}


def referer_host(referer):
    host = urlparse(referer).hostname if "://" in referer else None
    return (host or referer).strip().lower()


class SuspicionScorer:
    """
    Skor heuristik dari metadata request (header, frekuensi, exit node).
    Hasilnya hanya advisory: dicatat & dipakai eskalasi, tidak pernah
    menolak request sendirian.
    """

    def __init__(self, suspicion_threshold=40, high_frequency_threshold=50):
        self.suspicion_threshold = suspicion_threshold
        self.high_frequency_threshold = high_frequency_threshold

    def analyze(
        self,
        user_agent,
        referer,
        accept,
        accept_language,
        recent_request_count=0,
        is_known_exit_node=False,
    ) -> SuspicionAnalysisResult:
        user_agent = user_agent or ""
        referer = referer or ""
        result = SuspicionAnalysisResult()

        for pattern in BOT_USER_AGENT_PATTERNS:
            if pattern.search(user_agent):
                result.score += 30
                result.reasons.append(f"Bot-like user agent: {pattern.pattern}")
                break

        if len(user_agent) < MIN_USER_AGENT_LENGTH:
            result.score += 20
            result.reasons.append("Missing or very short user agent")

        if referer:
            host = referer_host(referer)
            for pattern in LOW_TRUST_REFERER_PATTERNS:
                if pattern.search(host):
                    result.score += 15
                    result.reasons.append(f"Suspicious referer: {pattern.pattern}")

        if not accept:
            result.score += 10
            result.reasons.append("Missing Accept header")

        if not accept_language:
            result.score += 10
            result.reasons.append("Missing Accept-Language header")

        if is_known_exit_node:
            result.score += 25
            result.reasons.append("Anonymizing exit node detected")

        if recent_request_count > self.high_frequency_threshold:
            result.score += 20
            result.reasons.append(f"High request frequency: {recent_request_count} requests/minute")

        result.is_suspicious = result.score >= self.suspicion_threshold
        return result


class RequestFrequencyTracker:
    """
    Jumlah request per IP dalam jendela trailing (default 60 detik).
    Per proses saja, bukan sumber kebenaran lintas proses.
    """

    def __init__(self, window_seconds=60, clock=time.monotonic):
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits = {}
        self._lock = threading.Lock()

    def hit(self, ip):
        """Record one request from ``ip`` and return the trailing count."""
        now = self.clock()
        with self._lock:
            hits = self._hits.setdefault(ip, deque())
            hits.append(now)
            self._trim(hits, now)
            return len(hits)

    def count(self, ip):
        now = self.clock()
        with self._lock:
            hits = self._hits.get(ip)
            if not hits:
                return 0
            self._trim(hits, now)
            return len(hits)

    def sweep(self):
        """Drop IPs with no request inside the window. Returns how many."""
        now = self.clock()
        removed = 0
        with self._lock:
            for ip in list(self._hits):
                hits = self._hits[ip]
                self._trim(hits, now)
                if not hits:
                    del self._hits[ip]
                    removed += 1
        return removed

    def __len__(self):
        with self._lock:
            return len(self._hits)

    def _trim(self, hits, now):
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
