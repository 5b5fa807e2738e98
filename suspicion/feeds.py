import logging
import threading
import time

import redis
import requests

from decision_engine.config import TOR_EXIT_LIST_URL

logger = logging.getLogger(__name__)

CACHE_KEY = "formshield:exit_nodes"


def parse_feed(text):
    return {
        line.strip()
        for line in text.splitlines()
        if line.strip() and not line.startswith("#")
    }


class ExitNodeFeed:
    """
    Daftar exit node anonim (Tor) untuk SuspicionScorer.

    - ``refresh()`` download feed (requests) lalu simpan ke Redis (setex)
      supaya semua proses memakai satu salinan. Dipanggil dari cron.
    - ``contains()`` hanya membaca set di memory, yang di-reload dari
      Redis kalau sudah lebih tua dari TTL. Tidak pernah hit network.
    """

    def __init__(self, url=TOR_EXIT_LIST_URL, ttl=3600, redis_client=None, timeout=10, clock=time.monotonic):
        self.url = url
        self.ttl = ttl
        self.redis_client = redis_client
        self.timeout = timeout
        self.clock = clock
        self._nodes = frozenset()
        self._loaded_at = None
        self._lock = threading.Lock()

    def contains(self, ip):
        if not ip:
            return False
        self._reload_if_stale()
        return ip in self._nodes

    def __len__(self):
        return len(self._nodes)

    def refresh(self):
        """Download the feed and publish it. Returns the number of nodes (0 on failure)."""
        try:
            resp = requests.get(self.url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error("Error loading exit node feed %s: %s", self.url, e)
            return 0

        nodes = parse_feed(resp.text)
        self._set(nodes)

        if self.redis_client is not None:
            try:
                self.redis_client.setex(CACHE_KEY, self.ttl, "\n".join(sorted(nodes)))
            except redis.RedisError as e:
                logger.warning("Could not cache exit node feed in Redis: %s", e)

        logger.info("Exit node feed refreshed (%s nodes)", len(nodes))
        return len(nodes)

    def _reload_if_stale(self):
        if self._loaded_at is not None and self.clock() - self._loaded_at < self.ttl:
            return
        if self.redis_client is None:
            # tanpa Redis: pakai set yang terakhir di-refresh
            self._loaded_at = self.clock()
            return
        try:
            cached = self.redis_client.get(CACHE_KEY)
        except redis.RedisError as e:
            logger.warning("Redis GET exit nodes failed, keeping in-memory copy: %s", e)
            self._loaded_at = self.clock()
            return
        if cached:
            if isinstance(cached, bytes):
                cached = cached.decode("utf-8")
            self._set(parse_feed(cached))
        else:
            self._loaded_at = self.clock()

    def _set(self, nodes):
        with self._lock:
            self._nodes = frozenset(nodes)
            self._loaded_at = self.clock()
