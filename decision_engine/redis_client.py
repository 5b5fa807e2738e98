import logging
import time

import redis
from django.conf import settings

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 30


# === Redis Singleton ===
class RedisClientSingleton:
    _instance = None
    _last_attempt = 0.0

    @classmethod
    def get_client(cls):
        """Shared Redis client, or None when Redis is not configured / down."""
        if cls._instance is not None:
            return cls._instance

        url = getattr(settings, "REDIS_URL", "")
        if not url:
            return None

        # jangan coba konek ulang di setiap request
        now = time.monotonic()
        if cls._last_attempt and now - cls._last_attempt < RETRY_AFTER_SECONDS:
            return None
        cls._last_attempt = now

        try:
            client = redis.from_url(url, socket_connect_timeout=1, socket_timeout=1)
            # test koneksi
            client.ping()
            cls._instance = client
            logger.info("Redis client initialized (singleton)")
        except redis.RedisError as e:
            logger.warning("Redis unavailable, shared cache disabled: %s", e)
            cls._instance = None
        return cls._instance

    @classmethod
    def reset(cls):
        cls._instance = None
        cls._last_attempt = 0.0
