import logging

from django.conf import settings
from django.core.management.base import BaseCommand

from decision_engine.config import ShieldConfig
from decision_engine.redis_client import RedisClientSingleton
from suspicion.feeds import ExitNodeFeed

logger = logging.getLogger("suspicion")


class Command(BaseCommand):
    help = "Download the anonymizing exit node list and publish it to Redis"

    def handle(self, *args, **kwargs):
        logger.info("=== Exit node refresh started ===")

        config = ShieldConfig.from_settings(settings)
        client = RedisClientSingleton.get_client()
        if client is None:
            logger.warning("Redis not available; the list will only live in this process")

        feed = ExitNodeFeed(url=config.exit_node_feed_url, ttl=config.exit_node_cache_ttl, redis_client=client)
        count = feed.refresh()
        if count == 0:
            logger.warning("Exit node feed empty or unreachable (%s)", config.exit_node_feed_url)
        else:
            self.stdout.write(self.style.SUCCESS(f"Loaded {count} exit nodes"))

        logger.info("=== Exit node refresh finished ===")
