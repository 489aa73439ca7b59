"""One-time script: create the Redis Streams consumer group for profile events."""
from __future__ import annotations

import asyncio
import logging

import redis.asyncio as aioredis

from amen_messaging.config import settings
from amen_messaging.infrastructure.bus.redis_streams import RedisStreamConsumer

logger = logging.getLogger(__name__)


async def _noop(_event_type: str, _fields: dict) -> None:
    return None


async def create_group() -> None:
    r = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        consumer = RedisStreamConsumer(
            r,
            settings.PROFILE_EVENTS_STREAM,
            settings.PROFILE_EVENTS_GROUP,
            "bootstrap",
            _noop,
        )
        await consumer.ensure_group()
        logger.info(
            "Consumer group '%s' ready on stream '%s'",
            settings.PROFILE_EVENTS_GROUP,
            settings.PROFILE_EVENTS_STREAM,
        )
    finally:
        await r.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_group())


if __name__ == "__main__":
    main()
