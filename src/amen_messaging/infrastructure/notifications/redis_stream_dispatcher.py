"""Push-notification jobs handed to the notification service through a Redis stream."""
from __future__ import annotations

import json
import logging
from typing import Any
from uuid import UUID

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class RedisStreamNotificationDispatcher:
    """Implements application.ports.notifications.NotificationDispatcher."""

    def __init__(
        self,
        redis: aioredis.Redis,
        stream: str,
        *,
        maxlen: int = 100_000,
    ) -> None:
        self._redis = redis
        self._stream = stream
        self._maxlen = maxlen

    async def notify(
        self,
        account_id: str,
        event: str,
        conversation_id: UUID,
        data: dict[str, Any],
    ) -> None:
        fields = {
            "event_type": event,
            "account_id": account_id,
            "conversation_id": str(conversation_id),
            "data": json.dumps(data),
        }
        entry_id = await self._redis.xadd(
            self._stream, fields, maxlen=self._maxlen, approximate=True,
        )
        logger.debug("Queued %s for %s as %s", event, account_id, entry_id)
