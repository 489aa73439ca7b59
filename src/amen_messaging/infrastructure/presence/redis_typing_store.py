"""Typing indicators kept in Redis, one hash per conversation."""
from __future__ import annotations

import logging
import math
from uuid import UUID

import redis.asyncio as aioredis
from pydantic import TypeAdapter, ValidationError

from amen_messaging.domain.entities.typing_state import TypingState

logger = logging.getLogger(__name__)

_adapter = TypeAdapter(TypingState)


class RedisTypingStore:
    """Implements application.ports.typing_store.TypingStore.

    Each field holds one account's state. The whole key expires once nobody
    has typed for the timeout; stale fields inside a live key are filtered by
    their ``updated_at`` on read.
    """

    def __init__(self, redis: aioredis.Redis, prefix: str) -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, conversation_id: UUID) -> str:
        return f"{self._prefix}:{conversation_id}"

    async def set(self, state: TypingState, ttl_seconds: float) -> None:
        key = self._key(state.conversation_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hset(key, state.account_id, _adapter.dump_json(state))
            pipe.expire(key, max(1, math.ceil(ttl_seconds)))
            await pipe.execute()

    async def clear(self, conversation_id: UUID, account_id: str) -> None:
        await self._redis.hdel(self._key(conversation_id), account_id)

    async def list_states(self, conversation_id: UUID) -> list[TypingState]:
        raw = await self._redis.hgetall(self._key(conversation_id))
        states: list[TypingState] = []
        for account_id, value in raw.items():
            try:
                states.append(_adapter.validate_json(value))
            except ValidationError:
                logger.warning("Discarding unreadable typing state for %s", account_id)
        return states
