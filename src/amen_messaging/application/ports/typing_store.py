from __future__ import annotations

from typing import Protocol
from uuid import UUID

from amen_messaging.domain.entities.typing_state import TypingState


class TypingStore(Protocol):
    async def set(self, state: TypingState, ttl_seconds: float) -> None: ...

    async def clear(self, conversation_id: UUID, account_id: str) -> None: ...

    async def list_states(self, conversation_id: UUID) -> list[TypingState]: ...
