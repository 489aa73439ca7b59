"""Initial contents for live views, read from the database and the typing store."""
from __future__ import annotations

import logging
from typing import Any, AsyncContextManager, Callable

from amen_messaging.application.dto.conversation import ConversationFilterDTO
from amen_messaging.application.ports.typing_store import TypingStore
from amen_messaging.application.sync.scopes import (
    ConversationListScope,
    Entity,
    MessageListScope,
    Scope,
    TypingScope,
)
from amen_messaging.application.uow import UnitOfWork

logger = logging.getLogger(__name__)

UoWFactory = Callable[[], AsyncContextManager[Any]]


class DbSnapshotLoader:
    """Implements application.sync.synchronizer.SnapshotLoader."""

    def __init__(
        self,
        uow_factory: UoWFactory,
        typing_store: TypingStore | None = None,
        *,
        conversation_limit: int = 100,
        message_limit: int = 100,
    ) -> None:
        self._uow_factory = uow_factory
        self._typing_store = typing_store
        self._conversation_limit = conversation_limit
        self._message_limit = message_limit

    async def load(self, scope: Scope) -> list[Entity]:
        if isinstance(scope, TypingScope):
            if self._typing_store is None:
                return []
            return list(await self._typing_store.list_states(scope.conversation_id))

        async with self._uow_factory() as uow:
            return await self._load_from(uow, scope)

    async def _load_from(self, uow: UnitOfWork, scope: Scope) -> list[Entity]:
        if isinstance(scope, ConversationListScope):
            filters = ConversationFilterDTO(limit=self._conversation_limit)
            return list(await uow.conversations.list_for_account(scope.account_id, filters))
        if isinstance(scope, MessageListScope):
            return list(
                await uow.messages.list_messages(scope.conversation_id, limit=self._message_limit)
            )
        return []
