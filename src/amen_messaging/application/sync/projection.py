"""Ordered, incrementally maintained views over conversations, messages and typing."""
from __future__ import annotations

import bisect
from datetime import datetime
from typing import Any, Generic, Hashable, TypeVar
from uuid import UUID

from amen_messaging.application.ports.clock import Clock, SystemClock
from amen_messaging.application.sync.scopes import Change
from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.message import Message
from amen_messaging.domain.entities.typing_state import TypingState
from amen_messaging.domain.value_objects.enums import ChangeKind

T = TypeVar("T")


class _SortedView(Generic[T]):
    """Keyed items kept in sort order; moving one entry never reorders the others."""

    def __init__(self) -> None:
        self._items: dict[Hashable, T] = {}
        self._keys: dict[Hashable, tuple[Any, ...]] = {}
        self._order: list[tuple[Any, ...]] = []

    def sort_key(self, item: T) -> tuple[Any, ...]:
        raise NotImplementedError

    def __contains__(self, item_id: Hashable) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: Hashable) -> T | None:
        return self._items.get(item_id)

    def _put(self, item_id: Hashable, item: T) -> None:
        self._discard(item_id)
        key = (*self.sort_key(item), item_id)
        self._items[item_id] = item
        self._keys[item_id] = key
        bisect.insort(self._order, key)

    def _discard(self, item_id: Hashable) -> bool:
        key = self._keys.pop(item_id, None)
        if key is None:
            return False
        del self._items[item_id]
        idx = bisect.bisect_left(self._order, key)
        del self._order[idx]
        return True

    def snapshot(self) -> list[T]:
        return [self._items[key[-1]] for key in self._order]


class ConversationListProjection(_SortedView[Conversation]):
    """One account's inbox: pinned first, then most recent activity."""

    def __init__(self, account_id: str) -> None:
        super().__init__()
        self.account_id = account_id

    def sort_key(self, item: Conversation) -> tuple[Any, ...]:
        state = item.state_for(self.account_id)
        pinned = state is not None and state.is_pinned
        return (0 if pinned else 1, -item.activity_at.timestamp(), str(item.id))

    def load(self, items: list[Conversation]) -> None:
        for item in items:
            if item.is_visible_to(self.account_id):
                self._put(item.id, item)

    def apply(self, change: Change) -> bool:
        conversation = change.entity
        if not isinstance(conversation, Conversation):
            return False
        if change.kind == ChangeKind.REMOVE:
            return self._discard(conversation.id)

        held = self.get(conversation.id)
        if held is not None and conversation.revision < held.revision:
            return False
        if not conversation.is_visible_to(self.account_id):
            return self._discard(conversation.id)
        if held == conversation:
            return False
        self._put(conversation.id, conversation)
        return True


class MessageListProjection(_SortedView[Message]):
    """Messages of one conversation in chronological order, including local echoes."""

    def __init__(self, conversation_id: UUID) -> None:
        super().__init__()
        self.conversation_id = conversation_id
        self._pending: set[UUID] = set()

    def sort_key(self, item: Message) -> tuple[Any, ...]:
        return item.sort_key

    def is_pending(self, message_id: UUID) -> bool:
        return message_id in self._pending

    def load(self, items: list[Message]) -> None:
        for item in items:
            if item.conversation_id == self.conversation_id:
                self._put(item.id, item)

    def echo(self, message: Message) -> bool:
        """Show an unsent message immediately. Ignored once the id is known."""
        if message.conversation_id != self.conversation_id or message.id in self:
            return False
        self._pending.add(message.id)
        self._put(message.id, message)
        return True

    def apply(self, change: Change) -> bool:
        message = change.entity
        if not isinstance(message, Message) or message.conversation_id != self.conversation_id:
            return False
        if change.kind == ChangeKind.REMOVE:
            self._pending.discard(message.id)
            return self._discard(message.id)

        if message.id in self._pending:
            self._pending.discard(message.id)
            self._put(message.id, message)
            return True

        held = self.get(message.id)
        if held is not None and (message.revision < held.revision or held == message):
            return False
        self._put(message.id, message)
        return True


class TypingProjection:
    """Who is typing in a conversation right now."""

    def __init__(
        self,
        conversation_id: UUID,
        timeout_seconds: float,
        clock: Clock | None = None,
    ) -> None:
        self.conversation_id = conversation_id
        self._timeout = timeout_seconds
        self._clock = clock or SystemClock()
        self._states: dict[str, TypingState] = {}

    def load(self, items: list[TypingState]) -> None:
        for item in items:
            self._states[item.account_id] = item

    def apply(self, change: Change) -> bool:
        state = change.entity
        if not isinstance(state, TypingState) or state.conversation_id != self.conversation_id:
            return False
        if change.kind == ChangeKind.REMOVE or not state.is_typing:
            return self._states.pop(state.account_id, None) is not None
        held = self._states.get(state.account_id)
        if held is not None and held.updated_at > state.updated_at:
            return False
        self._states[state.account_id] = state
        return True

    def snapshot(self, now: datetime | None = None) -> list[TypingState]:
        now = now or self._clock.now()
        expired = [
            account_id
            for account_id, state in self._states.items()
            if not state.is_active(now, self._timeout)
        ]
        for account_id in expired:
            del self._states[account_id]
        return sorted(self._states.values(), key=lambda s: (s.updated_at, s.account_id))
