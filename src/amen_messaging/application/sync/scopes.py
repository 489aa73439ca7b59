from __future__ import annotations

from dataclasses import dataclass
from typing import Union
from uuid import UUID

from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.message import Message
from amen_messaging.domain.entities.typing_state import TypingState
from amen_messaging.domain.value_objects.enums import ChangeKind


@dataclass(frozen=True, slots=True)
class ConversationListScope:
    """The inbox of one account."""

    account_id: str


@dataclass(frozen=True, slots=True)
class MessageListScope:
    conversation_id: UUID


@dataclass(frozen=True, slots=True)
class TypingScope:
    conversation_id: UUID


Scope = Union[ConversationListScope, MessageListScope, TypingScope]
Entity = Union[Conversation, Message, TypingState]


@dataclass(frozen=True, slots=True)
class Change:
    kind: ChangeKind
    entity: Entity

    @classmethod
    def upsert(cls, entity: Entity) -> Change:
        return cls(ChangeKind.UPSERT, entity)

    @classmethod
    def remove(cls, entity: Entity) -> Change:
        return cls(ChangeKind.REMOVE, entity)


def scope_from_wire(kind: str, key: str) -> Scope:
    """Build a scope from the (kind, key) pair clients send over the socket."""
    if kind == "conversations":
        return ConversationListScope(key)
    if kind == "messages":
        return MessageListScope(UUID(key))
    if kind == "typing":
        return TypingScope(UUID(key))
    raise ValueError(f"Unknown scope kind: {kind}")


def scope_to_wire(scope: Scope) -> dict[str, str]:
    if isinstance(scope, ConversationListScope):
        return {"kind": "conversations", "key": scope.account_id}
    if isinstance(scope, MessageListScope):
        return {"kind": "messages", "key": str(scope.conversation_id)}
    return {"kind": "typing", "key": str(scope.conversation_id)}
