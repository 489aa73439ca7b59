"""Change events exchanged between the outbox, the bus and the synchronizer."""
from __future__ import annotations

import logging
from typing import Any

from pydantic import TypeAdapter, ValidationError

from amen_messaging.application.sync.scopes import Change
from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.message import Message
from amen_messaging.domain.entities.typing_state import TypingState
from amen_messaging.domain.value_objects.enums import ChangeKind

logger = logging.getLogger(__name__)

CONVERSATION_CHANGED = "conversation.changed"
MESSAGE_CHANGED = "message.changed"
TYPING_CHANGED = "typing.changed"

_conversation_adapter = TypeAdapter(Conversation)
_message_adapter = TypeAdapter(Message)
_typing_adapter = TypeAdapter(TypingState)


def dump_conversation(conversation: Conversation) -> dict[str, Any]:
    return _conversation_adapter.dump_python(conversation, mode="json")


def dump_message(message: Message) -> dict[str, Any]:
    return _message_adapter.dump_python(message, mode="json")


def dump_typing(state: TypingState) -> dict[str, Any]:
    return _typing_adapter.dump_python(state, mode="json")


def load_conversation(data: dict[str, Any]) -> Conversation:
    return _conversation_adapter.validate_python(data)


def load_message(data: dict[str, Any]) -> Message:
    return _message_adapter.validate_python(data)


def conversation_event(conversation: Conversation) -> dict[str, Any]:
    return {
        "conversation_id": str(conversation.id),
        "entity": dump_conversation(conversation),
    }


def message_event(message: Message) -> dict[str, Any]:
    return {
        "conversation_id": str(message.conversation_id),
        "entity": dump_message(message),
    }


def typing_event(state: TypingState) -> dict[str, Any]:
    return {
        "conversation_id": str(state.conversation_id),
        "entity": dump_typing(state),
    }


_ADAPTERS: dict[str, TypeAdapter[Any]] = {
    CONVERSATION_CHANGED: _conversation_adapter,
    MESSAGE_CHANGED: _message_adapter,
    TYPING_CHANGED: _typing_adapter,
}


def change_from_event(event_type: str, data: dict[str, Any]) -> Change | None:
    """Decode a bus event into a synchronizer change. Unknown or malformed events yield None."""
    adapter = _ADAPTERS.get(event_type)
    if adapter is None or "entity" not in data:
        return None
    try:
        entity = adapter.validate_python(data["entity"])
    except ValidationError:
        logger.warning("Dropping malformed %s event", event_type, exc_info=True)
        return None
    kind = ChangeKind(data.get("kind", ChangeKind.UPSERT))
    return Change(kind, entity)
