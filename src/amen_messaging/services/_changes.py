"""Queue authoritative snapshots of changed rows on the outbox."""
from __future__ import annotations

from uuid import UUID

from amen_messaging.application.exceptions import (
    ConversationNotFoundError,
    MessageNotFoundError,
)
from amen_messaging.application.sync.codec import (
    CONVERSATION_CHANGED,
    MESSAGE_CHANGED,
    conversation_event,
    message_event,
)
from amen_messaging.application.uow import UnitOfWork
from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.message import Message


async def conversation_changed(conversation_id: UUID, uow: UnitOfWork) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    if conversation is None:
        raise ConversationNotFoundError("Conversation not found")
    await uow.outbox.add(CONVERSATION_CHANGED, conversation_event(conversation))
    return conversation


async def message_changed(message_id: UUID, uow: UnitOfWork) -> Message:
    message = await uow.messages.get_by_id(message_id)
    if message is None:
        raise MessageNotFoundError("Message not found")
    await uow.outbox.add(MESSAGE_CHANGED, message_event(message))
    return message
