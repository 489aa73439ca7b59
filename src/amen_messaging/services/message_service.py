from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from amen_messaging.application.dto.message import SendMessageDTO
from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.exceptions import (
    InvalidInputError,
    MessageNotFoundError,
    MessagesNotAllowedError,
    PermissionDeniedError,
    UserBlockedError,
)
from amen_messaging.application.notifications import NotificationJob, dispatch
from amen_messaging.application.policies.permissions import assert_conversation_access
from amen_messaging.application.policies.relationship_gate import (
    can_message,
    error_for,
)
from amen_messaging.application.ports.notifications import NotificationDispatcher
from amen_messaging.application.uow import UnitOfWork
from amen_messaging.config import settings
from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.message import Message
from amen_messaging.domain.value_objects.enums import GateReason, MessageType, RequestStatus
from amen_messaging.domain.value_objects.ids import SYSTEM_SENDER_ID
from amen_messaging.domain.value_objects.tombstone import DELETED_MESSAGE_PREVIEW, Tombstone
from amen_messaging.services._changes import conversation_changed, message_changed
from amen_messaging.services.request_service import open_request, resolve_request

logger = logging.getLogger(__name__)

NOTIFY_MESSAGE = "message.created"
NOTIFY_REACTION = "message.reaction"


def _validate_text(text: str, *, allow_empty: bool) -> str:
    text = text.strip()
    if not text and not allow_empty:
        raise InvalidInputError("Message cannot be empty")
    if len(text) > settings.MAX_MESSAGE_LENGTH:
        raise InvalidInputError(
            f"Message is too long (max {settings.MAX_MESSAGE_LENGTH} characters)"
        )
    return text


async def _deliver_direct(
    conversation: Conversation,
    sender_id: str,
    uow: UnitOfWork,
) -> bool:
    """Decide how a message enters a direct conversation.

    Returns True for normal delivery and False when the message is held
    behind a pending request. Raises when delivery is refused.
    """
    recipient_id = conversation.other_participant(sender_id)
    if recipient_id is None:
        return True
    if await uow.relationships.is_blocked(sender_id, recipient_id):
        raise UserBlockedError("Messaging is blocked between these accounts")

    status = conversation.request_status
    if status == RequestStatus.ACCEPTED:
        return True
    if status == RequestStatus.DECLINED:
        raise MessagesNotAllowedError("This account is not accepting your messages")
    if status == RequestStatus.BLOCKED:
        raise UserBlockedError("Messaging is blocked between these accounts")

    if status == RequestStatus.PENDING and sender_id != conversation.requester_id:
        # A reply from the recipient answers the request.
        request = await uow.requests.get_for_conversation(conversation.id)
        if request is not None:
            await resolve_request(request, RequestStatus.ACCEPTED, uow)
        else:
            await uow.conversations_w.set_request_status(
                conversation.id, RequestStatus.ACCEPTED, expected=(RequestStatus.PENDING,),
            )
        return True

    decision = await can_message(sender_id, recipient_id, uow.relationships)
    if not decision.allowed:
        raise error_for(decision)

    if decision.reason == GateReason.MUTUAL_FOLLOW:
        request = await uow.requests.get_for_conversation(conversation.id)
        if request is not None:
            await resolve_request(request, RequestStatus.ACCEPTED, uow)
        else:
            await uow.conversations_w.set_request_status(
                conversation.id,
                RequestStatus.ACCEPTED,
                expected=(RequestStatus.NONE, RequestStatus.PENDING),
            )
        return True

    if status == RequestStatus.PENDING:
        sent = await uow.messages.count_from_sender(conversation.id, sender_id)
        if sent >= settings.PENDING_REQUEST_MESSAGE_LIMIT:
            raise MessagesNotAllowedError(
                "Wait for your message request to be accepted before sending more"
            )
        return False

    won = await uow.conversations_w.set_request_status(
        conversation.id,
        RequestStatus.PENDING,
        expected=(RequestStatus.NONE,),
        requester_id=sender_id,
    )
    if not won:
        reloaded = await uow.conversations.get_by_id(conversation.id)
        if reloaded is None or reloaded.request_status == RequestStatus.NONE:
            raise MessagesNotAllowedError("Conversation state changed, try again")
        return await _deliver_direct(reloaded, sender_id, uow)

    await open_request(conversation.id, sender_id, recipient_id, uow)
    return False


async def send_message(
    dto: SendMessageDTO,
    principal: Principal,
    uow: UnitOfWork,
    notifier: NotificationDispatcher | None = None,
) -> tuple[Message, bool]:
    """Create a message idempotently.

    Returns (message, created). Resending with the same ``client_msg_id``
    returns the stored message with created=False. The write is committed
    before returning; notifications are dispatched afterwards and never
    affect the result.
    """
    text = _validate_text(dto.text, allow_empty=bool(dto.attachments))
    if len(dto.attachments) > settings.MAX_ATTACHMENTS:
        raise InvalidInputError(f"At most {settings.MAX_ATTACHMENTS} attachments per message")

    conversation = await uow.conversations.get_by_id(dto.conversation_id)
    conversation = assert_conversation_access(principal, conversation)

    if dto.client_msg_id is not None:
        existing = await uow.messages.get_by_id(dto.client_msg_id)
        if existing is not None:
            return _same_message(existing, dto, principal), False

    if dto.reply_to_message_id is not None:
        target = await uow.messages.get_by_id(dto.reply_to_message_id)
        if target is None or target.conversation_id != conversation.id:
            raise InvalidInputError("Replies must reference a message in the same conversation")

    delivered = True
    if not conversation.is_group:
        delivered = await _deliver_direct(conversation, principal.account_id, uow)

    now = datetime.now(timezone.utc)
    message = Message(
        id=dto.client_msg_id or uuid.uuid4(),
        conversation_id=conversation.id,
        sender_id=principal.account_id,
        type=MessageType.TEXT if text or not dto.attachments else MessageType.ATTACHMENT,
        text=text,
        created_at=now,
        attachments=dto.attachments,
        reply_to_message_id=dto.reply_to_message_id,
    )
    message, created = await uow.messages_w.create_if_not_exists(message)
    if not created:
        await uow.rollback()
        return _same_message(message, dto, principal), False

    recipients = [a for a in conversation.participant_ids if a != principal.account_id]
    await uow.conversations_w.record_message(conversation.id, message.id, message.preview(), now)
    if delivered and recipients:
        await uow.participants_w.increment_unread(conversation.id, recipients)

    message = await message_changed(message.id, uow)
    conversation = await conversation_changed(conversation.id, uow)
    await uow.commit()

    if delivered:
        dispatch(notifier, [
            NotificationJob(
                account_id=account_id,
                event=NOTIFY_MESSAGE,
                conversation_id=conversation.id,
                data={"message_id": str(message.id), "sender_id": principal.account_id},
            )
            for account_id in recipients
            if not _is_muted(conversation, account_id)
        ])
    else:
        logger.info("Message %s held behind request in %s", message.id, conversation.id)
    return message, True


def _same_message(existing: Message, dto: SendMessageDTO, principal: Principal) -> Message:
    if existing.conversation_id != dto.conversation_id or existing.sender_id != principal.account_id:
        raise InvalidInputError("Message id already in use")
    return existing


def _is_muted(conversation: Conversation, account_id: str) -> bool:
    state = conversation.state_for(account_id)
    return state is None or state.is_muted


async def append_system_message(
    conversation_id: uuid.UUID,
    text: str,
    uow: UnitOfWork,
) -> Message:
    """Record a membership or metadata change in the conversation history. Does not commit."""
    now = datetime.now(timezone.utc)
    message = Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=SYSTEM_SENDER_ID,
        type=MessageType.SYSTEM,
        text=text,
        created_at=now,
    )
    message, _ = await uow.messages_w.create_if_not_exists(message)
    await uow.conversations_w.record_message(conversation_id, message.id, text, now)
    return await message_changed(message.id, uow)


async def _assert_participant(
    conversation_id: uuid.UUID, principal: Principal, uow: UnitOfWork,
) -> None:
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)


async def list_messages(
    conversation_id: uuid.UUID,
    principal: Principal,
    cursor: str | None,
    limit: int,
    uow: UnitOfWork,
) -> list[Message]:
    await _assert_participant(conversation_id, principal, uow)
    return await uow.messages.list_messages(
        conversation_id, cursor=cursor, limit=limit,
    )


async def _load_message(
    message_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> tuple[Message, Conversation]:
    message = await uow.messages.get_by_id(message_id)
    if message is None:
        raise MessageNotFoundError("Message not found")
    conversation = await uow.conversations.get_by_id(message.conversation_id)
    if conversation is None or conversation.state_for(principal.account_id) is None:
        raise MessageNotFoundError("Message not found")
    return message, conversation


def _assert_sender(message: Message, principal: Principal) -> None:
    if message.sender_id != principal.account_id:
        raise PermissionDeniedError("Only the sender can change this message")


def _assert_live(message: Message) -> None:
    if message.is_deleted:
        raise InvalidInputError("Message was deleted")


async def edit_message(
    message_id: uuid.UUID,
    principal: Principal,
    text: str,
    uow: UnitOfWork,
) -> Message:
    message, conversation = await _load_message(message_id, principal, uow)
    _assert_sender(message, principal)
    _assert_live(message)
    text = _validate_text(text, allow_empty=bool(message.attachments))
    if text == message.text:
        return message

    await uow.messages_w.update_text(message_id, text, datetime.now(timezone.utc))
    await uow.conversations_w.update_preview(conversation.id, message_id, text)
    message = await message_changed(message_id, uow)
    await conversation_changed(conversation.id, uow)
    await uow.commit()
    return message


async def delete_message(
    message_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Message:
    """Tombstone a message for everyone. Deleting twice is a no-op."""
    message, conversation = await _load_message(message_id, principal, uow)
    _assert_sender(message, principal)
    if message.is_deleted:
        return message

    tombstone = Tombstone(deleted_at=datetime.now(timezone.utc), deleted_by=principal.account_id)
    await uow.messages_w.mark_deleted(message_id, tombstone)
    await uow.conversations_w.update_preview(conversation.id, message_id, DELETED_MESSAGE_PREVIEW)
    message = await message_changed(message_id, uow)
    await conversation_changed(conversation.id, uow)
    await uow.commit()
    return message


async def add_reaction(
    message_id: uuid.UUID,
    principal: Principal,
    emoji: str,
    uow: UnitOfWork,
    notifier: NotificationDispatcher | None = None,
) -> Message:
    """Set the caller's reaction, replacing any previous one."""
    emoji = emoji.strip()
    if not emoji or len(emoji) > settings.MAX_REACTION_LENGTH:
        raise InvalidInputError("Invalid reaction")
    message, conversation = await _load_message(message_id, principal, uow)
    _assert_live(message)
    if message.reactions.get(principal.account_id) == emoji:
        return message

    await uow.messages_w.set_reaction(message_id, principal.account_id, emoji)
    message = await message_changed(message_id, uow)
    await uow.commit()

    if (
        message.sender_id not in (principal.account_id, SYSTEM_SENDER_ID)
        and not _is_muted(conversation, message.sender_id)
    ):
        dispatch(notifier, [
            NotificationJob(
                account_id=message.sender_id,
                event=NOTIFY_REACTION,
                conversation_id=conversation.id,
                data={"message_id": str(message.id), "emoji": emoji},
            )
        ])
    return message


async def remove_reaction(
    message_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Message:
    message, _ = await _load_message(message_id, principal, uow)
    if principal.account_id not in message.reactions:
        return message
    await uow.messages_w.remove_reaction(message_id, principal.account_id)
    message = await message_changed(message_id, uow)
    await uow.commit()
    return message


async def set_pinned(
    message_id: uuid.UUID,
    principal: Principal,
    pinned: bool,
    uow: UnitOfWork,
) -> Message:
    message, _ = await _load_message(message_id, principal, uow)
    if pinned:
        _assert_live(message)
    if message.is_pinned == pinned:
        return message
    if pinned:
        await uow.messages_w.set_pinned(
            message_id, principal.account_id, datetime.now(timezone.utc),
        )
    else:
        await uow.messages_w.set_pinned(message_id, None, None)
    message = await message_changed(message_id, uow)
    await uow.commit()
    return message


async def set_starred(
    message_id: uuid.UUID,
    principal: Principal,
    starred: bool,
    uow: UnitOfWork,
) -> Message:
    """Stars are private bookmarks; each account has its own."""
    message, _ = await _load_message(message_id, principal, uow)
    if (principal.account_id in message.starred_by) == starred:
        return message
    await uow.messages_w.set_starred(message_id, principal.account_id, starred)
    message = await message_changed(message_id, uow)
    await uow.commit()
    return message


async def forward_message(
    message_id: uuid.UUID,
    target_conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
    notifier: NotificationDispatcher | None = None,
    *,
    client_msg_id: uuid.UUID | None = None,
) -> tuple[Message, bool]:
    """Send a copy of a message's text and attachments to another conversation.

    The copy belongs to the caller, carries no reply reference, and goes
    through ``send_message`` so the target's relationship gate applies.
    """
    source, _ = await _load_message(message_id, principal, uow)
    _assert_live(source)
    if source.is_system:
        raise InvalidInputError("System messages cannot be forwarded")

    dto = SendMessageDTO(
        conversation_id=target_conversation_id,
        text=source.text,
        client_msg_id=client_msg_id,
        attachments=source.attachments,
    )
    message, created = await send_message(dto, principal, uow, notifier)
    if created:
        logger.info(
            "Message %s forwarded to %s as %s", source.id, target_conversation_id, message.id,
        )
    return message, created


async def list_pinned_messages(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> list[Message]:
    await _assert_participant(conversation_id, principal, uow)
    return await uow.messages.list_pinned(conversation_id)


async def list_starred_messages(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> list[Message]:
    """The caller's own starred messages in one conversation."""
    await _assert_participant(conversation_id, principal, uow)
    return await uow.messages.list_starred(conversation_id, principal.account_id)


async def search_messages(
    conversation_id: uuid.UUID,
    principal: Principal,
    query: str,
    uow: UnitOfWork,
) -> list[Message]:
    query = query.strip()
    if not query:
        raise InvalidInputError("Search query cannot be empty")
    await _assert_participant(conversation_id, principal, uow)
    return await uow.messages.search(
        conversation_id, query, limit=settings.MESSAGE_SEARCH_LIMIT,
    )


async def mark_read(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    """Add read receipts for everything the caller has not read and clear the unread badge."""
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)

    read_ids = await uow.messages_w.mark_read(conversation_id, principal.account_id)
    for read_id in read_ids:
        await message_changed(read_id, uow)
    await uow.participants_w.reset_unread(conversation_id, principal.account_id)
    await uow.conversations_w.touch(conversation_id, datetime.now(timezone.utc))
    conversation = await conversation_changed(conversation_id, uow)
    await uow.commit()
    return conversation
