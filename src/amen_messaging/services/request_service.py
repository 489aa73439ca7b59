"""Message request lifecycle: none → pending → accepted | declined | blocked."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.exceptions import (
    ConversationNotFoundError,
    PermissionDeniedError,
)
from amen_messaging.application.uow import UnitOfWork
from amen_messaging.domain.entities.message_request import MessageRequest
from amen_messaging.domain.value_objects.enums import RequestStatus
from amen_messaging.services._changes import conversation_changed

logger = logging.getLogger(__name__)


async def open_request(
    conversation_id: uuid.UUID,
    sender_id: str,
    recipient_id: str,
    uow: UnitOfWork,
) -> MessageRequest:
    """Create the pending request for a conversation, or return the one already there."""
    request = MessageRequest(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        status=RequestStatus.PENDING,
        created_at=datetime.now(timezone.utc),
    )
    request, created = await uow.requests_w.create_if_absent(request)
    if created:
        logger.info(
            "Message request %s opened: %s -> %s", request.id, sender_id, recipient_id,
        )
    return request


async def resolve_request(
    request: MessageRequest,
    status: RequestStatus,
    uow: UnitOfWork,
) -> MessageRequest:
    """Move a pending request and its conversation to a terminal status.

    Both rows are updated with compare-and-set guards, so a retried or
    concurrent call that loses the race leaves the winner's state intact.
    Does not commit.
    """
    now = datetime.now(timezone.utc)
    moved = await uow.requests_w.transition(request.id, status, now)
    if moved:
        await uow.conversations_w.set_request_status(
            request.conversation_id,
            status,
            expected=(RequestStatus.NONE, RequestStatus.PENDING),
        )
        logger.info("Message request %s %s", request.id, status.value)
    current = await uow.requests.get_by_id(request.id)
    return current or request


async def _load_for_recipient(
    request_id: uuid.UUID, principal: Principal, uow: UnitOfWork,
) -> MessageRequest:
    request = await uow.requests.get_by_id(request_id)
    if request is None:
        raise ConversationNotFoundError("Message request not found")
    if request.recipient_id != principal.account_id:
        raise PermissionDeniedError("Only the recipient can answer a message request")
    return request


async def _answer(
    request_id: uuid.UUID,
    principal: Principal,
    status: RequestStatus,
    uow: UnitOfWork,
) -> MessageRequest:
    request = await _load_for_recipient(request_id, principal, uow)
    if request.status.is_terminal:
        return request

    request = await resolve_request(request, status, uow)
    if status == RequestStatus.BLOCKED:
        await uow.relationships_w.block(
            principal.account_id, request.sender_id, datetime.now(timezone.utc),
        )
    await uow.conversations_w.touch(request.conversation_id, datetime.now(timezone.utc))
    await conversation_changed(request.conversation_id, uow)
    await uow.commit()
    return request


async def accept_request(
    request_id: uuid.UUID, principal: Principal, uow: UnitOfWork,
) -> MessageRequest:
    return await _answer(request_id, principal, RequestStatus.ACCEPTED, uow)


async def decline_request(
    request_id: uuid.UUID, principal: Principal, uow: UnitOfWork,
) -> MessageRequest:
    """Decline silently: the sender is not told, later sends are refused."""
    return await _answer(request_id, principal, RequestStatus.DECLINED, uow)


async def block_request(
    request_id: uuid.UUID, principal: Principal, uow: UnitOfWork,
) -> MessageRequest:
    return await _answer(request_id, principal, RequestStatus.BLOCKED, uow)


async def mark_request_read(
    request_id: uuid.UUID, principal: Principal, uow: UnitOfWork,
) -> MessageRequest:
    request = await _load_for_recipient(request_id, principal, uow)
    if request.is_read:
        return request
    await uow.requests_w.mark_read(request_id)
    await uow.commit()
    return await uow.requests.get_by_id(request_id) or request


async def list_message_requests(
    principal: Principal, uow: UnitOfWork,
) -> list[MessageRequest]:
    return await uow.requests.list_pending_for_recipient(principal.account_id)
