from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from amen_messaging.api.deps import CurrentPrincipal, NotifierDep, UoWDep
from amen_messaging.api.v1.schemas.common import FlagRequest, PaginatedResponse
from amen_messaging.api.v1.schemas.message import (
    EditMessageRequest,
    ForwardMessageRequest,
    MessageResponse,
    ReactionRequest,
    SendMessageRequest,
)
from amen_messaging.application.dto.message import SendMessageDTO
from amen_messaging.infrastructure.db.cursor import encode_cursor
from amen_messaging.services import message_service

router = APIRouter(prefix="/api/v1/messaging", tags=["messages"])


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=PaginatedResponse[MessageResponse],
)
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    cursor: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> PaginatedResponse[MessageResponse]:
    messages = await message_service.list_messages(
        conversation_id, principal, cursor, limit, uow,
    )
    # Pages are chronological; the cursor walks towards older messages.
    next_cursor = None
    if len(messages) == limit:
        next_cursor = encode_cursor(messages[0].created_at, messages[0].id)
    return PaginatedResponse[MessageResponse](
        items=[MessageResponse.for_viewer(m, principal.account_id) for m in messages],
        next_cursor=next_cursor,
    )


@router.get(
    "/conversations/{conversation_id}/messages/pinned",
    response_model=list[MessageResponse],
)
async def list_pinned_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[MessageResponse]:
    messages = await message_service.list_pinned_messages(conversation_id, principal, uow)
    return [MessageResponse.for_viewer(m, principal.account_id) for m in messages]


@router.get(
    "/conversations/{conversation_id}/messages/starred",
    response_model=list[MessageResponse],
)
async def list_starred_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[MessageResponse]:
    messages = await message_service.list_starred_messages(conversation_id, principal, uow)
    return [MessageResponse.for_viewer(m, principal.account_id) for m in messages]


@router.get(
    "/conversations/{conversation_id}/messages/search",
    response_model=list[MessageResponse],
)
async def search_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    q: str = Query(..., min_length=1, max_length=200),
) -> list[MessageResponse]:
    messages = await message_service.search_messages(conversation_id, principal, q, uow)
    return [MessageResponse.for_viewer(m, principal.account_id) for m in messages]


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: UUID,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    notifier: NotifierDep,
    response: Response,
) -> MessageResponse:
    dto = SendMessageDTO(
        conversation_id=conversation_id,
        text=body.text,
        client_msg_id=body.client_msg_id,
        attachments=tuple(a.to_entity() for a in body.attachments),
        reply_to_message_id=body.reply_to_message_id,
    )
    msg, created = await message_service.send_message(dto, principal, uow, notifier)
    if not created:
        response.status_code = status.HTTP_200_OK
    return MessageResponse.for_viewer(msg, principal.account_id)


@router.patch("/messages/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: UUID,
    body: EditMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await message_service.edit_message(message_id, principal, body.text, uow)
    return MessageResponse.for_viewer(msg, principal.account_id)


@router.delete("/messages/{message_id}", response_model=MessageResponse)
async def delete_message(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await message_service.delete_message(message_id, principal, uow)
    return MessageResponse.for_viewer(msg, principal.account_id)


@router.put("/messages/{message_id}/reaction", response_model=MessageResponse)
async def add_reaction(
    message_id: UUID,
    body: ReactionRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    notifier: NotifierDep,
) -> MessageResponse:
    msg = await message_service.add_reaction(message_id, principal, body.emoji, uow, notifier)
    return MessageResponse.for_viewer(msg, principal.account_id)


@router.delete("/messages/{message_id}/reaction", response_model=MessageResponse)
async def remove_reaction(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await message_service.remove_reaction(message_id, principal, uow)
    return MessageResponse.for_viewer(msg, principal.account_id)


@router.put("/messages/{message_id}/pinned", response_model=MessageResponse)
async def set_pinned(
    message_id: UUID,
    body: FlagRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await message_service.set_pinned(message_id, principal, body.value, uow)
    return MessageResponse.for_viewer(msg, principal.account_id)


@router.put("/messages/{message_id}/starred", response_model=MessageResponse)
async def set_starred(
    message_id: UUID,
    body: FlagRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await message_service.set_starred(message_id, principal, body.value, uow)
    return MessageResponse.for_viewer(msg, principal.account_id)


@router.post(
    "/messages/{message_id}/forward",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def forward_message(
    message_id: UUID,
    body: ForwardMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    notifier: NotifierDep,
    response: Response,
) -> MessageResponse:
    msg, created = await message_service.forward_message(
        message_id, body.conversation_id, principal, uow, notifier,
        client_msg_id=body.client_msg_id,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return MessageResponse.for_viewer(msg, principal.account_id)
