from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from amen_messaging.api.deps import CurrentPrincipal, UoWDep
from amen_messaging.api.v1.schemas.common import FlagRequest, PaginatedResponse
from amen_messaging.api.v1.schemas.conversation import (
    ConversationResponse,
    CreateDirectConversationRequest,
)
from amen_messaging.application.dto.conversation import ConversationFilterDTO
from amen_messaging.infrastructure.db.cursor import encode_inbox_cursor
from amen_messaging.services import conversation_service, message_service

router = APIRouter(prefix="/api/v1/messaging/conversations", tags=["conversations"])


@router.post("/direct", response_model=ConversationResponse)
async def get_or_create_direct(
    body: CreateDirectConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.get_or_create_direct(principal, body.account_id, uow)
    return ConversationResponse.for_viewer(conv, principal.account_id)


@router.get("", response_model=PaginatedResponse[ConversationResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    include_archived: bool = Query(False),
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[ConversationResponse]:
    filters = ConversationFilterDTO(include_archived=include_archived, cursor=cursor, limit=limit)
    convs = await conversation_service.list_conversations(principal, filters, uow)
    next_cursor = None
    if len(convs) == limit:
        last = convs[-1]
        state = last.state_for(principal.account_id)
        next_cursor = encode_inbox_cursor(bool(state and state.is_pinned), last.activity_at, last.id)
    return PaginatedResponse[ConversationResponse](
        items=[ConversationResponse.for_viewer(c, principal.account_id) for c in convs],
        next_cursor=next_cursor,
    )


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.get_conversation(conversation_id, principal, uow)
    return ConversationResponse.for_viewer(conv, principal.account_id)


@router.put("/{conversation_id}/muted", response_model=ConversationResponse)
async def set_muted(
    conversation_id: UUID,
    body: FlagRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.set_muted(conversation_id, principal, body.value, uow)
    return ConversationResponse.for_viewer(conv, principal.account_id)


@router.put("/{conversation_id}/pinned", response_model=ConversationResponse)
async def set_pinned(
    conversation_id: UUID,
    body: FlagRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.set_pinned(conversation_id, principal, body.value, uow)
    return ConversationResponse.for_viewer(conv, principal.account_id)


@router.put("/{conversation_id}/archived", response_model=ConversationResponse)
async def set_archived(
    conversation_id: UUID,
    body: FlagRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.set_archived(conversation_id, principal, body.value, uow)
    return ConversationResponse.for_viewer(conv, principal.account_id)


@router.delete("/{conversation_id}", response_model=ConversationResponse)
async def delete_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.delete_conversation(conversation_id, principal, uow)
    return ConversationResponse.for_viewer(conv, principal.account_id)


@router.post("/{conversation_id}/restore", response_model=ConversationResponse)
async def restore_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.restore_conversation(conversation_id, principal, uow)
    return ConversationResponse.for_viewer(conv, principal.account_id)


@router.post("/{conversation_id}/read", response_model=ConversationResponse)
async def mark_read(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await message_service.mark_read(conversation_id, principal, uow)
    return ConversationResponse.for_viewer(conv, principal.account_id)
