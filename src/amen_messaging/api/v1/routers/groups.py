from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, status

from amen_messaging.api.deps import CurrentPrincipal, UoWDep
from amen_messaging.api.v1.schemas.conversation import ConversationResponse
from amen_messaging.api.v1.schemas.group import (
    AddParticipantsRequest,
    CreateGroupRequest,
    GroupAvatarRequest,
    RenameGroupRequest,
)
from amen_messaging.services import group_service

router = APIRouter(prefix="/api/v1/messaging/groups", tags=["groups"])


@router.post("", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    body: CreateGroupRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await group_service.create_group(
        principal, body.participant_ids, body.participant_names, body.name, uow,
    )
    return ConversationResponse.for_viewer(conv, principal.account_id)


@router.post("/{conversation_id}/participants", response_model=ConversationResponse)
async def add_participants(
    conversation_id: UUID,
    body: AddParticipantsRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await group_service.add_participants(
        conversation_id, principal, body.participant_ids, body.participant_names, uow,
    )
    return ConversationResponse.for_viewer(conv, principal.account_id)


@router.delete("/{conversation_id}/participants/{account_id}", response_model=ConversationResponse)
async def remove_participant(
    conversation_id: UUID,
    account_id: str,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await group_service.remove_participant(conversation_id, principal, account_id, uow)
    return ConversationResponse.for_viewer(conv, principal.account_id)


@router.post("/{conversation_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_group(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> None:
    await group_service.leave_group(conversation_id, principal, uow)


@router.patch("/{conversation_id}/name", response_model=ConversationResponse)
async def rename_group(
    conversation_id: UUID,
    body: RenameGroupRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await group_service.rename_group(conversation_id, principal, body.name, uow)
    return ConversationResponse.for_viewer(conv, principal.account_id)


@router.put("/{conversation_id}/avatar", response_model=ConversationResponse)
async def update_group_avatar(
    conversation_id: UUID,
    body: GroupAvatarRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await group_service.update_group_avatar(
        conversation_id, principal, body.avatar_url, uow,
    )
    return ConversationResponse.for_viewer(conv, principal.account_id)
