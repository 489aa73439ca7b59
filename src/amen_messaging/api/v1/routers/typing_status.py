from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from amen_messaging.api.deps import (
    ClockDep,
    CurrentPrincipal,
    PublisherDep,
    TypingStoreDep,
    UoWDep,
)
from amen_messaging.api.v1.schemas.misc import TypingRequest, TypingResponse
from amen_messaging.services import typing_service

router = APIRouter(prefix="/api/v1/messaging/conversations", tags=["typing"])


@router.put("/{conversation_id}/typing", response_model=TypingResponse)
async def set_typing(
    conversation_id: UUID,
    body: TypingRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    store: TypingStoreDep,
    publisher: PublisherDep,
    clock: ClockDep,
) -> TypingResponse:
    state = await typing_service.set_typing(
        conversation_id, principal, body.is_typing, uow, store, publisher, clock,
    )
    return TypingResponse.from_entity(state)


@router.get("/{conversation_id}/typing", response_model=list[TypingResponse])
async def list_typing(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    store: TypingStoreDep,
    clock: ClockDep,
) -> list[TypingResponse]:
    states = await typing_service.list_typing(conversation_id, principal, uow, store, clock)
    return [TypingResponse.from_entity(s) for s in states]
