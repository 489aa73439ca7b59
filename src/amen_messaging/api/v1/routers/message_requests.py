from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from amen_messaging.api.deps import CurrentPrincipal, UoWDep
from amen_messaging.api.v1.schemas.request import MessageRequestResponse
from amen_messaging.services import request_service

router = APIRouter(prefix="/api/v1/messaging/requests", tags=["message-requests"])


@router.get("", response_model=list[MessageRequestResponse])
async def list_message_requests(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[MessageRequestResponse]:
    requests = await request_service.list_message_requests(principal, uow)
    return [MessageRequestResponse.from_entity(r) for r in requests]


@router.post("/{request_id}/accept", response_model=MessageRequestResponse)
async def accept_request(
    request_id: UUID, principal: CurrentPrincipal, uow: UoWDep,
) -> MessageRequestResponse:
    request = await request_service.accept_request(request_id, principal, uow)
    return MessageRequestResponse.from_entity(request)


@router.post("/{request_id}/decline", response_model=MessageRequestResponse)
async def decline_request(
    request_id: UUID, principal: CurrentPrincipal, uow: UoWDep,
) -> MessageRequestResponse:
    request = await request_service.decline_request(request_id, principal, uow)
    return MessageRequestResponse.from_entity(request)


@router.post("/{request_id}/block", response_model=MessageRequestResponse)
async def block_request(
    request_id: UUID, principal: CurrentPrincipal, uow: UoWDep,
) -> MessageRequestResponse:
    request = await request_service.block_request(request_id, principal, uow)
    return MessageRequestResponse.from_entity(request)


@router.post("/{request_id}/read", response_model=MessageRequestResponse)
async def mark_request_read(
    request_id: UUID, principal: CurrentPrincipal, uow: UoWDep,
) -> MessageRequestResponse:
    request = await request_service.mark_request_read(request_id, principal, uow)
    return MessageRequestResponse.from_entity(request)
