from __future__ import annotations

from fastapi import APIRouter, status

from amen_messaging.api.deps import CurrentPrincipal, UoWDep
from amen_messaging.api.v1.schemas.misc import BlockRequest, BlockResponse
from amen_messaging.services import block_service

router = APIRouter(prefix="/api/v1/messaging/blocks", tags=["blocks"])


@router.get("", response_model=list[BlockResponse])
async def list_blocked(principal: CurrentPrincipal, uow: UoWDep) -> list[BlockResponse]:
    blocks = await block_service.list_blocked(principal, uow)
    return [BlockResponse.from_entity(b) for b in blocks]


@router.post("", status_code=status.HTTP_204_NO_CONTENT)
async def block_user(body: BlockRequest, principal: CurrentPrincipal, uow: UoWDep) -> None:
    await block_service.block_user(principal, body.account_id, uow)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_user(account_id: str, principal: CurrentPrincipal, uow: UoWDep) -> None:
    await block_service.unblock_user(principal, account_id, uow)
