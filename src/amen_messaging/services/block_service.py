from __future__ import annotations

import logging
from datetime import datetime, timezone

from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.exceptions import InvalidInputError
from amen_messaging.application.uow import UnitOfWork
from amen_messaging.domain.entities.account import Block
from amen_messaging.domain.value_objects.enums import RequestStatus
from amen_messaging.domain.value_objects.ids import canonical_direct_id
from amen_messaging.services._changes import conversation_changed
from amen_messaging.services.request_service import resolve_request

logger = logging.getLogger(__name__)


async def block_user(
    principal: Principal,
    account_id: str,
    uow: UnitOfWork,
) -> None:
    """Block an account. A pending request between the pair is closed as blocked."""
    if account_id == principal.account_id:
        raise InvalidInputError("Cannot block yourself")
    if await uow.relationships.get_account(account_id) is None:
        raise InvalidInputError("Account not found")

    now = datetime.now(timezone.utc)
    await uow.relationships_w.block(principal.account_id, account_id, now)

    conversation_id = canonical_direct_id(principal.account_id, account_id)
    request = await uow.requests.get_for_conversation(conversation_id)
    if request is not None and request.status == RequestStatus.PENDING:
        await resolve_request(request, RequestStatus.BLOCKED, uow)
        await uow.conversations_w.touch(conversation_id, now)
        await conversation_changed(conversation_id, uow)

    await uow.commit()
    logger.info("%s blocked %s", principal.account_id, account_id)


async def unblock_user(
    principal: Principal,
    account_id: str,
    uow: UnitOfWork,
) -> None:
    """Remove the caller's block. Requests already closed as blocked stay closed."""
    await uow.relationships_w.unblock(principal.account_id, account_id)
    await uow.commit()


async def list_blocked(principal: Principal, uow: UnitOfWork) -> list[Block]:
    return await uow.relationships.list_blocked(principal.account_id)
