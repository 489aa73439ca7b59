"""Multi-party conversations: creation, membership and group metadata."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.exceptions import (
    InvalidInputError,
    PermissionDeniedError,
    UserBlockedError,
)
from amen_messaging.application.policies.permissions import (
    assert_conversation_access,
    assert_group_owner,
)
from amen_messaging.application.uow import UnitOfWork
from amen_messaging.config import settings
from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.participant import Participant
from amen_messaging.domain.value_objects.enums import RequestStatus
from amen_messaging.services._changes import conversation_changed
from amen_messaging.services.message_service import append_system_message

logger = logging.getLogger(__name__)


def _validate_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise InvalidInputError("Group name is required")
    if len(name) > settings.MAX_GROUP_NAME_LENGTH:
        raise InvalidInputError(
            f"Group name is too long (max {settings.MAX_GROUP_NAME_LENGTH} characters)"
        )
    return name


async def _load_group(
    conversation_id: uuid.UUID, principal: Principal, uow: UnitOfWork,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    conversation = assert_conversation_access(principal, conversation)
    if not conversation.is_group:
        raise InvalidInputError("Not a group conversation")
    return conversation


async def _resolve_names(
    account_ids: list[str],
    names: dict[str, str],
    principal: Principal,
    uow: UnitOfWork,
) -> dict[str, str]:
    """Validate new members and return their display names."""
    accounts = await uow.relationships.get_accounts(account_ids)
    resolved: dict[str, str] = {}
    for account_id in account_ids:
        account = accounts.get(account_id)
        if account is None:
            raise InvalidInputError(f"Unknown account: {account_id}")
        if await uow.relationships.is_blocked(principal.account_id, account_id):
            raise UserBlockedError("Messaging is blocked with one of the participants")
        resolved[account_id] = names.get(account_id) or account.display_name
    return resolved


async def create_group(
    principal: Principal,
    participant_ids: list[str],
    participant_names: dict[str, str],
    group_name: str,
    uow: UnitOfWork,
) -> Conversation:
    name = _validate_name(group_name)
    others = list(dict.fromkeys(a for a in participant_ids if a != principal.account_id))
    if len(others) < 2:
        raise InvalidInputError("A group needs at least two other participants")
    names = await _resolve_names(others, participant_names, principal, uow)

    now = datetime.now(timezone.utc)
    conversation_id = uuid.uuid4()
    members = [(principal.account_id, participant_names.get(principal.account_id) or principal.name)]
    members.extend(names.items())
    conversation = Conversation(
        id=conversation_id,
        is_group=True,
        created_by=principal.account_id,
        request_status=RequestStatus.ACCEPTED,
        group_name=name,
        created_at=now,
        updated_at=now,
        participants=tuple(
            Participant(
                conversation_id=conversation_id,
                account_id=account_id,
                display_name=display_name,
                joined_at=now,
            )
            for account_id, display_name in members
        ),
    )
    await uow.conversations_w.create_if_absent(conversation)
    await append_system_message(
        conversation_id, f"{principal.name} created the group \"{name}\"", uow,
    )
    conversation = await conversation_changed(conversation_id, uow)
    await uow.commit()
    logger.info("Group %s created by %s with %d members", conversation_id, principal.account_id, len(members))
    return conversation


async def add_participants(
    conversation_id: uuid.UUID,
    principal: Principal,
    participant_ids: list[str],
    participant_names: dict[str, str],
    uow: UnitOfWork,
) -> Conversation:
    conversation = await _load_group(conversation_id, principal, uow)
    new_ids = [
        a for a in dict.fromkeys(participant_ids)
        if conversation.state_for(a) is None
    ]
    if not new_ids:
        return conversation
    names = await _resolve_names(new_ids, participant_names, principal, uow)

    now = datetime.now(timezone.utc)
    for account_id, display_name in names.items():
        await uow.participants_w.add(
            Participant(
                conversation_id=conversation_id,
                account_id=account_id,
                display_name=display_name,
                joined_at=now,
            )
        )
    await append_system_message(
        conversation_id, f"{principal.name} added {', '.join(names.values())}", uow,
    )
    return await _commit(conversation_id, uow)


async def remove_participant(
    conversation_id: uuid.UUID,
    principal: Principal,
    account_id: str,
    uow: UnitOfWork,
) -> Conversation:
    if account_id == principal.account_id:
        return await leave_group(conversation_id, principal, uow)
    conversation = await _load_group(conversation_id, principal, uow)
    state = conversation.state_for(account_id)
    if state is None:
        return conversation
    if account_id == conversation.created_by:
        raise PermissionDeniedError("The group owner cannot be removed")

    await uow.participants_w.remove(conversation_id, account_id)
    await append_system_message(
        conversation_id, f"{principal.name} removed {state.display_name}", uow,
    )
    return await _commit(conversation_id, uow)


async def leave_group(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    """Leave a group. The conversation and its history are kept even when nobody is left."""
    conversation = await _load_group(conversation_id, principal, uow)
    await uow.participants_w.remove(conversation_id, principal.account_id)

    remaining = sorted(
        (p for p in conversation.participants if p.account_id != principal.account_id),
        key=lambda p: (p.joined_at, p.account_id),
    )
    if conversation.created_by == principal.account_id and remaining:
        await uow.conversations_w.transfer_ownership(conversation_id, remaining[0].account_id)
        logger.info("Group %s ownership passed to %s", conversation_id, remaining[0].account_id)

    await append_system_message(conversation_id, f"{principal.name} left the group", uow)
    return await _commit(conversation_id, uow)


async def rename_group(
    conversation_id: uuid.UUID,
    principal: Principal,
    group_name: str,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await _load_group(conversation_id, principal, uow)
    assert_group_owner(principal, conversation)
    name = _validate_name(group_name)
    if name == conversation.group_name:
        return conversation

    await uow.conversations_w.rename(conversation_id, name)
    await append_system_message(
        conversation_id,
        f"{principal.name} changed the group name from \"{conversation.group_name}\" to \"{name}\"",
        uow,
    )
    return await _commit(conversation_id, uow)


async def update_group_avatar(
    conversation_id: uuid.UUID,
    principal: Principal,
    avatar_url: str | None,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await _load_group(conversation_id, principal, uow)
    assert_group_owner(principal, conversation)
    if avatar_url == conversation.group_avatar_url:
        return conversation

    await uow.conversations_w.set_avatar(conversation_id, avatar_url)
    await append_system_message(conversation_id, f"{principal.name} changed the group photo", uow)
    return await _commit(conversation_id, uow)


async def _commit(conversation_id: uuid.UUID, uow: UnitOfWork) -> Conversation:
    await uow.conversations_w.touch(conversation_id, datetime.now(timezone.utc))
    conversation = await conversation_changed(conversation_id, uow)
    await uow.commit()
    return conversation
