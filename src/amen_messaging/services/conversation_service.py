from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from amen_messaging.application.dto.conversation import ConversationFilterDTO
from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.exceptions import InvalidInputError
from amen_messaging.application.policies.permissions import (
    assert_conversation_access,
    participant_state,
)
from amen_messaging.application.policies.relationship_gate import ensure_can_message
from amen_messaging.application.uow import UnitOfWork
from amen_messaging.config import settings
from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.participant import Participant
from amen_messaging.domain.value_objects.enums import GateReason, RequestStatus
from amen_messaging.domain.value_objects.ids import canonical_direct_id
from amen_messaging.domain.value_objects.tombstone import Tombstone
from amen_messaging.services._changes import conversation_changed

logger = logging.getLogger(__name__)


async def get_or_create_direct(
    principal: Principal,
    other_id: str,
    uow: UnitOfWork,
) -> Conversation:
    """Return the single direct conversation between the caller and ``other_id``.

    The id is derived from the pair, so concurrent callers race on one
    conditional insert and every one of them reads back the same row. An
    existing conversation is returned as-is to either participant, even if the
    caller deleted or archived it. The relationship gate only runs when the
    conversation has to be created.
    """
    conversation_id = canonical_direct_id(principal.account_id, other_id)
    existing = await uow.conversations.get_by_id(conversation_id)
    if existing is not None and existing.state_for(principal.account_id) is not None:
        return existing

    decision = await ensure_can_message(principal.account_id, other_id, uow.relationships)

    accounts = await uow.relationships.get_accounts([principal.account_id, other_id])
    now = datetime.now(timezone.utc)
    mutual = decision.reason == GateReason.MUTUAL_FOLLOW

    def _name(account_id: str) -> str:
        account = accounts.get(account_id)
        if account is not None:
            return account.display_name
        if account_id == principal.account_id:
            return principal.name
        return account_id

    conversation = Conversation(
        id=conversation_id,
        is_group=False,
        created_by=principal.account_id,
        request_status=RequestStatus.ACCEPTED if mutual else RequestStatus.NONE,
        requester_id=None if mutual else principal.account_id,
        created_at=now,
        updated_at=now,
        participants=tuple(
            Participant(
                conversation_id=conversation_id,
                account_id=account_id,
                display_name=_name(account_id),
                joined_at=now,
            )
            for account_id in (principal.account_id, other_id)
        ),
    )
    conversation, created = await uow.conversations_w.create_if_absent(conversation)
    if created:
        conversation = await conversation_changed(conversation.id, uow)
        await uow.commit()
        logger.info(
            "Direct conversation %s created by %s (status=%s)",
            conversation.id, principal.account_id, conversation.request_status.value,
        )
    return conversation


async def get_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    return assert_conversation_access(principal, conversation)


async def list_conversations(
    principal: Principal,
    filters: ConversationFilterDTO,
    uow: UnitOfWork,
) -> list[Conversation]:
    return await uow.conversations.list_for_account(principal.account_id, filters)


async def _load_for_update(
    conversation_id: uuid.UUID, principal: Principal, uow: UnitOfWork,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    return assert_conversation_access(principal, conversation)


async def set_muted(
    conversation_id: uuid.UUID,
    principal: Principal,
    muted: bool,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await _load_for_update(conversation_id, principal, uow)
    if participant_state(principal, conversation).is_muted == muted:
        return conversation
    await uow.participants_w.set_muted(conversation_id, principal.account_id, muted)
    return await _commit_participant_change(conversation_id, uow)


async def set_pinned(
    conversation_id: uuid.UUID,
    principal: Principal,
    pinned: bool,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await _load_for_update(conversation_id, principal, uow)
    if participant_state(principal, conversation).is_pinned == pinned:
        return conversation
    if pinned:
        count = await uow.participants.count_pinned(principal.account_id)
        if count >= settings.MAX_PINNED_CONVERSATIONS:
            raise InvalidInputError(
                f"At most {settings.MAX_PINNED_CONVERSATIONS} conversations can be pinned"
            )
    pinned_at = datetime.now(timezone.utc) if pinned else None
    await uow.participants_w.set_pinned(conversation_id, principal.account_id, pinned_at)
    return await _commit_participant_change(conversation_id, uow)


async def set_archived(
    conversation_id: uuid.UUID,
    principal: Principal,
    archived: bool,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await _load_for_update(conversation_id, principal, uow)
    if participant_state(principal, conversation).is_archived == archived:
        return conversation
    await uow.participants_w.set_archived(conversation_id, principal.account_id, archived)
    return await _commit_participant_change(conversation_id, uow)


async def delete_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    """Hide the conversation for the caller only. Other participants are unaffected."""
    conversation = await _load_for_update(conversation_id, principal, uow)
    if participant_state(principal, conversation).is_deleted:
        return conversation
    tombstone = Tombstone(deleted_at=datetime.now(timezone.utc), deleted_by=principal.account_id)
    await uow.participants_w.set_tombstone(conversation_id, principal.account_id, tombstone)
    await uow.participants_w.reset_unread(conversation_id, principal.account_id)
    return await _commit_participant_change(conversation_id, uow)


async def restore_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await _load_for_update(conversation_id, principal, uow)
    if not participant_state(principal, conversation).is_deleted:
        return conversation
    await uow.participants_w.set_tombstone(conversation_id, principal.account_id, None)
    return await _commit_participant_change(conversation_id, uow)


async def _commit_participant_change(
    conversation_id: uuid.UUID, uow: UnitOfWork,
) -> Conversation:
    await uow.conversations_w.touch(conversation_id, datetime.now(timezone.utc))
    conversation = await conversation_changed(conversation_id, uow)
    await uow.commit()
    return conversation
