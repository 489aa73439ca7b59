"""Ephemeral typing indicators. Best effort: failures never reach the caller."""
from __future__ import annotations

import logging
import uuid

from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.policies.permissions import (
    assert_conversation_access,
    participant_state,
)
from amen_messaging.application.ports.bus import EventPublisher
from amen_messaging.application.ports.clock import Clock, SystemClock
from amen_messaging.application.ports.typing_store import TypingStore
from amen_messaging.application.sync.codec import TYPING_CHANGED, typing_event
from amen_messaging.application.uow import UnitOfWork
from amen_messaging.config import settings
from amen_messaging.domain.entities.typing_state import TypingState

logger = logging.getLogger(__name__)

_system_clock = SystemClock()


async def set_typing(
    conversation_id: uuid.UUID,
    principal: Principal,
    is_typing: bool,
    uow: UnitOfWork,
    store: TypingStore,
    publisher: EventPublisher | None = None,
    clock: Clock = _system_clock,
) -> TypingState:
    conversation = await uow.conversations.get_by_id(conversation_id)
    conversation = assert_conversation_access(principal, conversation)
    state = TypingState(
        conversation_id=conversation_id,
        account_id=principal.account_id,
        display_name=participant_state(principal, conversation).display_name,
        updated_at=clock.now(),
        is_typing=is_typing,
    )
    try:
        if is_typing:
            await store.set(state, settings.TYPING_TIMEOUT_SECONDS)
        else:
            await store.clear(conversation_id, principal.account_id)
        if publisher is not None:
            await publisher.publish(
                settings.REDIS_PUBSUB_CHANNEL,
                {"event_type": TYPING_CHANGED, **typing_event(state)},
            )
    except Exception:
        logger.warning("Typing update dropped for %s", conversation_id, exc_info=True)
    return state


async def list_typing(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
    store: TypingStore,
    clock: Clock = _system_clock,
) -> list[TypingState]:
    """Accounts currently typing in the conversation, excluding the caller."""
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)
    now = clock.now()
    try:
        states = await store.list_states(conversation_id)
    except Exception:
        logger.warning("Typing lookup failed for %s", conversation_id, exc_info=True)
        return []
    return sorted(
        (
            s for s in states
            if s.account_id != principal.account_id
            and s.is_active(now, settings.TYPING_TIMEOUT_SECONDS)
        ),
        key=lambda s: (s.updated_at, s.account_id),
    )
