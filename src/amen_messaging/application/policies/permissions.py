from __future__ import annotations

from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.exceptions import (
    ConversationNotFoundError,
    PermissionDeniedError,
)
from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.participant import Participant


def assert_conversation_access(
    principal: Principal,
    conversation: Conversation | None,
) -> Conversation:
    """Raise if conversation doesn't exist or principal is not a current participant."""
    if conversation is None:
        raise ConversationNotFoundError("Conversation not found")

    if conversation.state_for(principal.account_id) is None:
        raise PermissionDeniedError("Not a participant of this conversation")

    return conversation


def participant_state(principal: Principal, conversation: Conversation) -> Participant:
    state = conversation.state_for(principal.account_id)
    if state is None:
        raise PermissionDeniedError("Not a participant of this conversation")
    return state


def assert_group_owner(principal: Principal, conversation: Conversation) -> None:
    if not conversation.is_group:
        raise PermissionDeniedError("Not a group conversation")
    if conversation.created_by != principal.account_id:
        raise PermissionDeniedError("Only the group owner can change this")
