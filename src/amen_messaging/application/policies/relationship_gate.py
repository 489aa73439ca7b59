"""Decides whether one account may open or continue a direct conversation with another."""
from __future__ import annotations

import logging

from amen_messaging.application.dto.conversation import GateDecision
from amen_messaging.application.exceptions import (
    AppError,
    FollowRequiredError,
    InvalidInputError,
    MessagesNotAllowedError,
    UserBlockedError,
)
from amen_messaging.application.repositories.relationship import RelationshipReader
from amen_messaging.domain.value_objects.enums import GateReason, PrivacySetting

logger = logging.getLogger(__name__)


async def can_message(
    sender_id: str,
    recipient_id: str,
    relationships: RelationshipReader,
) -> GateDecision:
    """Evaluate the relationship between two accounts. Never writes."""
    if sender_id == recipient_id:
        return GateDecision(False, GateReason.SELF_CONVERSATION)

    recipient = await relationships.get_account(recipient_id)
    if recipient is None:
        return GateDecision(False, GateReason.UNKNOWN_ACCOUNT)

    if await relationships.is_blocked(sender_id, recipient_id):
        return GateDecision(False, GateReason.BLOCKED)

    if recipient.allows_messages_from == PrivacySetting.NOBODY:
        return GateDecision(False, GateReason.PRIVACY)

    sender_follows = await relationships.follows(sender_id, recipient_id)
    recipient_follows = await relationships.follows(recipient_id, sender_id)
    if sender_follows and recipient_follows:
        return GateDecision(True, GateReason.MUTUAL_FOLLOW)

    if recipient.allows_messages_from == PrivacySetting.FOLLOWERS and not recipient_follows:
        return GateDecision(False, GateReason.FOLLOW_REQUIRED)

    return GateDecision(True, GateReason.MESSAGE_REQUEST)


def error_for(decision: GateDecision) -> AppError:
    """Map a denied decision to the error surfaced to the caller."""
    match decision.reason:
        case GateReason.SELF_CONVERSATION:
            return InvalidInputError("Cannot start a conversation with yourself")
        case GateReason.UNKNOWN_ACCOUNT:
            return InvalidInputError("Account not found")
        case GateReason.BLOCKED:
            return UserBlockedError("Messaging is blocked between these accounts")
        case GateReason.PRIVACY:
            return MessagesNotAllowedError("This account does not accept messages")
        case GateReason.FOLLOW_REQUIRED:
            return FollowRequiredError("This account only accepts messages from people it follows")
    return MessagesNotAllowedError("Messaging not allowed")


async def ensure_can_message(
    sender_id: str,
    recipient_id: str,
    relationships: RelationshipReader,
) -> GateDecision:
    decision = await can_message(sender_id, recipient_id, relationships)
    if not decision.allowed:
        logger.info(
            "Gate denied %s -> %s: %s", sender_id, recipient_id, decision.reason.value,
        )
        raise error_for(decision)
    return decision
