from __future__ import annotations

import uuid
from typing import NewType
from uuid import UUID

ConversationId = NewType("ConversationId", UUID)
MessageId = NewType("MessageId", UUID)
AccountId = NewType("AccountId", str)

SYSTEM_SENDER_ID = "system"

_DIRECT_NAMESPACE = uuid.UUID("6f1c1d2e-3b7a-5d41-9c0e-8a4b2f6d7e10")


def canonical_direct_id(account_a: str, account_b: str) -> UUID:
    """Order-independent conversation id for a direct pair.

    Both accounts always hash to the same id, so creating the conversation is
    a conditional insert on a fixed key.
    """
    low, high = sorted((account_a, account_b))
    return uuid.uuid5(_DIRECT_NAMESPACE, f"{len(low)}:{low}|{high}")
