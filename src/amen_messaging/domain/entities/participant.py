from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from amen_messaging.domain.value_objects.tombstone import Tombstone


@dataclass(frozen=True, slots=True)
class Participant:
    """A member of a conversation and that member's private view of it."""

    conversation_id: UUID
    account_id: str
    display_name: str
    joined_at: datetime
    unread_count: int = 0
    is_muted: bool = False
    is_pinned: bool = False
    pinned_at: datetime | None = None
    is_archived: bool = False
    tombstone: Tombstone | None = None

    @property
    def is_deleted(self) -> bool:
        return self.tombstone is not None
