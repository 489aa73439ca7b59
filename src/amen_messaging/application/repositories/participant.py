from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from amen_messaging.domain.entities.participant import Participant
from amen_messaging.domain.value_objects.tombstone import Tombstone


class ParticipantReader(Protocol):
    async def count_pinned(self, account_id: str) -> int: ...


class ParticipantWriter(Protocol):
    async def add(self, participant: Participant) -> bool:
        """Insert membership. Return False if the account is already a member."""
        ...

    async def remove(self, conversation_id: UUID, account_id: str) -> None: ...

    async def set_muted(
        self, conversation_id: UUID, account_id: str, muted: bool
    ) -> None: ...

    async def set_pinned(
        self, conversation_id: UUID, account_id: str, pinned_at: datetime | None
    ) -> None: ...

    async def set_archived(
        self, conversation_id: UUID, account_id: str, archived: bool
    ) -> None: ...

    async def set_tombstone(
        self, conversation_id: UUID, account_id: str, tombstone: Tombstone | None
    ) -> None: ...

    async def increment_unread(
        self, conversation_id: UUID, account_ids: list[str]
    ) -> None: ...

    async def reset_unread(self, conversation_id: UUID, account_id: str) -> None: ...

    async def rename_account(self, account_id: str, display_name: str) -> None:
        """Refresh the denormalised display name in every membership of the account."""
        ...
