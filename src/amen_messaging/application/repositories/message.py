from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from amen_messaging.domain.entities.message import Message
from amen_messaging.domain.value_objects.tombstone import Tombstone


class MessageReader(Protocol):
    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        cursor: str | None = None,
        limit: int = 50,
    ) -> list[Message]:
        """Newest page first; each page is returned in chronological order."""
        ...

    async def count_from_sender(self, conversation_id: UUID, sender_id: str) -> int: ...

    async def list_pinned(self, conversation_id: UUID) -> list[Message]:
        """Pinned messages, most recently pinned first."""
        ...

    async def list_starred(self, conversation_id: UUID, account_id: str) -> list[Message]:
        """Messages the account starred in the conversation, newest first."""
        ...

    async def search(self, conversation_id: UUID, query: str, *, limit: int) -> list[Message]:
        """Live messages whose text contains ``query`` (case-insensitive), newest first."""
        ...


class MessageWriter(Protocol):
    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message. Return (message, created). If the id already exists → return existing."""
        ...

    async def update_text(self, message_id: UUID, text: str, edited_at: datetime) -> None: ...

    async def mark_deleted(self, message_id: UUID, tombstone: Tombstone) -> None:
        """Tombstone the message, clearing its text and attachments."""
        ...

    async def set_pinned(
        self, message_id: UUID, pinned_by: str | None, pinned_at: datetime | None,
    ) -> None: ...

    async def set_reaction(self, message_id: UUID, account_id: str, emoji: str) -> None: ...

    async def remove_reaction(self, message_id: UUID, account_id: str) -> None: ...

    async def set_starred(self, message_id: UUID, account_id: str, starred: bool) -> None: ...

    async def mark_read(self, conversation_id: UUID, account_id: str) -> list[UUID]:
        """Add a read receipt to every unread message from others. Return the ids touched."""
        ...
