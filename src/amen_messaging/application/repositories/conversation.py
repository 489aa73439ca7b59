from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from amen_messaging.application.dto.conversation import ConversationFilterDTO
from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.value_objects.enums import RequestStatus


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        """Load a conversation together with its participants."""
        ...

    async def list_for_account(
        self, account_id: str, filters: ConversationFilterDTO
    ) -> list[Conversation]:
        """Conversations visible in the account's inbox, pinned first then most recent."""
        ...


class ConversationWriter(Protocol):
    async def create_if_absent(
        self, conversation: Conversation
    ) -> tuple[Conversation, bool]:
        """Insert conversation and participants. Return (conversation, created).

        On an id conflict the stored conversation is returned unchanged.
        """
        ...

    async def record_message(
        self,
        conversation_id: UUID,
        message_id: UUID,
        preview: str,
        ts: datetime,
    ) -> None: ...

    async def set_request_status(
        self,
        conversation_id: UUID,
        status: RequestStatus,
        *,
        expected: tuple[RequestStatus, ...] | None = None,
        requester_id: str | None = None,
    ) -> bool:
        """Compare-and-set the request status. Return False if ``expected`` did not match.

        ``requester_id``, when given, is stored in the same update.
        """
        ...

    async def update_preview(
        self, conversation_id: UUID, message_id: UUID, preview: str
    ) -> None:
        """Rewrite the preview only if ``message_id`` is still the latest message."""
        ...

    async def rename(self, conversation_id: UUID, name: str) -> None: ...

    async def set_avatar(self, conversation_id: UUID, url: str | None) -> None: ...

    async def transfer_ownership(self, conversation_id: UUID, owner_id: str) -> None: ...

    async def touch(self, conversation_id: UUID, ts: datetime) -> None:
        """Bump revision and updated_at after a participant-level change."""
        ...
