from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from amen_messaging.domain.entities.message_request import MessageRequest
from amen_messaging.domain.value_objects.enums import RequestStatus


class MessageRequestReader(Protocol):
    async def get_by_id(self, request_id: UUID) -> MessageRequest | None: ...

    async def get_for_conversation(self, conversation_id: UUID) -> MessageRequest | None: ...

    async def list_pending_for_recipient(self, account_id: str) -> list[MessageRequest]:
        """Pending requests addressed to the account, newest first."""
        ...


class MessageRequestWriter(Protocol):
    async def create_if_absent(
        self, request: MessageRequest
    ) -> tuple[MessageRequest, bool]: ...

    async def transition(
        self, request_id: UUID, status: RequestStatus, resolved_at: datetime
    ) -> bool:
        """Move a pending request to ``status``. Return False if it was no longer pending."""
        ...

    async def mark_read(self, request_id: UUID) -> None: ...
