from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from amen_messaging.domain.entities.message_request import MessageRequest


class MessageRequestResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: str
    recipient_id: str
    status: str
    is_read: bool
    created_at: datetime
    resolved_at: datetime | None

    @classmethod
    def from_entity(cls, request: MessageRequest) -> MessageRequestResponse:
        return cls(
            id=request.id,
            conversation_id=request.conversation_id,
            sender_id=request.sender_id,
            recipient_id=request.recipient_id,
            status=request.status.value,
            is_read=request.is_read,
            created_at=request.created_at,
            resolved_at=request.resolved_at,
        )
