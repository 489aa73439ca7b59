from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from amen_messaging.domain.value_objects.enums import RequestStatus


@dataclass(frozen=True, slots=True)
class MessageRequest:
    id: UUID
    conversation_id: UUID
    sender_id: str
    recipient_id: str
    status: RequestStatus
    created_at: datetime
    is_read: bool = False
    resolved_at: datetime | None = None
