from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from amen_messaging.domain.entities.message import Attachment


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    conversation_id: UUID
    text: str = ""
    client_msg_id: UUID | None = None
    attachments: tuple[Attachment, ...] = ()
    reply_to_message_id: UUID | None = None
