from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from amen_messaging.domain.value_objects.enums import AttachmentType, MessageType
from amen_messaging.domain.value_objects.ids import SYSTEM_SENDER_ID
from amen_messaging.domain.value_objects.tombstone import Tombstone


@dataclass(frozen=True, slots=True)
class Attachment:
    id: str
    type: AttachmentType
    url: str
    thumbnail_url: str | None = None


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: str
    type: MessageType
    text: str
    created_at: datetime
    attachments: tuple[Attachment, ...] = ()
    reply_to_message_id: UUID | None = None
    reactions: dict[str, str] = field(default_factory=dict)
    edited_at: datetime | None = None
    tombstone: Tombstone | None = None
    is_pinned: bool = False
    pinned_by: str | None = None
    pinned_at: datetime | None = None
    starred_by: frozenset[str] = frozenset()
    read_by: frozenset[str] = frozenset()
    revision: int = 0

    @property
    def is_deleted(self) -> bool:
        return self.tombstone is not None

    @property
    def is_system(self) -> bool:
        return self.sender_id == SYSTEM_SENDER_ID

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return self.created_at, str(self.id)

    def preview(self) -> str:
        if self.text:
            return self.text
        if self.attachments:
            return f"[{self.attachments[0].type.value}]"
        return ""
