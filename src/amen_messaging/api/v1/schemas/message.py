from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from amen_messaging.domain.entities.message import Attachment, Message
from amen_messaging.domain.value_objects.enums import AttachmentType


class AttachmentSchema(BaseModel):
    id: str
    type: AttachmentType
    url: str
    thumbnail_url: str | None = None

    def to_entity(self) -> Attachment:
        return Attachment(id=self.id, type=self.type, url=self.url, thumbnail_url=self.thumbnail_url)

    @classmethod
    def from_entity(cls, attachment: Attachment) -> AttachmentSchema:
        return cls(
            id=attachment.id,
            type=attachment.type,
            url=attachment.url,
            thumbnail_url=attachment.thumbnail_url,
        )


class SendMessageRequest(BaseModel):
    client_msg_id: UUID | None = None
    text: str = ""
    attachments: list[AttachmentSchema] = []
    reply_to_message_id: UUID | None = None


class EditMessageRequest(BaseModel):
    text: str


class ReactionRequest(BaseModel):
    emoji: str = Field(min_length=1)


class ForwardMessageRequest(BaseModel):
    conversation_id: UUID
    client_msg_id: UUID | None = None


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: str
    type: str
    text: str
    attachments: list[AttachmentSchema]
    reply_to_message_id: UUID | None
    reactions: dict[str, str]
    edited_at: datetime | None
    is_deleted: bool
    deleted_at: datetime | None
    is_pinned: bool
    pinned_by: str | None
    pinned_at: datetime | None
    is_starred: bool
    read_by: list[str]
    created_at: datetime
    revision: int

    @classmethod
    def for_viewer(cls, message: Message, account_id: str) -> MessageResponse:
        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            type=message.type.value,
            text=message.text,
            attachments=[AttachmentSchema.from_entity(a) for a in message.attachments],
            reply_to_message_id=message.reply_to_message_id,
            reactions=dict(message.reactions),
            edited_at=message.edited_at,
            is_deleted=message.is_deleted,
            deleted_at=message.tombstone.deleted_at if message.tombstone else None,
            is_pinned=message.is_pinned,
            pinned_by=message.pinned_by,
            pinned_at=message.pinned_at,
            is_starred=account_id in message.starred_by,
            read_by=sorted(message.read_by),
            created_at=message.created_at,
            revision=message.revision,
        )
