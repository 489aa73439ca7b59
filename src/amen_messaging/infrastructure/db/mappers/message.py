from __future__ import annotations

from typing import Any

from amen_messaging.domain.entities.message import Attachment, Message
from amen_messaging.domain.value_objects.enums import AttachmentType, MessageType
from amen_messaging.domain.value_objects.tombstone import Tombstone
from amen_messaging.infrastructure.db.models.message import MessageModel


def attachment_to_json(attachment: Attachment) -> dict[str, Any]:
    return {
        "id": attachment.id,
        "type": attachment.type.value,
        "url": attachment.url,
        "thumbnail_url": attachment.thumbnail_url,
    }


def attachment_from_json(data: dict[str, Any]) -> Attachment:
    return Attachment(
        id=data["id"],
        type=AttachmentType(data["type"]),
        url=data["url"],
        thumbnail_url=data.get("thumbnail_url"),
    )


def model_to_entity(model: MessageModel) -> Message:
    tombstone = None
    if model.deleted_at is not None:
        tombstone = Tombstone(deleted_at=model.deleted_at, deleted_by=model.deleted_by or model.sender_id)
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        type=MessageType(model.type),
        text=model.body,
        created_at=model.created_at,
        attachments=tuple(attachment_from_json(a) for a in model.attachments or []),
        reply_to_message_id=model.reply_to_message_id,
        reactions={r.account_id: r.emoji for r in model.reactions},
        edited_at=model.edited_at,
        tombstone=tombstone,
        is_pinned=model.is_pinned,
        pinned_by=model.pinned_by,
        pinned_at=model.pinned_at,
        starred_by=frozenset(s.account_id for s in model.stars),
        read_by=frozenset(r.account_id for r in model.receipts),
        revision=model.revision,
    )


def message_values(entity: Message) -> dict[str, Any]:
    return {
        "id": entity.id,
        "conversation_id": entity.conversation_id,
        "sender_id": entity.sender_id,
        "type": entity.type.value,
        "body": entity.text,
        "attachments": [attachment_to_json(a) for a in entity.attachments],
        "reply_to_message_id": entity.reply_to_message_id,
        "created_at": entity.created_at,
        "revision": entity.revision,
    }
