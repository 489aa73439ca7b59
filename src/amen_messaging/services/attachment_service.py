from __future__ import annotations

import logging
import uuid

from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.exceptions import InvalidInputError
from amen_messaging.application.policies.permissions import assert_conversation_access
from amen_messaging.application.ports.storage import AttachmentStorage
from amen_messaging.application.uow import UnitOfWork
from amen_messaging.config import settings
from amen_messaging.domain.entities.message import Attachment
from amen_messaging.domain.value_objects.enums import AttachmentType

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/heic": "heic",
    "video/mp4": "mp4",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
}


def attachment_type_for(content_type: str) -> AttachmentType:
    major = content_type.split("/", 1)[0]
    if major == "image":
        return AttachmentType.PHOTO
    if major == "video":
        return AttachmentType.VIDEO
    if major == "audio":
        return AttachmentType.AUDIO
    return AttachmentType.FILE


async def upload_attachment(
    conversation_id: uuid.UUID,
    principal: Principal,
    data: bytes,
    content_type: str,
    uow: UnitOfWork,
    storage: AttachmentStorage,
) -> Attachment:
    """Store the bytes and return an attachment reference to put on a message."""
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)
    if not data:
        raise InvalidInputError("Attachment is empty")
    if len(data) > settings.MAX_ATTACHMENT_BYTES:
        raise InvalidInputError("Attachment is too large")

    attachment_id = uuid.uuid4().hex
    extension = _EXTENSIONS.get(content_type, "bin")
    path = f"messages/{conversation_id}/{attachment_id}.{extension}"
    url = await storage.upload(path, data, content_type)
    logger.info("Uploaded attachment %s (%d bytes) to %s", attachment_id, len(data), path)
    return Attachment(id=attachment_id, type=attachment_type_for(content_type), url=url)
