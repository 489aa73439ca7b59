from __future__ import annotations

from amen_messaging.domain.entities.message_request import MessageRequest
from amen_messaging.domain.value_objects.enums import RequestStatus
from amen_messaging.infrastructure.db.models.message_request import MessageRequestModel


def model_to_entity(model: MessageRequestModel) -> MessageRequest:
    return MessageRequest(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        recipient_id=model.recipient_id,
        status=RequestStatus(model.status),
        created_at=model.created_at,
        is_read=model.is_read,
        resolved_at=model.resolved_at,
    )
