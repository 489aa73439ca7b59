from __future__ import annotations

from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.participant import Participant
from amen_messaging.domain.value_objects.enums import RequestStatus
from amen_messaging.domain.value_objects.tombstone import Tombstone
from amen_messaging.infrastructure.db.models.conversation import ConversationModel
from amen_messaging.infrastructure.db.models.participant import ParticipantModel


def participant_to_entity(model: ParticipantModel) -> Participant:
    tombstone = None
    if model.deleted_at is not None:
        tombstone = Tombstone(deleted_at=model.deleted_at, deleted_by=model.deleted_by or model.account_id)
    return Participant(
        conversation_id=model.conversation_id,
        account_id=model.account_id,
        display_name=model.display_name,
        joined_at=model.joined_at,
        unread_count=model.unread_count,
        is_muted=model.is_muted,
        is_pinned=model.is_pinned,
        pinned_at=model.pinned_at,
        is_archived=model.is_archived,
        tombstone=tombstone,
    )


def participant_values(entity: Participant) -> dict:
    return {
        "conversation_id": entity.conversation_id,
        "account_id": entity.account_id,
        "display_name": entity.display_name,
        "joined_at": entity.joined_at,
        "unread_count": entity.unread_count,
        "is_muted": entity.is_muted,
        "is_pinned": entity.is_pinned,
        "pinned_at": entity.pinned_at,
        "is_archived": entity.is_archived,
    }


def model_to_entity(model: ConversationModel) -> Conversation:
    participants = sorted(model.participants, key=lambda p: (p.joined_at, p.account_id))
    return Conversation(
        id=model.id,
        is_group=model.is_group,
        created_by=model.created_by,
        request_status=RequestStatus(model.request_status),
        created_at=model.created_at,
        updated_at=model.updated_at,
        participants=tuple(participant_to_entity(p) for p in participants),
        group_name=model.group_name,
        group_avatar_url=model.group_avatar_url,
        requester_id=model.requester_id,
        last_message_id=model.last_message_id,
        last_message_preview=model.last_message_preview,
        last_message_at=model.last_message_at,
        revision=model.revision,
    )


def conversation_values(entity: Conversation) -> dict:
    return {
        "id": entity.id,
        "is_group": entity.is_group,
        "created_by": entity.created_by,
        "group_name": entity.group_name,
        "group_avatar_url": entity.group_avatar_url,
        "request_status": entity.request_status.value,
        "requester_id": entity.requester_id,
        "last_message_id": entity.last_message_id,
        "last_message_preview": entity.last_message_preview,
        "last_message_at": entity.last_message_at,
        "revision": entity.revision,
        "created_at": entity.created_at,
        "updated_at": entity.updated_at,
    }
