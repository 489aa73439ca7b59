from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.entities.participant import Participant


class CreateDirectConversationRequest(BaseModel):
    account_id: str = Field(min_length=1)




class ParticipantResponse(BaseModel):
    account_id: str
    display_name: str
    joined_at: datetime

    @classmethod
    def from_entity(cls, participant: Participant) -> ParticipantResponse:
        return cls(
            account_id=participant.account_id,
            display_name=participant.display_name,
            joined_at=participant.joined_at,
        )


class ConversationResponse(BaseModel):
    """A conversation as seen by one participant."""

    id: UUID
    is_group: bool
    created_by: str
    group_name: str | None
    group_avatar_url: str | None
    request_status: str
    requester_id: str | None
    is_request: bool
    participants: list[ParticipantResponse]
    last_message_id: UUID | None
    last_message_preview: str
    last_message_at: datetime | None
    unread_count: int = 0
    is_muted: bool = False
    is_pinned: bool = False
    is_archived: bool = False
    created_at: datetime
    updated_at: datetime
    revision: int

    @classmethod
    def for_viewer(cls, conversation: Conversation, account_id: str) -> ConversationResponse:
        state = conversation.state_for(account_id)
        return cls(
            id=conversation.id,
            is_group=conversation.is_group,
            created_by=conversation.created_by,
            group_name=conversation.group_name,
            group_avatar_url=conversation.group_avatar_url,
            request_status=conversation.request_status.value,
            requester_id=conversation.requester_id,
            is_request=conversation.is_request_for(account_id),
            participants=[ParticipantResponse.from_entity(p) for p in conversation.participants],
            last_message_id=conversation.last_message_id,
            last_message_preview=conversation.last_message_preview,
            last_message_at=conversation.last_message_at,
            unread_count=state.unread_count if state else 0,
            is_muted=state.is_muted if state else False,
            is_pinned=state.is_pinned if state else False,
            is_archived=state.is_archived if state else False,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
            revision=conversation.revision,
        )
