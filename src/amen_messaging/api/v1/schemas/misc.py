from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from amen_messaging.domain.entities.account import Block
from amen_messaging.domain.entities.message import Attachment
from amen_messaging.domain.entities.typing_state import TypingState


class BlockRequest(BaseModel):
    account_id: str = Field(min_length=1)


class BlockResponse(BaseModel):
    blocked_id: str
    created_at: datetime

    @classmethod
    def from_entity(cls, block: Block) -> BlockResponse:
        return cls(blocked_id=block.blocked_id, created_at=block.created_at)


class TypingRequest(BaseModel):
    is_typing: bool = True


class TypingResponse(BaseModel):
    account_id: str
    display_name: str
    updated_at: datetime

    @classmethod
    def from_entity(cls, state: TypingState) -> TypingResponse:
        return cls(account_id=state.account_id, display_name=state.display_name, updated_at=state.updated_at)


class AttachmentUploadResponse(BaseModel):
    id: str
    type: str
    url: str
    thumbnail_url: str | None

    @classmethod
    def from_entity(cls, attachment: Attachment) -> AttachmentUploadResponse:
        return cls(
            id=attachment.id,
            type=attachment.type.value,
            url=attachment.url,
            thumbnail_url=attachment.thumbnail_url,
        )
