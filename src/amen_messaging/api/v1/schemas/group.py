from __future__ import annotations

from pydantic import BaseModel, Field


class CreateGroupRequest(BaseModel):
    name: str
    participant_ids: list[str] = Field(min_length=1)
    participant_names: dict[str, str] = {}


class AddParticipantsRequest(BaseModel):
    participant_ids: list[str] = Field(min_length=1)
    participant_names: dict[str, str] = {}


class RenameGroupRequest(BaseModel):
    name: str


class GroupAvatarRequest(BaseModel):
    avatar_url: str | None = None
