from __future__ import annotations

from enum import StrEnum


class PrivacySetting(StrEnum):
    """Who may start a conversation with an account."""

    EVERYONE = "everyone"
    FOLLOWERS = "followers"
    NOBODY = "nobody"


class RequestStatus(StrEnum):
    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    BLOCKED = "blocked"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.ACCEPTED, RequestStatus.DECLINED, RequestStatus.BLOCKED)


class MessageType(StrEnum):
    TEXT = "text"
    SYSTEM = "system"
    ATTACHMENT = "attachment"


class AttachmentType(StrEnum):
    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"


class GateReason(StrEnum):
    MUTUAL_FOLLOW = "mutual_follow"
    MESSAGE_REQUEST = "message_request"
    SELF_CONVERSATION = "self_conversation"
    UNKNOWN_ACCOUNT = "unknown_account"
    BLOCKED = "blocked"
    PRIVACY = "privacy"
    FOLLOW_REQUIRED = "follow_required"


class ChangeKind(StrEnum):
    UPSERT = "upsert"
    REMOVE = "remove"
