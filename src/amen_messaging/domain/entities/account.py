from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from amen_messaging.domain.value_objects.enums import PrivacySetting


@dataclass(frozen=True, slots=True)
class Account:
    """Local mirror of a profile owned by the identity service."""

    id: str
    display_name: str
    username: str | None = None
    avatar_url: str | None = None
    allows_messages_from: PrivacySetting = PrivacySetting.EVERYONE


@dataclass(frozen=True, slots=True)
class Block:
    blocker_id: str
    blocked_id: str
    created_at: datetime
