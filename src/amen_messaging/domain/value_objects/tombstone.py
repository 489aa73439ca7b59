from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

DELETED_MESSAGE_PREVIEW = "This message was deleted"


@dataclass(frozen=True, slots=True)
class Tombstone:
    """Marks a record as deleted while keeping it in its ordered history."""

    deleted_at: datetime
    deleted_by: str
