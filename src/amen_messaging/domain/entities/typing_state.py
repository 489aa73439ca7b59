from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class TypingState:
    conversation_id: UUID
    account_id: str
    display_name: str
    updated_at: datetime
    is_typing: bool = True

    def is_active(self, now: datetime, timeout_seconds: float) -> bool:
        return self.is_typing and (now - self.updated_at).total_seconds() < timeout_seconds
