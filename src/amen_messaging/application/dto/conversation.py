from __future__ import annotations

from dataclasses import dataclass

from amen_messaging.domain.value_objects.enums import GateReason


@dataclass(frozen=True, slots=True)
class GateDecision:
    """Outcome of asking whether one account may message another."""

    allowed: bool
    reason: GateReason

    @property
    def requires_request(self) -> bool:
        return self.allowed and self.reason == GateReason.MESSAGE_REQUEST


@dataclass(frozen=True, slots=True)
class ConversationFilterDTO:
    include_archived: bool = False
    cursor: str | None = None
    limit: int = 20
