from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    account_id: str
    display_name: str | None = None

    @property
    def name(self) -> str:
        return self.display_name or self.account_id
