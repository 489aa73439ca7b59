from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID


class NotificationDispatcher(Protocol):
    """Hands "account X should hear about event Y" to the push pipeline."""

    async def notify(
        self,
        account_id: str,
        event: str,
        conversation_id: UUID,
        data: dict[str, Any],
    ) -> None: ...
