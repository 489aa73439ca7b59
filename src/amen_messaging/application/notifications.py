"""Fire-and-forget delivery of notification jobs after a successful write."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from amen_messaging.application.ports.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

_background: set[asyncio.Task[None]] = set()


@dataclass(frozen=True, slots=True)
class NotificationJob:
    account_id: str
    event: str
    conversation_id: UUID
    data: dict[str, Any] = field(default_factory=dict)


async def _deliver(notifier: NotificationDispatcher, jobs: list[NotificationJob]) -> None:
    for job in jobs:
        try:
            await notifier.notify(job.account_id, job.event, job.conversation_id, job.data)
        except Exception:
            logger.exception(
                "Notification %s for %s in %s failed", job.event, job.account_id, job.conversation_id,
            )


def dispatch(
    notifier: NotificationDispatcher | None,
    jobs: list[NotificationJob],
) -> asyncio.Task[None] | None:
    """Schedule delivery without waiting for it. Never raises into the caller."""
    if notifier is None or not jobs:
        return None
    task = asyncio.create_task(_deliver(notifier, jobs), name="notification-dispatch")
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


async def drain() -> None:
    """Wait for scheduled deliveries to finish (shutdown and tests)."""
    if _background:
        await asyncio.gather(*list(_background), return_exceptions=True)
