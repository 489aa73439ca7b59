from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from amen_messaging.application.repositories.outbox import OutboxRecord
from amen_messaging.infrastructure.db.models.outbox import OutboxMessageModel


class OutboxWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._session.add(
            OutboxMessageModel(
                event_type=event_type,
                conversation_id=payload.get("conversation_id"),
                payload=payload,
            )
        )
        await self._session.flush()

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        """Claim up to ``batch_size`` due records in insertion order."""
        due = (
            select(OutboxMessageModel.id)
            .where(
                OutboxMessageModel.status.in_(["pending", "failed"]),
                OutboxMessageModel.next_retry_at.is_(None)
                | (OutboxMessageModel.next_retry_at <= func.now()),
            )
            .order_by(OutboxMessageModel.id.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(due))
            .values(status="processing")
            .returning(
                OutboxMessageModel.id,
                OutboxMessageModel.event_type,
                OutboxMessageModel.payload,
                OutboxMessageModel.attempts,
            )
        )
        result = await self._session.execute(stmt)
        records = [
            OutboxRecord(id=row.id, event_type=row.event_type, payload=row.payload, attempts=row.attempts)
            for row in result.all()
        ]
        records.sort(key=lambda r: r.id)
        return records

    async def mark_sent(self, ids: list[int]) -> None:
        if not ids:
            return
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(ids))
            .values(status="sent")
        )

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(
                status="failed",
                attempts=OutboxMessageModel.attempts + 1,
                next_retry_at=next_retry_at,
            )
        )
