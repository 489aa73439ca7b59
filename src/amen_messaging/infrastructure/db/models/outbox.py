from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from amen_messaging.infrastructure.db.base import Base


class OutboxMessageModel(Base):
    """Change events waiting to be fanned out. Rows are written in the same
    transaction as the change they describe and published in ``id`` order."""

    __tablename__ = "messaging_outbox"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    conversation_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending", server_default=text("'pending'"),
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    next_retry_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=text("now()"),
    )

    __table_args__ = (
        Index(
            "ix_messaging_outbox_due",
            "id",
            "next_retry_at",
            postgresql_where=text("status IN ('pending', 'failed')"),
        ),
        Index("ix_messaging_outbox_conversation", "conversation_id"),
    )
