from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, String, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from amen_messaging.infrastructure.db.base import Base


class AccountModel(Base):
    """Mirror of profiles owned by the identity service."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    allows_messages_from: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="everyone",
        server_default=text("'everyone'"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
        onupdate=text("now()"),
    )


class FollowModel(Base):
    __tablename__ = "follows"

    follower_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    followee_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    __table_args__ = (
        Index("ix_follows_followee", "followee_id", "follower_id"),
    )


class BlockModel(Base):
    """Block edges are owned by this service and survive account deletion."""

    __tablename__ = "blocks"

    blocker_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    blocked_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    __table_args__ = (
        Index("ix_blocks_blocked", "blocked_id", "blocker_id"),
    )
