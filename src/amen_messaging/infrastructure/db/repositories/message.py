from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from amen_messaging.domain.entities.message import Message
from amen_messaging.domain.value_objects.ids import SYSTEM_SENDER_ID
from amen_messaging.domain.value_objects.tombstone import Tombstone
from amen_messaging.infrastructure.db.mappers import message as mapper
from amen_messaging.infrastructure.db.models.message import (
    MessageModel,
    MessageReactionModel,
    MessageReceiptModel,
    MessageStarModel,
)
from amen_messaging.infrastructure.db.cursor import decode_cursor


async def _get(session: AsyncSession, message_id: UUID) -> Message | None:
    stmt = (
        select(MessageModel)
        .where(MessageModel.id == message_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    model = result.scalar_one_or_none()
    return mapper.model_to_entity(model) if model else None


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, message_id: UUID) -> Message | None:
        return await _get(self._session, message_id)

    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        cursor: str | None = None,
        limit: int = 50,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        if cursor:
            ts, mid = decode_cursor(cursor)
            stmt = stmt.where(
                (MessageModel.created_at < ts)
                | ((MessageModel.created_at == ts) & (MessageModel.id < mid))
            )
        result = await self._session.execute(stmt)
        page = [mapper.model_to_entity(m) for m in result.scalars().all()]
        page.reverse()
        return page

    async def count_from_sender(self, conversation_id: UUID, sender_id: str) -> int:
        stmt = select(func.count()).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.sender_id == sender_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def _list(self, stmt) -> list[Message]:
        result = await self._session.execute(stmt.execution_options(populate_existing=True))
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_pinned(self, conversation_id: UUID) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.is_pinned.is_(True),
            )
            .order_by(MessageModel.pinned_at.desc().nulls_last(), MessageModel.id.desc())
        )
        return await self._list(stmt)

    async def list_starred(self, conversation_id: UUID, account_id: str) -> list[Message]:
        stmt = (
            select(MessageModel)
            .join(MessageStarModel, MessageStarModel.message_id == MessageModel.id)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageStarModel.account_id == account_id,
            )
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
        )
        return await self._list(stmt)

    async def search(self, conversation_id: UUID, query: str, *, limit: int) -> list[Message]:
        pattern = "%" + query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        stmt = (
            select(MessageModel)
            .where(
                MessageModel.conversation_id == conversation_id,
                MessageModel.deleted_at.is_(None),
                MessageModel.body.ilike(pattern, escape="\\"),
            )
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(limit)
        )
        return await self._list(stmt)


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message idempotently. Returns (message, created_flag)."""
        stmt = (
            pg_insert(MessageModel)
            .values(**mapper.message_values(message))
            .on_conflict_do_nothing(index_elements=[MessageModel.id])
            .returning(MessageModel.id)
        )
        result = await self._session.execute(stmt)
        created = result.scalar_one_or_none() is not None

        stored = await _get(self._session, message.id)
        assert stored is not None
        return stored, created

    async def _bump(self, message_id: UUID, **values: object) -> None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(revision=MessageModel.revision + 1, **values)
        )
        await self._session.execute(stmt)

    async def update_text(self, message_id: UUID, text: str, edited_at: datetime) -> None:
        await self._bump(message_id, body=text, edited_at=edited_at)

    async def mark_deleted(self, message_id: UUID, tombstone: Tombstone) -> None:
        await self._bump(
            message_id,
            body="",
            attachments=[],
            deleted_at=tombstone.deleted_at,
            deleted_by=tombstone.deleted_by,
            is_pinned=False,
            pinned_by=None,
            pinned_at=None,
        )

    async def set_pinned(
        self, message_id: UUID, pinned_by: str | None, pinned_at: datetime | None,
    ) -> None:
        await self._bump(
            message_id, is_pinned=pinned_by is not None, pinned_by=pinned_by, pinned_at=pinned_at,
        )

    async def set_reaction(self, message_id: UUID, account_id: str, emoji: str) -> None:
        stmt = (
            pg_insert(MessageReactionModel)
            .values(message_id=message_id, account_id=account_id, emoji=emoji)
            .on_conflict_do_update(
                index_elements=[MessageReactionModel.message_id, MessageReactionModel.account_id],
                set_={"emoji": emoji, "created_at": func.now()},
            )
        )
        await self._session.execute(stmt)
        await self._bump(message_id)

    async def remove_reaction(self, message_id: UUID, account_id: str) -> None:
        await self._session.execute(
            delete(MessageReactionModel).where(
                MessageReactionModel.message_id == message_id,
                MessageReactionModel.account_id == account_id,
            )
        )
        await self._bump(message_id)

    async def set_starred(self, message_id: UUID, account_id: str, starred: bool) -> None:
        if starred:
            stmt = (
                pg_insert(MessageStarModel)
                .values(message_id=message_id, account_id=account_id)
                .on_conflict_do_nothing()
            )
        else:
            stmt = delete(MessageStarModel).where(
                MessageStarModel.message_id == message_id,
                MessageStarModel.account_id == account_id,
            )
        await self._session.execute(stmt)
        await self._bump(message_id)

    async def mark_read(self, conversation_id: UUID, account_id: str) -> list[UUID]:
        already_read = select(MessageReceiptModel.message_id).where(
            MessageReceiptModel.account_id == account_id,
        )
        stmt = select(MessageModel.id).where(
            MessageModel.conversation_id == conversation_id,
            MessageModel.sender_id.not_in([account_id, SYSTEM_SENDER_ID]),
            MessageModel.id.not_in(already_read),
        )
        result = await self._session.execute(stmt)
        ids = list(result.scalars().all())
        if not ids:
            return []

        await self._session.execute(
            pg_insert(MessageReceiptModel)
            .values([{"message_id": mid, "account_id": account_id} for mid in ids])
            .on_conflict_do_nothing()
        )
        await self._session.execute(
            update(MessageModel)
            .where(MessageModel.id.in_(ids))
            .values(revision=MessageModel.revision + 1)
        )
        return ids
