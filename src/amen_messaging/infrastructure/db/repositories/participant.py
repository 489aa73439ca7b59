from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from amen_messaging.domain.entities.participant import Participant
from amen_messaging.domain.value_objects.tombstone import Tombstone
from amen_messaging.infrastructure.db.mappers import conversation as mapper
from amen_messaging.infrastructure.db.models.participant import ParticipantModel


class ParticipantReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def count_pinned(self, account_id: str) -> int:
        stmt = select(func.count()).where(
            ParticipantModel.account_id == account_id,
            ParticipantModel.is_pinned.is_(True),
            ParticipantModel.deleted_at.is_(None),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()


class ParticipantWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, participant: Participant) -> bool:
        stmt = (
            pg_insert(ParticipantModel)
            .values(**mapper.participant_values(participant))
            .on_conflict_do_nothing(
                index_elements=[ParticipantModel.conversation_id, ParticipantModel.account_id],
            )
            .returning(ParticipantModel.account_id)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def remove(self, conversation_id: UUID, account_id: str) -> None:
        await self._session.execute(
            delete(ParticipantModel).where(
                ParticipantModel.conversation_id == conversation_id,
                ParticipantModel.account_id == account_id,
            )
        )

    async def _update(self, conversation_id: UUID, account_id: str, **values: object) -> None:
        stmt = (
            update(ParticipantModel)
            .where(
                ParticipantModel.conversation_id == conversation_id,
                ParticipantModel.account_id == account_id,
            )
            .values(**values)
        )
        await self._session.execute(stmt)

    async def set_muted(self, conversation_id: UUID, account_id: str, muted: bool) -> None:
        await self._update(conversation_id, account_id, is_muted=muted)

    async def set_pinned(
        self, conversation_id: UUID, account_id: str, pinned_at: datetime | None
    ) -> None:
        await self._update(
            conversation_id, account_id, is_pinned=pinned_at is not None, pinned_at=pinned_at,
        )

    async def set_archived(self, conversation_id: UUID, account_id: str, archived: bool) -> None:
        await self._update(conversation_id, account_id, is_archived=archived)

    async def set_tombstone(
        self, conversation_id: UUID, account_id: str, tombstone: Tombstone | None
    ) -> None:
        await self._update(
            conversation_id,
            account_id,
            deleted_at=tombstone.deleted_at if tombstone else None,
            deleted_by=tombstone.deleted_by if tombstone else None,
        )

    async def increment_unread(self, conversation_id: UUID, account_ids: list[str]) -> None:
        if not account_ids:
            return
        stmt = (
            update(ParticipantModel)
            .where(
                ParticipantModel.conversation_id == conversation_id,
                ParticipantModel.account_id.in_(account_ids),
            )
            .values(unread_count=ParticipantModel.unread_count + 1)
        )
        await self._session.execute(stmt)

    async def reset_unread(self, conversation_id: UUID, account_id: str) -> None:
        await self._update(conversation_id, account_id, unread_count=0)

    async def rename_account(self, account_id: str, display_name: str) -> None:
        await self._session.execute(
            update(ParticipantModel)
            .where(ParticipantModel.account_id == account_id)
            .values(display_name=display_name)
        )
