from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from amen_messaging.application.dto.conversation import ConversationFilterDTO
from amen_messaging.domain.entities.conversation import Conversation
from amen_messaging.domain.value_objects.enums import RequestStatus
from amen_messaging.infrastructure.db.mappers import conversation as mapper
from amen_messaging.infrastructure.db.models.conversation import ConversationModel
from amen_messaging.infrastructure.db.models.participant import ParticipantModel
from amen_messaging.infrastructure.db.cursor import decode_inbox_cursor

_activity = func.coalesce(ConversationModel.last_message_at, ConversationModel.created_at)


async def _get(session: AsyncSession, conversation_id: UUID) -> Conversation | None:
    stmt = (
        select(ConversationModel)
        .where(ConversationModel.id == conversation_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    model = result.scalar_one_or_none()
    return mapper.model_to_entity(model) if model else None


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return await _get(self._session, conversation_id)

    async def list_for_account(
        self,
        account_id: str,
        filters: ConversationFilterDTO,
    ) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .join(
                ParticipantModel,
                ParticipantModel.conversation_id == ConversationModel.id,
            )
            .where(
                ParticipantModel.account_id == account_id,
                ParticipantModel.deleted_at.is_(None),
                or_(
                    ConversationModel.is_group.is_(True),
                    ConversationModel.request_status == RequestStatus.ACCEPTED.value,
                    ConversationModel.requester_id == account_id,
                ),
            )
            .order_by(
                ParticipantModel.is_pinned.desc(),
                _activity.desc(),
                ConversationModel.id.desc(),
            )
            .limit(filters.limit)
            .execution_options(populate_existing=True)
        )
        if not filters.include_archived:
            stmt = stmt.where(ParticipantModel.is_archived.is_(False))
        if filters.cursor:
            pinned, ts, cid = decode_inbox_cursor(filters.cursor)
            stmt = stmt.where(
                (ParticipantModel.is_pinned < pinned)
                | ((ParticipantModel.is_pinned == pinned) & (_activity < ts))
                | (
                    (ParticipantModel.is_pinned == pinned)
                    & (_activity == ts)
                    & (ConversationModel.id < cid)
                )
            )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_absent(
        self, conversation: Conversation
    ) -> tuple[Conversation, bool]:
        stmt = (
            pg_insert(ConversationModel)
            .values(**mapper.conversation_values(conversation))
            .on_conflict_do_nothing(index_elements=[ConversationModel.id])
            .returning(ConversationModel.id)
        )
        result = await self._session.execute(stmt)
        created = result.scalar_one_or_none() is not None

        if created and conversation.participants:
            await self._session.execute(
                pg_insert(ParticipantModel)
                .values([mapper.participant_values(p) for p in conversation.participants])
                .on_conflict_do_nothing(
                    index_elements=[ParticipantModel.conversation_id, ParticipantModel.account_id],
                )
            )

        stored = await _get(self._session, conversation.id)
        assert stored is not None
        return stored, created

    async def _update(self, conversation_id: UUID, **values: object) -> int:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(revision=ConversationModel.revision + 1, **values)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def record_message(
        self,
        conversation_id: UUID,
        message_id: UUID,
        preview: str,
        ts: datetime,
    ) -> None:
        # A slower concurrent writer must not replace a newer last message.
        newer = or_(
            ConversationModel.last_message_at.is_(None),
            ConversationModel.last_message_at <= ts,
        )
        await self._update(
            conversation_id,
            last_message_id=case((newer, message_id), else_=ConversationModel.last_message_id),
            last_message_preview=case((newer, preview), else_=ConversationModel.last_message_preview),
            last_message_at=case((newer, ts), else_=ConversationModel.last_message_at),
            updated_at=ts,
        )

    async def set_request_status(
        self,
        conversation_id: UUID,
        status: RequestStatus,
        *,
        expected: tuple[RequestStatus, ...] | None = None,
        requester_id: str | None = None,
    ) -> bool:
        values: dict[str, object] = {
            "request_status": status.value,
            "revision": ConversationModel.revision + 1,
            "updated_at": func.now(),
        }
        if requester_id is not None:
            values["requester_id"] = requester_id
        stmt = update(ConversationModel).where(ConversationModel.id == conversation_id)
        if expected is not None:
            stmt = stmt.where(ConversationModel.request_status.in_([s.value for s in expected]))
        result = await self._session.execute(stmt.values(**values))
        return result.rowcount > 0

    async def update_preview(
        self, conversation_id: UUID, message_id: UUID, preview: str
    ) -> None:
        stmt = (
            update(ConversationModel)
            .where(
                ConversationModel.id == conversation_id,
                ConversationModel.last_message_id == message_id,
            )
            .values(last_message_preview=preview, revision=ConversationModel.revision + 1)
        )
        await self._session.execute(stmt)

    async def rename(self, conversation_id: UUID, name: str) -> None:
        await self._update(conversation_id, group_name=name)

    async def set_avatar(self, conversation_id: UUID, url: str | None) -> None:
        await self._update(conversation_id, group_avatar_url=url)

    async def transfer_ownership(self, conversation_id: UUID, owner_id: str) -> None:
        await self._update(conversation_id, created_by=owner_id)

    async def touch(self, conversation_id: UUID, ts: datetime) -> None:
        await self._update(conversation_id, updated_at=ts)
