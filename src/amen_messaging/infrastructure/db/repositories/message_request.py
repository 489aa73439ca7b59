from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from amen_messaging.domain.entities.message_request import MessageRequest
from amen_messaging.domain.value_objects.enums import RequestStatus
from amen_messaging.infrastructure.db.mappers import message_request as mapper
from amen_messaging.infrastructure.db.models.message_request import MessageRequestModel


class MessageRequestReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _one(self, *criteria: object) -> MessageRequest | None:
        stmt = (
            select(MessageRequestModel)
            .where(*criteria)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def get_by_id(self, request_id: UUID) -> MessageRequest | None:
        return await self._one(MessageRequestModel.id == request_id)

    async def get_for_conversation(self, conversation_id: UUID) -> MessageRequest | None:
        return await self._one(MessageRequestModel.conversation_id == conversation_id)

    async def list_pending_for_recipient(self, account_id: str) -> list[MessageRequest]:
        stmt = (
            select(MessageRequestModel)
            .where(
                MessageRequestModel.recipient_id == account_id,
                MessageRequestModel.status == RequestStatus.PENDING.value,
            )
            .order_by(MessageRequestModel.created_at.desc(), MessageRequestModel.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageRequestWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._reader = MessageRequestReaderRepo(session)

    async def create_if_absent(
        self, request: MessageRequest
    ) -> tuple[MessageRequest, bool]:
        stmt = (
            pg_insert(MessageRequestModel)
            .values(
                id=request.id,
                conversation_id=request.conversation_id,
                sender_id=request.sender_id,
                recipient_id=request.recipient_id,
                status=request.status.value,
                is_read=request.is_read,
                created_at=request.created_at,
            )
            .on_conflict_do_nothing(index_elements=[MessageRequestModel.conversation_id])
            .returning(MessageRequestModel.id)
        )
        result = await self._session.execute(stmt)
        created = result.scalar_one_or_none() is not None
        stored = await self._reader.get_for_conversation(request.conversation_id)
        assert stored is not None
        return stored, created

    async def transition(
        self, request_id: UUID, status: RequestStatus, resolved_at: datetime
    ) -> bool:
        stmt = (
            update(MessageRequestModel)
            .where(
                MessageRequestModel.id == request_id,
                MessageRequestModel.status == RequestStatus.PENDING.value,
            )
            .values(status=status.value, resolved_at=resolved_at)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def mark_read(self, request_id: UUID) -> None:
        await self._session.execute(
            update(MessageRequestModel)
            .where(MessageRequestModel.id == request_id)
            .values(is_read=True)
        )
