from __future__ import annotations

import logging
from types import TracebackType
from typing import Self

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from amen_messaging.application.exceptions import NetworkError
from amen_messaging.infrastructure.db.repositories.conversation import (
    ConversationReaderRepo,
    ConversationWriterRepo,
)
from amen_messaging.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from amen_messaging.infrastructure.db.repositories.message_request import (
    MessageRequestReaderRepo,
    MessageRequestWriterRepo,
)
from amen_messaging.infrastructure.db.repositories.outbox import OutboxWriterRepo
from amen_messaging.infrastructure.db.repositories.participant import (
    ParticipantReaderRepo,
    ParticipantWriterRepo,
)
from amen_messaging.infrastructure.db.repositories.relationship import (
    RelationshipReaderRepo,
    RelationshipWriterRepo,
)

logger = logging.getLogger(__name__)


class SqlAlchemyUoW:
    """Concrete Unit-of-Work backed by a single AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.conversations = ConversationReaderRepo(session)
        self.conversations_w = ConversationWriterRepo(session)
        self.participants = ParticipantReaderRepo(session)
        self.participants_w = ParticipantWriterRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.requests = MessageRequestReaderRepo(session)
        self.requests_w = MessageRequestWriterRepo(session)
        self.relationships = RelationshipReaderRepo(session)
        self.relationships_w = RelationshipWriterRepo(session)
        self.outbox = OutboxWriterRepo(session)

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except OperationalError as exc:
            logger.warning("Commit failed: %s", exc)
            raise NetworkError("Database unavailable, try again") from exc

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()
