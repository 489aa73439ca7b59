from __future__ import annotations

from typing import Protocol

from amen_messaging.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from amen_messaging.application.repositories.message import MessageReader, MessageWriter
from amen_messaging.application.repositories.message_request import (
    MessageRequestReader,
    MessageRequestWriter,
)
from amen_messaging.application.repositories.outbox import OutboxWriter
from amen_messaging.application.repositories.participant import (
    ParticipantReader,
    ParticipantWriter,
)
from amen_messaging.application.repositories.relationship import (
    RelationshipReader,
    RelationshipWriter,
)


class UnitOfWork(Protocol):
    conversations: ConversationReader
    conversations_w: ConversationWriter
    participants: ParticipantReader
    participants_w: ParticipantWriter
    messages: MessageReader
    messages_w: MessageWriter
    requests: MessageRequestReader
    requests_w: MessageRequestWriter
    relationships: RelationshipReader
    relationships_w: RelationshipWriter
    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...
