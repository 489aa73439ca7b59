"""Import all models so Alembic can discover them via Base.metadata."""
from amen_messaging.infrastructure.db.models.account import AccountModel, BlockModel, FollowModel
from amen_messaging.infrastructure.db.models.conversation import ConversationModel
from amen_messaging.infrastructure.db.models.message import (
    MessageModel,
    MessageReactionModel,
    MessageReceiptModel,
    MessageStarModel,
)
from amen_messaging.infrastructure.db.models.message_request import MessageRequestModel
from amen_messaging.infrastructure.db.models.outbox import OutboxMessageModel
from amen_messaging.infrastructure.db.models.participant import ParticipantModel

__all__ = [
    "AccountModel",
    "BlockModel",
    "ConversationModel",
    "FollowModel",
    "MessageModel",
    "MessageReactionModel",
    "MessageReceiptModel",
    "MessageRequestModel",
    "MessageStarModel",
    "OutboxMessageModel",
    "ParticipantModel",
]
