from __future__ import annotations

from amen_messaging.domain.entities.account import Account, Block
from amen_messaging.domain.value_objects.enums import PrivacySetting
from amen_messaging.infrastructure.db.models.account import AccountModel, BlockModel


def account_to_entity(model: AccountModel) -> Account:
    return Account(
        id=model.id,
        display_name=model.display_name,
        username=model.username,
        avatar_url=model.avatar_url,
        allows_messages_from=PrivacySetting(model.allows_messages_from),
    )


def block_to_entity(model: BlockModel) -> Block:
    return Block(
        blocker_id=model.blocker_id,
        blocked_id=model.blocked_id,
        created_at=model.created_at,
    )
