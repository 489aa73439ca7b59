"""Seed development data: mirrored accounts, follows, a direct chat and a group."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from amen_messaging.application.dto.message import SendMessageDTO
from amen_messaging.application.dto.principal import Principal
from amen_messaging.domain.entities.account import Account
from amen_messaging.domain.value_objects.enums import PrivacySetting
from amen_messaging.infrastructure.db.session import uow_scope
from amen_messaging.services import conversation_service, group_service, message_service

logger = logging.getLogger(__name__)

ACCOUNTS = [
    Account(id="dev-alice", display_name="Alice", username="alice"),
    Account(id="dev-bob", display_name="Bob", username="bob"),
    Account(
        id="dev-carol",
        display_name="Carol",
        username="carol",
        allows_messages_from=PrivacySetting.FOLLOWERS,
    ),
]

FOLLOWS = [
    ("dev-alice", "dev-bob"),
    ("dev-bob", "dev-alice"),
    ("dev-carol", "dev-alice"),
]


async def seed() -> None:
    async with uow_scope() as uow:
        for account in ACCOUNTS:
            await uow.relationships_w.upsert_account(account)
        for follower_id, followee_id in FOLLOWS:
            await uow.relationships_w.set_follow(follower_id, followee_id, True)
        await uow.commit()

    alice = Principal("dev-alice", "Alice")
    bob = Principal("dev-bob", "Bob")

    async with uow_scope() as uow:
        direct = await conversation_service.get_or_create_direct(alice, bob.account_id, uow)
        lines = [
            (alice, "Hey Bob, are you coming on Sunday?"),
            (bob, "Wouldn't miss it."),
            (alice, "Great, see you there!"),
        ]
        for sender, text in lines:
            await message_service.send_message(
                SendMessageDTO(conversation_id=direct.id, text=text), sender, uow,
            )

        group = await group_service.create_group(
            alice,
            ["dev-bob", "dev-carol"],
            {},
            "Sunday volunteers",
            uow,
        )
        await message_service.send_message(
            SendMessageDTO(conversation_id=group.id, text="Welcome everyone!"), alice, uow,
        )

    logger.info(
        "Seeded %d accounts, direct %s and group %s at %s",
        len(ACCOUNTS), direct.id, group.id, datetime.now(timezone.utc).isoformat(),
    )


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
