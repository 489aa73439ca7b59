"""Mirrors accounts and follow edges from the identity service's event stream."""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

import redis.asyncio as aioredis

from amen_messaging.application.uow import UnitOfWork
from amen_messaging.config import settings
from amen_messaging.domain.entities.account import Account
from amen_messaging.domain.value_objects.enums import PrivacySetting
from amen_messaging.infrastructure.bus.redis_streams import RedisStreamConsumer
from amen_messaging.infrastructure.db.session import uow_scope

logger = logging.getLogger(__name__)


async def handle_event(event_type: str, fields: dict[str, Any], uow: UnitOfWork) -> None:
    """Apply one profile event and commit."""
    if event_type == "user.updated":
        await _user_updated(fields, uow)
    elif event_type == "user.deleted":
        await uow.relationships_w.delete_account(str(fields["user_id"]))
    elif event_type == "follow.created":
        await uow.relationships_w.set_follow(
            str(fields["follower_id"]), str(fields["followee_id"]), True,
        )
    elif event_type == "follow.deleted":
        await uow.relationships_w.set_follow(
            str(fields["follower_id"]), str(fields["followee_id"]), False,
        )
    else:
        logger.debug("Ignoring unknown event: %s", event_type)
        return
    await uow.commit()


async def _user_updated(fields: dict[str, Any], uow: UnitOfWork) -> None:
    account_id = str(fields["user_id"])
    privacy_raw = fields.get("allows_messages_from") or PrivacySetting.EVERYONE.value
    try:
        privacy = PrivacySetting(privacy_raw)
    except ValueError:
        logger.warning("Unknown privacy setting %r for %s, using everyone", privacy_raw, account_id)
        privacy = PrivacySetting.EVERYONE

    display_name = fields.get("display_name") or fields.get("username") or account_id
    previous = await uow.relationships.get_account(account_id)
    await uow.relationships_w.upsert_account(
        Account(
            id=account_id,
            display_name=display_name,
            username=fields.get("username") or None,
            avatar_url=fields.get("avatar_url") or None,
            allows_messages_from=privacy,
        )
    )
    if previous is not None and previous.display_name != display_name:
        await uow.participants_w.rename_account(account_id, display_name)
        logger.info("Account %s renamed, participant names refreshed", account_id)


async def _dispatch(event_type: str, fields: dict[str, Any]) -> None:
    async with uow_scope() as uow:
        await handle_event(event_type, fields, uow)


async def run_consumer() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    consumer_name = f"consumer-{uuid.uuid4().hex[:8]}"

    consumer = RedisStreamConsumer(
        redis=redis,
        stream=settings.PROFILE_EVENTS_STREAM,
        group=settings.PROFILE_EVENTS_GROUP,
        consumer=consumer_name,
        callback=_dispatch,
    )
    await consumer.start()
    logger.info("Profile events consumer started (%s)", consumer_name)

    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await consumer.stop()
        await redis.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run_consumer())


if __name__ == "__main__":
    main()
