from __future__ import annotations

import json

import pytest

from amen_messaging.application.sync.codec import MESSAGE_CHANGED
from amen_messaging.config import settings
from amen_messaging.domain.value_objects.enums import PrivacySetting
from amen_messaging.infrastructure.bus.redis_streams import decode_fields
from amen_messaging.workers.outbox_worker import process_batch
from amen_messaging.workers.profile_events_consumer import handle_event
from tests.conftest import FakePublisher, add_account, make_direct


class FailingPublisher:
    async def publish(self, channel, payload):
        raise ConnectionError("redis down")


@pytest.mark.asyncio
async def test_outbox_publishes_in_order_and_marks_sent(uow):
    await uow.outbox.add(MESSAGE_CHANGED, {"conversation_id": "c1", "entity": {"n": 1}})
    await uow.outbox.add(MESSAGE_CHANGED, {"conversation_id": "c1", "entity": {"n": 2}})
    publisher = FakePublisher()

    published = await process_batch(publisher, uow)

    assert published == 2
    assert [p["entity"]["n"] for _, p in publisher.published] == [1, 2]
    assert {channel for channel, _ in publisher.published} == {settings.REDIS_PUBSUB_CHANNEL}
    assert [r["status"] for r in uow.db.outbox] == ["sent", "sent"]
    assert await process_batch(publisher, uow) == 0


@pytest.mark.asyncio
async def test_outbox_failure_is_retried_later(uow):
    await uow.outbox.add(MESSAGE_CHANGED, {"conversation_id": "c1", "entity": {}})

    assert await process_batch(FailingPublisher(), uow) == 0

    (record,) = uow.db.outbox
    assert record["status"] == "failed"
    assert record["attempts"] == 1
    assert uow.commits == 1


@pytest.mark.asyncio
async def test_user_updated_refreshes_participant_names(uow, alice, bob):
    add_account(uow.db, alice)
    conv = make_direct(uow.db, alice, bob)

    await handle_event(
        "user.updated",
        {"user_id": alice.account_id, "display_name": "Alice M.", "allows_messages_from": "followers"},
        uow,
    )

    account = uow.db.accounts[alice.account_id]
    assert account.display_name == "Alice M."
    assert account.allows_messages_from == PrivacySetting.FOLLOWERS
    assert uow.db.participants[(conv.id, alice.account_id)].display_name == "Alice M."


@pytest.mark.asyncio
async def test_unknown_privacy_falls_back_to_everyone(uow):
    await handle_event("user.updated", {"user_id": "u-new", "username": "newbie",
                                        "allows_messages_from": "friends"}, uow)

    account = uow.db.accounts["u-new"]
    assert account.display_name == "newbie"
    assert account.allows_messages_from == PrivacySetting.EVERYONE


@pytest.mark.asyncio
async def test_follow_events_update_edges(uow, alice, bob):
    edge = {"follower_id": alice.account_id, "followee_id": bob.account_id}

    await handle_event("follow.created", edge, uow)
    assert (alice.account_id, bob.account_id) in uow.db.follows

    await handle_event("follow.deleted", edge, uow)
    assert (alice.account_id, bob.account_id) not in uow.db.follows
    assert uow.commits == 2


@pytest.mark.asyncio
async def test_user_deleted_and_unknown_events(uow, alice):
    add_account(uow.db, alice)

    await handle_event("post.liked", {"user_id": alice.account_id}, uow)
    assert uow.commits == 0

    await handle_event("user.deleted", {"user_id": alice.account_id}, uow)
    assert alice.account_id not in uow.db.accounts


def test_decode_fields_flattens_json_payload():
    fields = {"event_type": "user.updated", "payload": json.dumps({"user_id": "u1", "event_type": "x"})}

    assert decode_fields(fields) == {"user_id": "u1", "event_type": "user.updated"}
    assert decode_fields({"event_type": "a", "payload": "{not json"}) == {"event_type": "a"}
