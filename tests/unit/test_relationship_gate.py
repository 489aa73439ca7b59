from __future__ import annotations

import pytest

from amen_messaging.application.exceptions import (
    FollowRequiredError,
    InvalidInputError,
    MessagesNotAllowedError,
    UserBlockedError,
)
from amen_messaging.application.policies.relationship_gate import can_message, ensure_can_message
from amen_messaging.domain.value_objects.enums import GateReason, PrivacySetting
from tests.conftest import FakeUoW, add_account, follow, mutual


@pytest.mark.asyncio
async def test_mutual_follow_allows_direct_message(uow, alice, bob):
    add_account(uow.db, alice)
    add_account(uow.db, bob)
    mutual(uow.db, alice, bob)

    decision = await can_message(alice.account_id, bob.account_id, uow.relationships)

    assert decision.allowed is True
    assert decision.reason == GateReason.MUTUAL_FOLLOW
    assert decision.requires_request is False


@pytest.mark.asyncio
async def test_everyone_without_follow_goes_through_request(uow, alice, bob):
    add_account(uow.db, alice)
    add_account(uow.db, bob, PrivacySetting.EVERYONE)

    decision = await can_message(alice.account_id, bob.account_id, uow.relationships)

    assert decision.allowed is True
    assert decision.requires_request is True


@pytest.mark.asyncio
async def test_followers_only_requires_recipient_to_follow_sender(uow, alice, bob):
    add_account(uow.db, alice)
    add_account(uow.db, bob, PrivacySetting.FOLLOWERS)
    follow(uow.db, alice, bob)

    decision = await can_message(alice.account_id, bob.account_id, uow.relationships)
    assert decision.allowed is False
    assert decision.reason == GateReason.FOLLOW_REQUIRED

    follow(uow.db, bob, alice)
    decision = await can_message(alice.account_id, bob.account_id, uow.relationships)
    assert decision.reason == GateReason.MUTUAL_FOLLOW


@pytest.mark.asyncio
async def test_followers_only_recipient_following_sender_opens_request(uow, alice, bob):
    add_account(uow.db, alice)
    add_account(uow.db, bob, PrivacySetting.FOLLOWERS)
    follow(uow.db, bob, alice)

    decision = await can_message(alice.account_id, bob.account_id, uow.relationships)

    assert decision.requires_request is True


@pytest.mark.asyncio
async def test_block_wins_over_mutual_follow_in_either_direction(uow, alice, bob):
    add_account(uow.db, alice)
    add_account(uow.db, bob)
    mutual(uow.db, alice, bob)
    await uow.relationships_w.block(bob.account_id, alice.account_id, None)

    decision = await can_message(alice.account_id, bob.account_id, uow.relationships)

    assert decision.reason == GateReason.BLOCKED
    with pytest.raises(UserBlockedError):
        await ensure_can_message(alice.account_id, bob.account_id, uow.relationships)


@pytest.mark.asyncio
async def test_nobody_refuses_even_followers(uow, alice, bob):
    add_account(uow.db, alice)
    add_account(uow.db, bob, PrivacySetting.NOBODY)
    mutual(uow.db, alice, bob)

    with pytest.raises(MessagesNotAllowedError):
        await ensure_can_message(alice.account_id, bob.account_id, uow.relationships)


@pytest.mark.asyncio
async def test_self_and_unknown_accounts_are_invalid(alice):
    uow = FakeUoW()
    add_account(uow.db, alice)

    with pytest.raises(InvalidInputError):
        await ensure_can_message(alice.account_id, alice.account_id, uow.relationships)
    with pytest.raises(InvalidInputError):
        await ensure_can_message(alice.account_id, "u-ghost", uow.relationships)


@pytest.mark.asyncio
async def test_followers_only_denial_maps_to_follow_required(uow, alice, bob):
    add_account(uow.db, alice)
    add_account(uow.db, bob, PrivacySetting.FOLLOWERS)

    with pytest.raises(FollowRequiredError):
        await ensure_can_message(alice.account_id, bob.account_id, uow.relationships)
