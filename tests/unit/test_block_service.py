from __future__ import annotations

import pytest

from amen_messaging.application.dto.message import SendMessageDTO
from amen_messaging.application.exceptions import InvalidInputError, UserBlockedError
from amen_messaging.domain.value_objects.enums import RequestStatus
from amen_messaging.services import block_service, conversation_service, message_service
from tests.conftest import add_account, make_direct, mutual


@pytest.fixture
def pair(uow, alice, bob):
    add_account(uow.db, alice)
    add_account(uow.db, bob)
    return uow


@pytest.mark.asyncio
async def test_block_stops_messages_both_ways(pair, alice, bob):
    conv = make_direct(pair.db, alice, bob)

    await block_service.block_user(alice, bob.account_id, pair)

    for sender in (alice, bob):
        with pytest.raises(UserBlockedError):
            await message_service.send_message(
                SendMessageDTO(conversation_id=conv.id, text="hi"), sender, pair,
            )
    blocked = await block_service.list_blocked(alice, pair)
    assert [b.blocked_id for b in blocked] == [bob.account_id]


@pytest.mark.asyncio
async def test_block_closes_pending_request(pair, alice, bob):
    conv = await conversation_service.get_or_create_direct(alice, bob.account_id, pair)
    await message_service.send_message(
        SendMessageDTO(conversation_id=conv.id, text="hello"), alice, pair,
    )

    await block_service.block_user(bob, alice.account_id, pair)

    assert pair.db.conversations[conv.id].request_status == RequestStatus.BLOCKED
    request = await pair.requests.get_for_conversation(conv.id)
    assert request.status == RequestStatus.BLOCKED


@pytest.mark.asyncio
async def test_unblock_restores_gate_but_not_closed_request(pair, alice, bob):
    mutual(pair.db, alice, bob)
    conv = make_direct(pair.db, alice, bob)
    await block_service.block_user(alice, bob.account_id, pair)

    await block_service.unblock_user(alice, bob.account_id, pair)

    msg, created = await message_service.send_message(
        SendMessageDTO(conversation_id=conv.id, text="sorry"), bob, pair,
    )
    assert created is True
    assert await block_service.list_blocked(alice, pair) == []


@pytest.mark.asyncio
async def test_cannot_block_self_or_unknown(pair, alice):
    with pytest.raises(InvalidInputError):
        await block_service.block_user(alice, alice.account_id, pair)
    with pytest.raises(InvalidInputError):
        await block_service.block_user(alice, "u-ghost", pair)


@pytest.mark.asyncio
async def test_blocked_account_cannot_start_conversation(pair, alice, bob):
    await block_service.block_user(bob, alice.account_id, pair)

    with pytest.raises(UserBlockedError):
        await conversation_service.get_or_create_direct(alice, bob.account_id, pair)
