from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from amen_messaging.application.ports.clock import FixedClock
from amen_messaging.application.sync.scopes import (
    Change,
    ConversationListScope,
    MessageListScope,
    TypingScope,
)
from amen_messaging.application.sync.synchronizer import LiveViewSynchronizer
from amen_messaging.domain.entities.typing_state import TypingState
from tests.conftest import make_direct, make_group, make_message

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class StaticLoader:
    def __init__(self, items=None, gate: asyncio.Event | None = None) -> None:
        self.items = items or {}
        self.gate = gate
        self.loads = 0

    async def load(self, scope):
        self.loads += 1
        if self.gate is not None:
            await self.gate.wait()
        return list(self.items.get(scope, []))


class BrokenLoader:
    async def load(self, scope):
        raise ConnectionError("db down")


def _recorder():
    snapshots: list[list] = []
    return snapshots, snapshots.append


@pytest.mark.asyncio
async def test_messages_are_kept_in_chronological_order(db, alice, bob):
    conv = make_direct(db, alice, bob)
    scope = MessageListScope(conv.id)
    late = make_message(conversation_id=conv.id, text="second", created_at=T0 + timedelta(seconds=5))
    sync = LiveViewSynchronizer(StaticLoader({scope: [late]}))
    snapshots, callback = _recorder()

    await sync.subscribe(scope, callback)
    early = make_message(conversation_id=conv.id, text="first", created_at=T0)
    sync.apply(Change.upsert(early))

    assert [m.text for m in snapshots[0]] == ["second"]
    assert [m.text for m in snapshots[-1]] == ["first", "second"]


@pytest.mark.asyncio
async def test_echo_is_replaced_by_authoritative_message(db, alice, bob):
    conv = make_direct(db, alice, bob)
    scope = MessageListScope(conv.id)
    sync = LiveViewSynchronizer(StaticLoader())
    snapshots, callback = _recorder()
    await sync.subscribe(scope, callback)

    local = make_message(conversation_id=conv.id, text="on my way", created_at=T0)
    sync.echo(local)
    projection = sync.projection(scope)
    assert projection.is_pending(local.id)

    confirmed = replace(local, created_at=T0 + timedelta(milliseconds=40), revision=1)
    sync.apply(Change.upsert(confirmed))

    assert not projection.is_pending(local.id)
    assert snapshots[-1] == [confirmed]


@pytest.mark.asyncio
async def test_stale_revisions_are_ignored(db, alice, bob):
    conv = make_direct(db, alice, bob)
    scope = MessageListScope(conv.id)
    current = make_message(conversation_id=conv.id, text="edited", revision=2)
    sync = LiveViewSynchronizer(StaticLoader({scope: [current]}))
    snapshots, callback = _recorder()
    await sync.subscribe(scope, callback)

    sync.apply(Change.upsert(replace(current, text="original", revision=1)))
    sync.apply(Change.upsert(current))

    assert len(snapshots) == 1
    assert sync.snapshot(scope)[0].text == "edited"


@pytest.mark.asyncio
async def test_conversation_leaves_inbox_when_hidden(db, alice, bob):
    conv = make_direct(db, alice, bob)
    scope = ConversationListScope(alice.account_id)
    sync = LiveViewSynchronizer(StaticLoader({scope: [conv]}))
    snapshots, callback = _recorder()
    await sync.subscribe(scope, callback)

    archived = replace(
        conv,
        participants=tuple(
            replace(p, is_archived=p.account_id == alice.account_id) for p in conv.participants
        ),
        revision=conv.revision + 1,
    )
    sync.apply(Change.upsert(archived))

    assert [c.id for c in snapshots[0]] == [conv.id]
    assert snapshots[-1] == []


@pytest.mark.asyncio
async def test_shared_scope_loads_once_and_unsubscribe_is_idempotent(db, alice, bob):
    conv = make_direct(db, alice, bob)
    scope = MessageListScope(conv.id)
    loader = StaticLoader()
    sync = LiveViewSynchronizer(loader)
    first, first_cb = _recorder()
    second, second_cb = _recorder()

    sub_a = await sync.subscribe(scope, first_cb)
    sub_b = await sync.subscribe(scope, second_cb)
    assert loader.loads == 1

    sub_a.unsubscribe()
    sub_a.unsubscribe()
    sync.apply(Change.upsert(make_message(conversation_id=conv.id)))

    assert len(first) == 1
    assert len(second) == 2
    sub_b.unsubscribe()
    assert sync.channel_count == 0


@pytest.mark.asyncio
async def test_changes_during_load_are_replayed(db, alice, bob):
    conv = make_direct(db, alice, bob)
    scope = MessageListScope(conv.id)
    gate = asyncio.Event()
    sync = LiveViewSynchronizer(StaticLoader(gate=gate))
    snapshots, callback = _recorder()

    task = asyncio.create_task(sync.subscribe(scope, callback))
    await asyncio.sleep(0)
    racing = make_message(conversation_id=conv.id, text="while loading")
    sync.apply(Change.upsert(racing))
    gate.set()
    await task

    assert snapshots == [[racing]]


@pytest.mark.asyncio
async def test_failed_load_does_not_leave_a_channel(db, alice, bob):
    conv = make_direct(db, alice, bob)
    sync = LiveViewSynchronizer(BrokenLoader())

    with pytest.raises(ConnectionError):
        await sync.subscribe(MessageListScope(conv.id), lambda items: None)
    assert sync.channel_count == 0


@pytest.mark.asyncio
async def test_typing_expires_after_timeout(db, alice, bob):
    conv = make_direct(db, alice, bob)
    clock = FixedClock(T0)
    scope = TypingScope(conv.id)
    sync = LiveViewSynchronizer(StaticLoader(), typing_timeout_seconds=5, clock=clock)
    snapshots, callback = _recorder()
    await sync.subscribe(scope, callback)

    sync.apply(Change.upsert(TypingState(conv.id, bob.account_id, "Bob", clock.now())))
    assert [s.account_id for s in snapshots[-1]] == [bob.account_id]

    clock.advance(6)
    assert sync.snapshot(scope) == []


@pytest.mark.asyncio
async def test_failing_callback_does_not_block_others(db, alice, bob):
    conv = make_direct(db, alice, bob)
    scope = MessageListScope(conv.id)
    sync = LiveViewSynchronizer(StaticLoader())
    snapshots, callback = _recorder()

    def broken(items):
        raise RuntimeError("socket gone")

    await sync.subscribe(scope, broken)
    await sync.subscribe(scope, callback)
    sync.apply(Change.upsert(make_message(conversation_id=conv.id)))

    assert len(snapshots) == 2


@pytest.mark.asyncio
async def test_waiter_reloads_when_channel_dropped_during_load(db, alice, bob):
    conv = make_direct(db, alice, bob)
    scope = MessageListScope(conv.id)
    gate = asyncio.Event()
    loader = StaticLoader(gate=gate)
    sync = LiveViewSynchronizer(loader)
    first, first_cb = _recorder()
    second, second_cb = _recorder()

    task_a = asyncio.create_task(sync.subscribe(scope, first_cb))
    task_b = asyncio.create_task(sync.subscribe(scope, second_cb))
    await asyncio.sleep(0)
    gate.set()
    await asyncio.sleep(0)
    # The first subscriber finished loading and leaves before the second resumes.
    task_a.result().unsubscribe()
    missed = make_message(conversation_id=conv.id, text="sent in between")
    loader.items[scope] = [missed]
    sync.apply(Change.upsert(missed))
    sub_b = await task_b

    assert first == [[]]
    assert second == [[missed]]
    assert loader.loads == 2
    assert sync.snapshot(scope) == [missed]
    sub_b.unsubscribe()


@pytest.mark.asyncio
async def test_each_subscriber_gets_its_own_snapshot_list(db, alice, bob):
    conv = make_direct(db, alice, bob)
    scope = MessageListScope(conv.id)
    sync = LiveViewSynchronizer(StaticLoader())
    received: list[list] = []

    def greedy(items):
        items.clear()

    await sync.subscribe(scope, greedy)
    await sync.subscribe(scope, received.append)
    message = make_message(conversation_id=conv.id)
    sync.apply(Change.upsert(message))

    assert received[-1] == [message]
    assert sync.snapshot(scope) == [message]


@pytest.mark.asyncio
async def test_former_participant_loses_message_and_typing_views(db, alice, bob, carol):
    group = make_group(db, alice, bob, carol)
    messages = MessageListScope(group.id)
    typing = TypingScope(group.id)
    sync = LiveViewSynchronizer(StaticLoader())
    alice_seen, alice_cb = _recorder()
    carol_seen, carol_cb = _recorder()
    revoked: list = []

    await sync.subscribe(messages, alice_cb, viewer=alice.account_id)
    carol_messages = await sync.subscribe(
        messages, carol_cb, viewer=carol.account_id, on_revoke=lambda: revoked.append(messages),
    )
    carol_typing = await sync.subscribe(
        typing, lambda items: None, viewer=carol.account_id,
        on_revoke=lambda: revoked.append(typing),
    )

    without_carol = replace(
        group,
        participants=tuple(p for p in group.participants if p.account_id != carol.account_id),
        revision=group.revision + 1,
    )
    sync.apply(Change.upsert(without_carol))
    sync.apply(Change.upsert(make_message(conversation_id=group.id, text="after removal")))

    assert revoked == [messages, typing]
    assert carol_messages.active is False
    assert carol_typing.active is False
    assert carol_seen == [[]]
    assert [m.text for m in alice_seen[-1]] == ["after removal"]
    # Typing had no other subscriber left.
    assert sync.snapshot(typing) is None
