"""WebSocket tests: auth, ping, snapshots and membership changes."""
from __future__ import annotations

from contextlib import asynccontextmanager

import jwt
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from amen_messaging.app import create_app
from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.sync.synchronizer import LiveViewSynchronizer
from amen_messaging.config import settings
from amen_messaging.infrastructure.db.snapshot_loader import DbSnapshotLoader
from amen_messaging.application.sync.scopes import Change
from amen_messaging.services import group_service
from tests.conftest import FakeTypingStore, FakeUoW, make_direct, make_group, make_message

ALICE = Principal("u-alice", "Alice")
BOB = Principal("u-bob", "Bob")
CAROL = Principal("u-carol", "Carol")


def _token(principal: Principal) -> str:
    return jwt.encode(
        {"sub": principal.account_id, "name": principal.display_name},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


@pytest.fixture
def uow():
    return FakeUoW()


@pytest.fixture
def app(uow):
    @asynccontextmanager
    async def _uow_factory():
        yield uow

    app = create_app()
    app.state.uow_factory = _uow_factory
    app.state.synchronizer = LiveViewSynchronizer(
        DbSnapshotLoader(_uow_factory, FakeTypingStore()),
    )
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def test_bad_token_is_closed(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/v1/messaging/ws?token=garbage") as ws:
            ws.receive_text()
    assert exc_info.value.code == 4001


def test_ping_pong(client):
    with client.websocket_connect(f"/api/v1/messaging/ws?token={_token(ALICE)}") as ws:
        ws.send_json({"type": "ping", "id": "p1"})
        assert ws.receive_json() == {"type": "pong", "id": "p1", "data": {}}


def test_subscribe_to_own_inbox_sends_snapshot(client, uow):
    conv = make_direct(uow.db, ALICE, BOB)

    with client.websocket_connect(f"/api/v1/messaging/ws?token={_token(ALICE)}") as ws:
        ws.send_json({"type": "subscribe", "id": "s1", "data": {"kind": "conversations"}})
        snapshot = ws.receive_json()
        ack = ws.receive_json()

    assert snapshot["type"] == "snapshot"
    assert snapshot["data"]["kind"] == "conversations"
    assert [c["id"] for c in snapshot["data"]["items"]] == [str(conv.id)]
    assert ack == {"type": "ack", "id": "s1", "data": {}}


def test_cannot_subscribe_to_another_inbox(client):
    with client.websocket_connect(f"/api/v1/messaging/ws?token={_token(ALICE)}") as ws:
        ws.send_json({
            "type": "subscribe",
            "id": "s2",
            "data": {"kind": "conversations", "key": BOB.account_id},
        })
        frame = ws.receive_json()

    assert frame["type"] == "error"
    assert frame["id"] == "s2"
    assert frame["data"]["code"] == "permission_denied"


def test_unknown_frame_type(client):
    with client.websocket_connect(f"/api/v1/messaging/ws?token={_token(ALICE)}") as ws:
        ws.send_json({"type": "dance", "id": "d1"})
        frame = ws.receive_json()
        ws.send_text("not json")
        malformed = ws.receive_json()

    assert frame["data"]["code"] == "invalid_input"
    assert malformed["type"] == "error"
    assert malformed["id"] is None


def test_removed_member_stops_receiving_group_messages(client, app, uow):
    group = make_group(uow.db, ALICE, BOB, CAROL)
    sync = app.state.synchronizer
    key = str(group.id)

    with client.websocket_connect(f"/api/v1/messaging/ws?token={_token(CAROL)}") as ws:
        ws.send_json({"type": "subscribe", "id": "m1", "data": {"kind": "messages", "key": key}})
        assert ws.receive_json()["type"] == "snapshot"
        assert ws.receive_json() == {"type": "ack", "id": "m1", "data": {}}

        ws.portal.call(group_service.remove_participant, group.id, ALICE, CAROL.account_id, uow)
        ws.portal.call(sync.apply, Change.upsert(uow.db.load_conversation(group.id)))
        revoked = ws.receive_json()
        secret = make_message(conversation_id=group.id, sender_id=ALICE.account_id, text="secret")
        ws.portal.call(sync.apply, Change.upsert(secret))
        ws.send_json({"type": "ping", "id": "p2"})
        after = ws.receive_json()

    assert revoked == {"type": "unsubscribed", "id": None, "data": {"kind": "messages", "key": key}}
    assert after == {"type": "pong", "id": "p2", "data": {}}


def test_member_cannot_subscribe_after_removal(client, uow):
    group = make_group(uow.db, ALICE, BOB, CAROL)
    uow.db.participants.pop((group.id, CAROL.account_id))

    with client.websocket_connect(f"/api/v1/messaging/ws?token={_token(CAROL)}") as ws:
        ws.send_json({
            "type": "subscribe", "id": "m2", "data": {"kind": "messages", "key": str(group.id)},
        })
        frame = ws.receive_json()

    assert frame["type"] == "error"
    assert frame["data"]["code"] == "permission_denied"
