"""Integration smoke tests for REST API (using in-memory fakes via dependency override)."""
from __future__ import annotations

import uuid

import jwt
import pytest
from fastapi.testclient import TestClient

from amen_messaging.api.deps import (
    get_notifier,
    get_publisher,
    get_storage,
    get_typing_store,
    get_uow,
)
from amen_messaging.app import create_app
from amen_messaging.application.dto.principal import Principal
from amen_messaging.config import settings
from amen_messaging.domain.value_objects.enums import PrivacySetting
from tests.conftest import (
    FakeNotifier,
    FakePublisher,
    FakeStorage,
    FakeTypingStore,
    FakeUoW,
    add_account,
    make_direct,
    mutual,
)

ALICE = Principal("u-alice", "Alice")
BOB = Principal("u-bob", "Bob")
CAROL = Principal("u-carol", "Carol")


def _auth(principal: Principal) -> dict[str, str]:
    token = jwt.encode(
        {"sub": principal.account_id, "name": principal.display_name},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app_with_uow():
    app = create_app()
    uow = FakeUoW()
    add_account(uow.db, ALICE)
    add_account(uow.db, BOB)
    notifier = FakeNotifier()
    storage = FakeStorage()

    async def _override():
        yield uow

    app.dependency_overrides[get_uow] = _override
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_typing_store] = FakeTypingStore
    app.dependency_overrides[get_publisher] = FakePublisher
    return app, uow


@pytest.fixture
def client(app_with_uow):
    app, _ = app_with_uow
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def uow(app_with_uow):
    _, uow = app_with_uow
    return uow


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_missing_token_is_rejected(client):
    resp = client.get("/api/v1/messaging/conversations")
    assert resp.status_code == 401
    assert resp.json() == {
        "detail": "Missing bearer token",
        "code": "not_authenticated",
        "retryable": False,
    }


def test_request_id_is_echoed(client):
    resp = client.get("/healthz", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"


def test_create_direct_between_mutuals(client, uow):
    mutual(uow.db, ALICE, BOB)

    resp = client.post(
        "/api/v1/messaging/conversations/direct",
        headers=_auth(ALICE),
        json={"account_id": BOB.account_id},
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["request_status"] == "accepted"
    assert {p["account_id"] for p in data["participants"]} == {ALICE.account_id, BOB.account_id}


def test_privacy_error_shape(client, uow):
    add_account(uow.db, BOB, PrivacySetting.NOBODY)

    resp = client.post(
        "/api/v1/messaging/conversations/direct",
        headers=_auth(ALICE),
        json={"account_id": BOB.account_id},
    )

    assert resp.status_code == 403
    assert resp.json()["code"] == "messages_not_allowed"
    assert resp.json()["retryable"] is False


def test_send_message_is_idempotent(client, uow):
    conv = make_direct(uow.db, ALICE, BOB)
    body = {"client_msg_id": str(uuid.uuid4()), "text": "hello world"}
    url = f"/api/v1/messaging/conversations/{conv.id}/messages"

    first = client.post(url, headers=_auth(ALICE), json=body)
    again = client.post(url, headers=_auth(ALICE), json=body)

    assert first.status_code == 201
    assert again.status_code == 200
    assert first.json()["id"] == again.json()["id"] == body["client_msg_id"]
    assert len(uow.db.messages) == 1

    page = client.get(url, headers=_auth(BOB)).json()
    assert [m["text"] for m in page["items"]] == ["hello world"]
    assert page["next_cursor"] is None


def test_conversation_list_pages(client, uow):
    conv = make_direct(uow.db, ALICE, BOB)

    resp = client.get("/api/v1/messaging/conversations?limit=1", headers=_auth(ALICE))

    assert resp.status_code == 200
    data = resp.json()
    assert [c["id"] for c in data["items"]] == [str(conv.id)]
    assert data["next_cursor"] is not None

    rest = client.get(
        "/api/v1/messaging/conversations",
        headers=_auth(ALICE),
        params={"limit": 1, "cursor": data["next_cursor"]},
    )
    assert rest.json()["items"] == []


def test_malformed_cursor_is_invalid_input(client):
    resp = client.get(
        "/api/v1/messaging/conversations",
        headers=_auth(ALICE),
        params={"cursor": "%%%"},
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "invalid_input"


def test_request_accept_flow(client, uow):
    start = client.post(
        "/api/v1/messaging/conversations/direct",
        headers=_auth(ALICE),
        json={"account_id": BOB.account_id},
    ).json()
    client.post(
        f"/api/v1/messaging/conversations/{start['id']}/messages",
        headers=_auth(ALICE),
        json={"text": "hi, we met at the retreat"},
    )

    pending = client.get("/api/v1/messaging/requests", headers=_auth(BOB)).json()
    assert [r["sender_id"] for r in pending] == [ALICE.account_id]

    resp = client.post(f"/api/v1/messaging/requests/{pending[0]['id']}/accept", headers=_auth(BOB))
    assert resp.status_code == 200
    assert resp.json()["status"] == "accepted"

    inbox = client.get("/api/v1/messaging/conversations", headers=_auth(BOB)).json()
    assert [c["id"] for c in inbox["items"]] == [start["id"]]


def test_upload_attachment(client, uow):
    conv = make_direct(uow.db, ALICE, BOB)

    resp = client.post(
        f"/api/v1/messaging/conversations/{conv.id}/attachments",
        headers={**_auth(ALICE), "Content-Type": "image/png"},
        content=b"\x89PNG....",
    )

    assert resp.status_code == 201
    data = resp.json()
    assert data["type"] == "photo"
    assert data["url"].startswith(f"https://cdn.test/messages/{conv.id}/")


def test_unknown_conversation_is_404(client):
    resp = client.get(f"/api/v1/messaging/conversations/{uuid.uuid4()}", headers=_auth(ALICE))
    assert resp.status_code == 404
    assert resp.json()["code"] == "conversation_not_found"


def test_pinned_starred_and_search_routes(client, uow):
    conv = make_direct(uow.db, ALICE, BOB)
    base = f"/api/v1/messaging/conversations/{conv.id}/messages"
    keep = client.post(base, headers=_auth(ALICE), json={"text": "Sunday service notes"}).json()
    client.post(base, headers=_auth(BOB), json={"text": "thanks"})

    assert client.put(
        f"/api/v1/messaging/messages/{keep['id']}/pinned", headers=_auth(BOB), json={"value": True},
    ).status_code == 200
    assert client.put(
        f"/api/v1/messaging/messages/{keep['id']}/starred", headers=_auth(ALICE), json={"value": True},
    ).status_code == 200

    pinned = client.get(f"{base}/pinned", headers=_auth(ALICE)).json()
    alice_stars = client.get(f"{base}/starred", headers=_auth(ALICE)).json()
    bob_stars = client.get(f"{base}/starred", headers=_auth(BOB)).json()
    hits = client.get(f"{base}/search", headers=_auth(BOB), params={"q": "SERVICE"}).json()
    blank = client.get(f"{base}/search", headers=_auth(BOB), params={"q": ""})

    assert [m["id"] for m in pinned] == [keep["id"]]
    assert pinned[0]["pinned_by"] == BOB.account_id
    assert [m["id"] for m in alice_stars] == [keep["id"]]
    assert alice_stars[0]["is_starred"] is True
    assert bob_stars == []
    assert [m["text"] for m in hits] == ["Sunday service notes"]
    assert blank.status_code == 422


def test_forward_route(client, uow):
    add_account(uow.db, CAROL)
    source = make_direct(uow.db, ALICE, BOB)
    target = make_direct(uow.db, ALICE, CAROL)
    msg = client.post(
        f"/api/v1/messaging/conversations/{source.id}/messages",
        headers=_auth(BOB),
        json={"text": "share this"},
    ).json()
    url = f"/api/v1/messaging/messages/{msg['id']}/forward"
    body = {"conversation_id": str(target.id), "client_msg_id": str(uuid.uuid4())}

    first = client.post(url, headers=_auth(ALICE), json=body)
    again = client.post(url, headers=_auth(ALICE), json=body)
    outsider = client.post(url, headers=_auth(CAROL), json={"conversation_id": str(target.id)})

    assert first.status_code == 201
    assert first.json()["conversation_id"] == str(target.id)
    assert first.json()["sender_id"] == ALICE.account_id
    assert first.json()["text"] == "share this"
    assert again.status_code == 200
    assert again.json()["id"] == first.json()["id"]
    assert outsider.status_code == 404
    assert outsider.json()["code"] == "message_not_found"
