"""REST and WebSocket round trips against the app wired to in-memory stores."""
from __future__ import annotations

import jwt
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from realtime_service.app import create_app
from realtime_service.infrastructure.auth.hs256_verifier import HS256Verifier
from tests.conftest import FakeStore, fake_uow_factory

SECRET = "integration-test-secret-with-enough-bytes"


def _auth(sub: int) -> dict[str, str]:
    token = jwt.encode({"sub": str(sub)}, SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def client(store):
    app = create_app(
        uow_factory=fake_uow_factory(store),
        verifier=HS256Verifier(SECRET),
        enable_pubsub=False,
    )
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


def _ws_login(ws, user_id: int) -> None:
    ws.send_json({"type": "auth", "userId": user_id})
    assert ws.receive_json() == {"type": "auth-ok", "userId": user_id}


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.headers["X-Request-ID"]


def test_bad_token_is_unauthorized(client):
    resp = client.get("/api/v1/messages", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


def test_send_and_list_conversation(client, store):
    resp = client.post(
        "/api/v1/messages",
        json={"toUserId": 2, "content": "hello bob"},
        headers=_auth(1),
    )
    assert resp.status_code == 201
    sent = resp.json()
    assert sent["fromUserId"] == 1
    assert sent["isRead"] is False

    resp = client.get("/api/v1/messages/1", headers=_auth(2))
    assert resp.status_code == 200
    [message] = resp.json()
    assert message["id"] == sent["id"]
    assert message["isRead"] is True

    recent = client.get("/api/v1/messages", headers=_auth(1)).json()
    assert [m["id"] for m in recent] == [sent["id"]]


def test_offline_recipient_gets_notification(client, store):
    client.post("/api/v1/messages", json={"toUserId": 2, "content": "ping"}, headers=_auth(1))

    notifications = client.get("/api/v1/notifications", headers=_auth(2)).json()
    assert [n["type"] for n in notifications] == ["new_message"]

    resp = client.post(f"/api/v1/notifications/{notifications[0]['id']}/read", headers=_auth(2))
    assert resp.status_code == 200
    assert resp.json()["isRead"] is True

    resp = client.post(f"/api/v1/notifications/{notifications[0]['id']}/read", headers=_auth(1))
    assert resp.status_code == 403


def test_send_message_errors(client):
    resp = client.post("/api/v1/messages", json={"toUserId": 2, "content": " "}, headers=_auth(1))
    assert resp.status_code == 422
    assert resp.json()["code"] == "invalid_data"

    resp = client.post("/api/v1/messages", json={"toUserId": 99, "content": "?"}, headers=_auth(1))
    assert resp.status_code == 404


def test_mark_read_permissions(client, store):
    message = store.add_message(1, 2)

    assert client.post(f"/api/v1/messages/{message.id}/read", headers=_auth(3)).status_code == 403
    resp = client.post(f"/api/v1/messages/{message.id}/read", headers=_auth(2))
    assert resp.status_code == 200
    assert resp.json()["readAt"] is not None


def test_group_messages_require_membership(client, store):
    store.group_members[5] = {1, 2}

    resp = client.post("/api/v1/groups/5/messages", json={"content": "hey"}, headers=_auth(1))
    assert resp.status_code == 201
    assert resp.json()["groupId"] == 5

    assert [m["content"] for m in client.get("/api/v1/groups/5/messages", headers=_auth(2)).json()] == ["hey"]
    assert client.get("/api/v1/groups/5/messages", headers=_auth(3)).status_code == 403


def test_websocket_chat_and_presence(client, store):
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        _ws_login(alice, 1)
        _ws_login(bob, 2)

        status = client.get("/api/v1/users/2/online", headers=_auth(1)).json()
        assert status == {"userId": 2, "isOnline": True}
        batch = client.post("/api/v1/presence/batch", json={"userIds": [1, 2, 3]}, headers=_auth(1)).json()
        assert batch["statuses"] == {"1": True, "2": True, "3": False}

        alice.send_json({"type": "message", "toUserId": 2, "content": "over the socket"})
        pushed = bob.receive_json()
        ack = alice.receive_json()

        assert pushed["type"] == "message"
        assert pushed["message"]["content"] == "over the socket"
        assert ack["type"] == "message-sent"
        assert ack["message"]["id"] == pushed["message"]["id"]

        bob.send_json({"type": "mark-read", "messageId": pushed["message"]["id"]})
        receipt = alice.receive_json()
        assert receipt["type"] == "message-read"
        assert receipt["readerUserId"] == 2

    assert store.notifications == {}


def test_websocket_call_handshake(client):
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        _ws_login(alice, 1)
        _ws_login(bob, 2)

        alice.send_json({"type": "call-offer", "targetUserId": 2, "offer": {"sdp": "o"}})
        offer = bob.receive_json()
        assert offer["type"] == "call-offer"
        assert offer["fromUserId"] == 1

        bob.send_json({"type": "call-answer", "targetUserId": 1, "answer": {"sdp": "a"}})
        assert alice.receive_json()["answer"] == {"sdp": "a"}

        bob.send_json({"type": "call-ended", "targetUserId": 1})
        ended = alice.receive_json()
        assert ended["type"] == "call-ended"
        assert ended["reason"] == "hangup"


def test_websocket_closes_after_too_many_unauthenticated_frames(client):
    with client.websocket_connect("/ws") as ws:
        for _ in range(6):
            ws.send_json({"type": "ping"})
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_text()
    assert exc.value.code == 4001
