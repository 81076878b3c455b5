from __future__ import annotations

import pytest

from realtime_service.infrastructure.ws.connection import Connection
from realtime_service.infrastructure.ws.protocol import WsOutbound
from tests.conftest import FakeTransport, open_connection, sent


def test_bind_tracks_multiple_connections_per_user(registry):
    a1 = open_connection(registry, 1)
    a2 = open_connection(registry, 1)

    assert registry.connections_for(1) == frozenset({a1, a2})
    assert registry.is_online(1)
    assert registry.connection_count() == 2


def test_unbind_leaves_no_stale_connection(registry):
    conn = open_connection(registry, 1)

    assert registry.unbind(conn) == 1

    assert conn not in registry.connections_for(1)
    assert not registry.is_online(1)
    assert registry.online_user_ids() == set()
    assert conn.closed is True


def test_unbind_twice_is_harmless(registry):
    conn = open_connection(registry, 1)
    registry.unbind(conn)

    assert registry.unbind(conn) is None


@pytest.mark.parametrize("bad_id", [0, -5, True])
def test_bind_rejects_invalid_user_ids(registry, bad_id):
    conn = Connection(FakeTransport())

    assert registry.bind(conn, bad_id) is False
    assert conn.user_id is None


def test_rebinding_moves_connection_to_new_user(registry):
    conn = open_connection(registry, 1)

    assert registry.bind(conn, 2)

    assert not registry.is_online(1)
    assert registry.connections_for(2) == frozenset({conn})


def test_membership_listener_sees_first_and_last_connection(registry):
    events: list[tuple[int, bool]] = []
    registry.subscribe(lambda user_id, online: events.append((user_id, online)))

    c1 = open_connection(registry, 1)
    c2 = open_connection(registry, 1)
    registry.unbind(c1)
    registry.unbind(c2)

    assert events == [(1, True), (1, False)]


@pytest.mark.asyncio
async def test_push_to_users_sends_once_per_connection_and_skips_origin(registry):
    a1 = open_connection(registry, 1)
    a2 = open_connection(registry, 1)
    b = open_connection(registry, 2)

    delivered = await registry.push_to_users([1, 2, 1], WsOutbound(type="x"), exclude=a1)

    assert delivered == 2
    assert sent(a1).sent == []
    assert len(sent(a2).sent) == 1
    assert len(sent(b).sent) == 1


@pytest.mark.asyncio
async def test_failed_send_unbinds_dead_connection(registry):
    healthy = open_connection(registry, 1)
    dead = Connection(FakeTransport(fail=True))
    registry.bind(dead, 1)

    delivered = await registry.push_to_user(1, WsOutbound(type="x"))

    assert delivered == 1
    assert registry.connections_for(1) == frozenset({healthy})
