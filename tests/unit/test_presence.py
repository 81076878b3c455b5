from __future__ import annotations

import asyncio

import pytest

from realtime_service.services.presence import PresenceTracker
from tests.conftest import open_connection


@pytest.mark.asyncio
async def test_online_while_connected(registry, clock):
    presence = PresenceTracker(registry, grace_seconds=0, clock=clock)
    conn = open_connection(registry, 1)

    assert presence.is_online(1)
    registry.unbind(conn)
    assert not presence.is_online(1)


@pytest.mark.asyncio
async def test_batch_status(registry, clock):
    presence = PresenceTracker(registry, clock=clock)
    open_connection(registry, 1)

    assert presence.batch_status([1, 2]) == {1: True, 2: False}


@pytest.mark.asyncio
async def test_liveness_window_expires_without_heartbeat(registry, clock):
    presence = PresenceTracker(registry, liveness_seconds=30, clock=clock)
    open_connection(registry, 1)

    clock.advance(31)
    assert not presence.is_online(1)

    presence.heartbeat(1)
    assert presence.is_online(1)


@pytest.mark.asyncio
async def test_reconnect_within_grace_emits_no_offline(registry, clock):
    presence = PresenceTracker(registry, grace_seconds=0.05, clock=clock)
    events = []
    presence.subscribe(events.append)

    conn = open_connection(registry, 1)
    registry.unbind(conn)
    open_connection(registry, 1)
    await asyncio.sleep(0.1)

    assert [e.online for e in events] == [True]
    await presence.close()


@pytest.mark.asyncio
async def test_offline_emitted_after_grace(registry, clock):
    presence = PresenceTracker(registry, grace_seconds=0.01, clock=clock)
    events = []
    presence.subscribe(events.append)

    conn = open_connection(registry, 1)
    registry.unbind(conn)
    await asyncio.sleep(0.05)

    assert [(e.user_id, e.online) for e in events] == [(1, True), (1, False)]


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_others(registry, clock):
    presence = PresenceTracker(registry, grace_seconds=0, clock=clock)
    seen = []

    def broken(_event):
        raise RuntimeError("boom")

    presence.subscribe(broken)
    presence.subscribe(seen.append)
    open_connection(registry, 1)

    assert len(seen) == 1
