from __future__ import annotations

import asyncio

import pytest

from realtime_service.config import Settings
from realtime_service.services.hub import build_hub
from tests.conftest import open_connection


@pytest.mark.asyncio
async def test_presence_changes_record_last_activity(uow_factory, clock, store):
    hub = build_hub(uow_factory, clock=clock, config=Settings(PRESENCE_GRACE_SECONDS=0))

    conn = open_connection(hub.registry, 1)
    await asyncio.sleep(0.01)
    assert store.last_active[1] == clock.now()

    clock.advance(90)
    await hub.disconnect(conn)
    await asyncio.sleep(0.01)
    assert store.last_active[1] == clock.now()
    await hub.stop()


@pytest.mark.asyncio
async def test_start_and_stop_are_clean(uow_factory, clock):
    hub = build_hub(uow_factory, clock=clock)

    await hub.start()
    open_connection(hub.registry, 1)
    await hub.stop()

    assert hub.calls.active_session_count() == 0
