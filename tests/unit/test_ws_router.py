from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import pytest
from fastapi import WebSocketDisconnect

from realtime_service.api.v1.routers.ws import CLOSE_AUTH_REQUIRED, ws_endpoint
from realtime_service.config import Settings
from realtime_service.services.dispatcher import FrameDispatcher
from realtime_service.services.hub import build_hub
from tests.conftest import FakeTransport


class ScriptedWebSocket(FakeTransport):
    """Feeds queued frames to the endpoint, then disconnects."""

    def __init__(self, hub, dispatcher, frames: list[str]) -> None:
        super().__init__()
        self.app = SimpleNamespace(state=SimpleNamespace(hub=hub, dispatcher=dispatcher))
        self._frames = list(frames)

    async def accept(self) -> None:
        pass

    async def receive_text(self) -> str:
        if not self._frames:
            raise WebSocketDisconnect(code=1000)
        return self._frames.pop(0)


@pytest.fixture
def hub(uow_factory, clock):
    return build_hub(uow_factory, clock=clock, config=Settings(PRESENCE_GRACE_SECONDS=0))


def heartbeat_tasks() -> list[asyncio.Task]:
    return [t for t in asyncio.all_tasks() if t.get_name().startswith("ws-heartbeat-")]


@pytest.mark.asyncio
async def test_heartbeat_is_finished_when_socket_closes(hub):
    ws = ScriptedWebSocket(hub, FrameDispatcher(hub), [json.dumps({"type": "auth", "userId": 1})])

    await ws_endpoint(ws)

    assert heartbeat_tasks() == []
    assert ws.frames_of("auth-ok") == [{"type": "auth-ok", "userId": 1}]
    assert not hub.registry.is_online(1)
    await hub.stop()


@pytest.mark.asyncio
async def test_unauthenticated_chatter_closes_socket(hub):
    chat = json.dumps({"type": "message", "toUserId": 2, "content": "hi"})
    ws = ScriptedWebSocket(hub, FrameDispatcher(hub, max_unauthenticated_frames=1), [chat, chat, chat])

    await ws_endpoint(ws)

    assert ws.close_code == CLOSE_AUTH_REQUIRED
    assert heartbeat_tasks() == []
