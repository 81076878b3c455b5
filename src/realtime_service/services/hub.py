"""Composition root for the realtime core: one instance of each component."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from realtime_service.application.ports.clock import Clock, SystemClock
from realtime_service.application.uow import UowFactory
from realtime_service.config import Settings, settings as default_settings
from realtime_service.domain.events.presence_changed import PresenceChanged
from realtime_service.infrastructure.ws.connection import Connection
from realtime_service.infrastructure.ws.registry import ConnectionRegistry
from realtime_service.services.call_signaling import CallSignalingCoordinator
from realtime_service.services.message_router import MessageRouter
from realtime_service.services.notification_fanout import NotificationFanout
from realtime_service.services.presence import PresenceTracker

logger = logging.getLogger(__name__)


@dataclass
class RealtimeHub:
    registry: ConnectionRegistry
    presence: PresenceTracker
    fanout: NotificationFanout
    messages: MessageRouter
    calls: CallSignalingCoordinator
    uow_factory: UowFactory
    _background: set[asyncio.Task[None]] = field(default_factory=set, init=False, repr=False)

    async def start(self) -> None:
        self.calls.start()

    async def stop(self) -> None:
        await self.calls.stop()
        await self.presence.close()
        for task in list(self._background):
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)

    async def bind(self, conn: Connection, user_id: int) -> bool:
        """Bind an authenticated socket.

        Moving a socket off another user runs that user's disconnect cascade first.
        """
        if conn.user_id is not None and conn.user_id != user_id:
            await self.disconnect(conn)
            conn.closed = False
        return self.registry.bind(conn, user_id)

    async def disconnect(self, conn: Connection) -> None:
        """Socket closed or errored: drop it and end calls it was signaling for."""
        user_id = conn.user_id
        self.registry.unbind(conn)
        if user_id is not None:
            await self.calls.connection_lost(conn, user_id)

    def record_activity(self, event: PresenceChanged) -> None:
        """Presence listener: persist the user's last activity timestamp."""
        task = asyncio.get_running_loop().create_task(
            self._touch_activity(event), name=f"touch-activity-{event.user_id}",
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _touch_activity(self, event: PresenceChanged) -> None:
        try:
            async with self.uow_factory() as uow:
                await uow.users_w.touch_activity(event.user_id, event.at)
                await uow.commit()
        except Exception:
            logger.exception("Failed to record activity for user=%s", event.user_id)


def build_hub(
    uow_factory: UowFactory,
    *,
    clock: Clock | None = None,
    config: Settings | None = None,
) -> RealtimeHub:
    cfg = config or default_settings
    clock = clock or SystemClock()

    registry = ConnectionRegistry()
    presence = PresenceTracker(
        registry,
        grace_seconds=cfg.PRESENCE_GRACE_SECONDS,
        liveness_seconds=cfg.PRESENCE_LIVENESS_SECONDS,
        clock=clock,
    )
    fanout = NotificationFanout(registry, uow_factory, clock=clock)
    messages = MessageRouter(registry, uow_factory, fanout, clock=clock)
    calls = CallSignalingCoordinator(
        registry,
        fanout=fanout,
        clock=clock,
        ring_timeout_seconds=cfg.CALL_RING_TIMEOUT_SECONDS,
        negotiation_timeout_seconds=cfg.CALL_NEGOTIATION_TIMEOUT_SECONDS,
        active_timeout_seconds=cfg.CALL_ACTIVE_TIMEOUT_SECONDS,
        reaper_interval_seconds=cfg.CALL_REAPER_INTERVAL_SECONDS,
    )
    hub = RealtimeHub(
        registry=registry,
        presence=presence,
        fanout=fanout,
        messages=messages,
        calls=calls,
        uow_factory=uow_factory,
    )
    presence.subscribe(hub.record_activity)
    return hub
