"""Online presence derived from registry membership plus a liveness window."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable

from realtime_service.application.ports.clock import Clock, SystemClock
from realtime_service.domain.events.presence_changed import PresenceChanged
from realtime_service.infrastructure.ws.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

PresenceListener = Callable[[PresenceChanged], None]


class PresenceTracker:
    """Answers "is user X online" from in-memory state only.

    Online events fire on a user's first connection; offline events fire only
    after ``grace_seconds`` pass without a reconnect, so tab reloads do not
    flap. ``liveness_seconds`` of 0 disables the heartbeat requirement.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        grace_seconds: float = 5.0,
        liveness_seconds: float = 0.0,
        clock: Clock | None = None,
    ) -> None:
        self._registry = registry
        self._grace = grace_seconds
        self._liveness = timedelta(seconds=liveness_seconds) if liveness_seconds > 0 else None
        self._clock = clock or SystemClock()
        self._last_seen: dict[int, datetime] = {}
        # Users whose last emitted event was "online".
        self._announced: set[int] = set()
        self._pending_offline: dict[int, asyncio.Task[None]] = {}
        self._listeners: list[PresenceListener] = []
        registry.subscribe(self._on_membership)

    def subscribe(self, listener: PresenceListener) -> None:
        self._listeners.append(listener)

    def heartbeat(self, user_id: int) -> None:
        if self._registry.is_online(user_id):
            self._last_seen[user_id] = self._clock.now()

    def last_seen(self, user_id: int) -> datetime | None:
        return self._last_seen.get(user_id)

    def is_online(self, user_id: int) -> bool:
        if not self._registry.is_online(user_id):
            return False
        if self._liveness is None:
            return True
        seen = self._last_seen.get(user_id)
        return seen is not None and self._clock.now() - seen <= self._liveness

    def batch_status(self, user_ids: Iterable[int]) -> dict[int, bool]:
        return {user_id: self.is_online(user_id) for user_id in user_ids}

    async def close(self) -> None:
        tasks = list(self._pending_offline.values())
        self._pending_offline.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _on_membership(self, user_id: int, online: bool) -> None:
        if online:
            self._last_seen[user_id] = self._clock.now()
            pending = self._pending_offline.pop(user_id, None)
            if pending is not None:
                pending.cancel()
            if user_id not in self._announced:
                self._announced.add(user_id)
                self._emit(PresenceChanged(user_id=user_id, online=True, at=self._clock.now()))
            return

        if user_id not in self._announced or user_id in self._pending_offline:
            return
        if self._grace <= 0:
            self._go_offline(user_id)
            return
        self._pending_offline[user_id] = asyncio.get_running_loop().create_task(
            self._offline_after_grace(user_id), name=f"presence-grace-{user_id}",
        )

    async def _offline_after_grace(self, user_id: int) -> None:
        await asyncio.sleep(self._grace)
        self._pending_offline.pop(user_id, None)
        if not self._registry.is_online(user_id):
            self._go_offline(user_id)

    def _go_offline(self, user_id: int) -> None:
        self._announced.discard(user_id)
        self._last_seen.pop(user_id, None)
        self._emit(PresenceChanged(user_id=user_id, online=False, at=self._clock.now()))

    def _emit(self, event: PresenceChanged) -> None:
        logger.info("Presence: user=%s online=%s", event.user_id, event.online)
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Presence listener failed for user=%s", event.user_id)
