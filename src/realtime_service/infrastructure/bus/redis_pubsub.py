"""Redis Pub/Sub subscriber for notifications created outside this service.

Other backends (friend matching, group management) insert the notification
row themselves and publish ``notification.created`` with the stored record;
this process only pushes it to the user's live sockets.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import pydantic
import redis.asyncio as aioredis

from realtime_service.application.dto.records import NotificationRecord
from realtime_service.infrastructure.bus.serializer import deserialize_event
from realtime_service.services.notification_fanout import NotificationFanout

logger = logging.getLogger(__name__)

NOTIFICATION_CREATED = "notification.created"

OnEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel and dispatches events."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._listen(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Redis Pub/Sub subscriber stopped")

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                await self.handle_raw(message["data"])
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()

    async def handle_raw(self, raw: str | bytes) -> None:
        try:
            event_type, data = deserialize_event(raw)
        except pydantic.ValidationError:
            logger.warning("Malformed pubsub payload on channel=%s dropped", self._channel)
            return
        try:
            await self._callback(event_type, data)
        except Exception:
            logger.exception("Error processing pubsub event %s", event_type)


def notification_callback(fanout: NotificationFanout) -> OnEventCallback:
    """Build the subscriber callback that pushes externally stored notifications."""

    async def _on_event(event_type: str, data: dict[str, Any]) -> None:
        if event_type != NOTIFICATION_CREATED:
            logger.debug("Ignoring pubsub event %s", event_type)
            return
        try:
            record = NotificationRecord.model_validate(data)
        except pydantic.ValidationError:
            logger.warning("Invalid notification payload dropped: %s", data)
            return
        delivered = await fanout.push(record)
        logger.debug("Notification %s pushed to %d connection(s)", record.id, delivered)

    return _on_event
