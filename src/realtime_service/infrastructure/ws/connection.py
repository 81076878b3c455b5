"""A single live socket, owned by ConnectionRegistry."""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Protocol

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """The subset of ``starlette.websockets.WebSocket`` the core writes to."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


class Connection:
    """One socket plus the identity bound to it.

    Writes are serialized per connection so concurrent pushes never interleave
    on the same socket.
    """

    __slots__ = (
        "id",
        "transport",
        "user_id",
        "connected_at",
        "closed",
        "unauthenticated_frames",
        "_send_lock",
    )

    def __init__(self, transport: Transport, *, connected_at: datetime | None = None) -> None:
        self.id = uuid.uuid4().hex
        self.transport = transport
        self.user_id: int | None = None
        self.connected_at = connected_at or datetime.now(timezone.utc)
        self.closed = False
        self.unauthenticated_frames = 0
        self._send_lock = asyncio.Lock()

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    async def send(self, raw: str) -> bool:
        if self.closed:
            return False
        async with self._send_lock:
            try:
                await self.transport.send_text(raw)
                return True
            except Exception:
                logger.warning("WS send failed: conn=%s user=%s", self.id, self.user_id, exc_info=True)
                self.closed = True
                return False

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = True
        try:
            await self.transport.close(code=code, reason=reason)
        except Exception:
            logger.debug("WS close failed: conn=%s", self.id, exc_info=True)

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, user_id={self.user_id!r})"
