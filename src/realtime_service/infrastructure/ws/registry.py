"""In-process registry of live connections per user."""
from __future__ import annotations

import logging
from typing import Callable, Iterable

from realtime_service.infrastructure.ws.connection import Connection
from realtime_service.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)

# (user_id, online): online=True on the first bound connection, False when the last one goes.
MembershipListener = Callable[[int, bool], None]


class ConnectionRegistry:
    """Tracks live connections per user id and pushes frames to them.

    All mutations are synchronous, so within one event loop no locking is needed.
    """

    def __init__(self) -> None:
        self._connections: dict[int, set[Connection]] = {}
        self._listeners: list[MembershipListener] = []

    def subscribe(self, listener: MembershipListener) -> None:
        self._listeners.append(listener)

    def bind(self, conn: Connection, user_id: int) -> bool:
        """Associate ``conn`` with ``user_id``. Returns False if the id is rejected."""
        if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
            logger.debug("WS bind rejected: conn=%s user_id=%r", conn.id, user_id)
            return False
        if conn.closed:
            return False
        if conn.user_id == user_id and conn in self._connections.get(user_id, ()):
            return True
        if conn.user_id is not None:
            self.unbind(conn)
            conn.closed = False

        conns = self._connections.setdefault(user_id, set())
        first = not conns
        conns.add(conn)
        conn.user_id = user_id
        logger.debug("WS bound: user=%s conn=%s (user conns=%d)", user_id, conn.id, len(conns))
        if first:
            self._emit(user_id, True)
        return True

    def unbind(self, conn: Connection) -> int | None:
        """Remove ``conn``. Returns the user id it was bound to, if any."""
        conn.closed = True
        user_id = conn.user_id
        if user_id is None:
            return None
        conns = self._connections.get(user_id)
        if not conns or conn not in conns:
            return None
        conns.discard(conn)
        logger.debug("WS unbound: user=%s conn=%s (user conns=%d)", user_id, conn.id, len(conns))
        if not conns:
            del self._connections[user_id]
            self._emit(user_id, False)
        return user_id

    def connections_for(self, user_id: int) -> frozenset[Connection]:
        return frozenset(self._connections.get(user_id, ()))

    def is_online(self, user_id: int) -> bool:
        return user_id in self._connections

    def online_user_ids(self) -> set[int]:
        return set(self._connections)

    def connection_count(self) -> int:
        return sum(len(conns) for conns in self._connections.values())

    async def push_to_user(
        self,
        user_id: int,
        frame: WsOutbound,
        *,
        exclude: Connection | None = None,
    ) -> int:
        """Send a frame to every live connection of a user."""
        return await self.push_to_users((user_id,), frame, exclude=exclude)

    async def push_to_users(
        self,
        user_ids: Iterable[int],
        frame: WsOutbound,
        *,
        exclude: Connection | None = None,
    ) -> int:
        """Send a frame once to each distinct live connection of the given users."""
        raw = frame.encode()
        targets: list[Connection] = []
        seen: set[str] = set()
        for user_id in dict.fromkeys(user_ids):
            for ws in self._connections.get(user_id, ()):
                if ws is exclude or ws.id in seen:
                    continue
                seen.add(ws.id)
                targets.append(ws)

        sent = 0
        dead: list[Connection] = []
        for ws in targets:
            if await ws.send(raw):
                sent += 1
            else:
                dead.append(ws)
        for ws in dead:
            self.unbind(ws)
        return sent

    def _emit(self, user_id: int, online: bool) -> None:
        for listener in self._listeners:
            try:
                listener(user_id, online)
            except Exception:
                logger.exception("Registry listener failed for user=%s", user_id)
