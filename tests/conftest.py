"""Shared test fixtures: in-memory stores, a fake socket and a settable clock."""
from __future__ import annotations

import asyncio
import itertools
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, AsyncIterator

import pytest

from realtime_service.application.dto.message import (
    DirectMessageDraft,
    GroupMessageDraft,
    NotificationDraft,
)
from realtime_service.application.ports.clock import ManualClock
from realtime_service.domain.entities.group_message import GroupMessage
from realtime_service.domain.entities.message import Message
from realtime_service.domain.entities.notification import Notification
from realtime_service.infrastructure.ws.connection import Connection
from realtime_service.infrastructure.ws.registry import ConnectionRegistry

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeTransport:
    """Stands in for a starlette WebSocket."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[str] = []
        self.fail = fail
        self.close_code: int | None = None

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionError("socket gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code

    @property
    def frames(self) -> list[dict[str, Any]]:
        return [json.loads(raw) for raw in self.sent]

    def frames_of(self, frame_type: str) -> list[dict[str, Any]]:
        return [f for f in self.frames if f["type"] == frame_type]


class GatedTransport(FakeTransport):
    """Blocks every write until ``gate`` is set; ``entered`` fires on the first one."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()

    async def send_text(self, data: str) -> None:
        self.entered.set()
        await self.gate.wait()
        await super().send_text(data)


def open_connection(
    registry: ConnectionRegistry,
    user_id: int | None = None,
    transport: FakeTransport | None = None,
) -> Connection:
    conn = Connection(transport or FakeTransport())
    if user_id is not None:
        assert registry.bind(conn, user_id)
    return conn


def sent(conn: Connection) -> FakeTransport:
    return conn.transport  # type: ignore[return-value]


@dataclass
class FakeStore:
    """Backing data shared by every FakeUoW a factory hands out."""

    users: set[int] = field(default_factory=lambda: {1, 2, 3, 4})
    messages: dict[int, Message] = field(default_factory=dict)
    group_members: dict[int, set[int]] = field(default_factory=dict)
    group_messages: dict[int, GroupMessage] = field(default_factory=dict)
    notifications: dict[int, Notification] = field(default_factory=dict)
    last_active: dict[int, datetime] = field(default_factory=dict)
    fail_message_saves: bool = False
    fail_notifications: bool = False
    commits: int = 0
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def next_id(self) -> int:
        return next(self._ids)

    def add_message(self, from_user_id: int, to_user_id: int, content: str = "hi", **kw: Any) -> Message:
        message = Message(
            id=self.next_id(),
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            content=content,
            voice_message_url=kw.get("voice_message_url"),
            voice_message_duration=kw.get("voice_message_duration"),
            is_read=kw.get("is_read", False),
            read_at=kw.get("read_at"),
            created_at=kw.get("created_at", T0),
        )
        self.messages[message.id] = message
        return message

    def add_notification(self, user_id: int, type: str = "new_message", message: str = "ping") -> Notification:
        notification = Notification(
            id=self.next_id(),
            user_id=user_id,
            type=type,
            message=message,
            is_read=False,
            related_user_id=None,
            created_at=T0,
        )
        self.notifications[notification.id] = notification
        return notification


@dataclass
class FakeMessageReader:
    _store: FakeStore

    async def get_by_id(self, message_id: int) -> Message | None:
        return self._store.messages.get(message_id)

    async def list_between(
        self, user_a: int, user_b: int, *, before_id: int | None = None, limit: int = 50,
    ) -> list[Message]:
        pair = {user_a, user_b}
        rows = [
            m for m in sorted(self._store.messages.values(), key=lambda m: m.id)
            if {m.from_user_id, m.to_user_id} == pair and (before_id is None or m.id < before_id)
        ]
        return rows[-limit:]

    async def list_recent_for(self, user_id: int, *, limit: int = 50) -> list[Message]:
        latest: dict[int, Message] = {}
        for m in sorted(self._store.messages.values(), key=lambda m: m.id):
            if user_id not in (m.from_user_id, m.to_user_id):
                continue
            partner = m.to_user_id if m.from_user_id == user_id else m.from_user_id
            latest[partner] = m
        return sorted(latest.values(), key=lambda m: m.id, reverse=True)[:limit]


@dataclass
class FakeMessageWriter:
    _store: FakeStore

    async def save(self, draft: DirectMessageDraft) -> Message:
        if self._store.fail_message_saves:
            raise RuntimeError("database is down")
        voice = draft.voice
        return self._store.add_message(
            draft.from_user_id,
            draft.to_user_id,
            draft.content,
            voice_message_url=voice.url if voice else None,
            voice_message_duration=voice.duration if voice else None,
            created_at=draft.created_at,
        )

    async def mark_read(self, message_id: int, read_at: datetime) -> Message | None:
        message = self._store.messages.get(message_id)
        if message is None or message.is_read:
            return None
        updated = message.mark_read(read_at)
        self._store.messages[message_id] = updated
        return updated

    async def mark_all_read(self, to_user_id: int, from_user_id: int, read_at: datetime) -> list[int]:
        ids = []
        for m in list(self._store.messages.values()):
            if m.to_user_id == to_user_id and m.from_user_id == from_user_id and not m.is_read:
                self._store.messages[m.id] = m.mark_read(read_at)
                ids.append(m.id)
        return sorted(ids)


@dataclass
class FakeGroupReader:
    _store: FakeStore

    async def members_of(self, group_id: int) -> set[int]:
        return set(self._store.group_members.get(group_id, set()))

    async def list_messages(
        self, group_id: int, *, before_id: int | None = None, limit: int = 50,
    ) -> list[GroupMessage]:
        rows = [
            m for m in sorted(self._store.group_messages.values(), key=lambda m: m.id)
            if m.group_id == group_id and (before_id is None or m.id < before_id)
        ]
        return rows[-limit:]


@dataclass
class FakeGroupMessageWriter:
    _store: FakeStore

    async def save(self, draft: GroupMessageDraft) -> GroupMessage:
        voice = draft.voice
        message = GroupMessage(
            id=self._store.next_id(),
            from_user_id=draft.from_user_id,
            group_id=draft.group_id,
            content=draft.content,
            voice_message_url=voice.url if voice else None,
            voice_message_duration=voice.duration if voice else None,
            created_at=draft.created_at,
        )
        self._store.group_messages[message.id] = message
        return message


@dataclass
class FakeUserReader:
    _store: FakeStore

    async def exists(self, user_id: int) -> bool:
        return user_id in self._store.users


@dataclass
class FakeUserWriter:
    _store: FakeStore

    async def touch_activity(self, user_id: int, at: datetime) -> None:
        self._store.last_active[user_id] = at


@dataclass
class FakeNotificationReader:
    _store: FakeStore

    async def get_by_id(self, notification_id: int) -> Notification | None:
        return self._store.notifications.get(notification_id)

    async def list_for_user(self, user_id: int, *, limit: int = 50) -> list[Notification]:
        rows = [n for n in self._store.notifications.values() if n.user_id == user_id]
        return sorted(rows, key=lambda n: n.id, reverse=True)[:limit]


@dataclass
class FakeNotificationWriter:
    _store: FakeStore

    async def create(self, draft: NotificationDraft) -> Notification:
        if self._store.fail_notifications:
            raise RuntimeError("database is down")
        notification = Notification(
            id=self._store.next_id(),
            user_id=draft.user_id,
            type=draft.type,
            message=draft.message,
            is_read=False,
            related_user_id=draft.related_user_id,
            created_at=draft.created_at,
        )
        self._store.notifications[notification.id] = notification
        return notification

    async def mark_read(self, notification_id: int) -> None:
        current = self._store.notifications[notification_id]
        self._store.notifications[notification_id] = replace(current, is_read=True)


class FakeUoW:
    """In-memory UoW for unit tests."""

    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.messages = FakeMessageReader(store)
        self.messages_w = FakeMessageWriter(store)
        self.groups = FakeGroupReader(store)
        self.group_messages_w = FakeGroupMessageWriter(store)
        self.users = FakeUserReader(store)
        self.users_w = FakeUserWriter(store)
        self.notifications = FakeNotificationReader(store)
        self.notifications_w = FakeNotificationWriter(store)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.store.commits += 1

    async def rollback(self) -> None:
        pass


def fake_uow_factory(store: FakeStore):
    @asynccontextmanager
    async def _factory() -> AsyncIterator[FakeUoW]:
        yield FakeUoW(store)

    return _factory


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def uow_factory(store):
    return fake_uow_factory(store)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()
