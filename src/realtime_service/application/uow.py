from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from realtime_service.application.repositories.group import GroupMessageWriter, GroupReader
from realtime_service.application.repositories.message import MessageReader, MessageWriter
from realtime_service.application.repositories.notification import (
    NotificationReader,
    NotificationWriter,
)
from realtime_service.application.repositories.user import UserReader, UserWriter


class UnitOfWork(Protocol):
    messages: MessageReader
    messages_w: MessageWriter
    groups: GroupReader
    group_messages_w: GroupMessageWriter
    users: UserReader
    users_w: UserWriter
    notifications: NotificationReader
    notifications_w: NotificationWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...


# Opens a fresh unit of work per frame / background operation.
UowFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
