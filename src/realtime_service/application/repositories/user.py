from __future__ import annotations

from datetime import datetime
from typing import Protocol


class UserReader(Protocol):
    async def exists(self, user_id: int) -> bool: ...


class UserWriter(Protocol):
    async def touch_activity(self, user_id: int, at: datetime) -> None: ...
