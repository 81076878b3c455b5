from __future__ import annotations

from typing import Protocol

from realtime_service.application.dto.principal import Principal


class TokenVerifier(Protocol):
    """Turns a bearer token into the numeric user it was issued for."""

    async def verify(self, token: str) -> Principal: ...
