from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from realtime_service.application.exceptions import AuthRequiredError


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    user_id: int
    roles: list[str] = field(default_factory=list)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> Principal:
        """Build from decoded JWT claims; ``sub`` must be a positive user id."""
        try:
            user_id = int(claims["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthRequiredError("token subject is not a user id") from exc
        if user_id <= 0:
            raise AuthRequiredError("token subject is not a user id")
        return cls(user_id=user_id, roles=list(claims.get("roles", [])))
