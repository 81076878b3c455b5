from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from realtime_service.domain.value_objects.enums import CallState
from realtime_service.domain.value_objects.ids import CallId, pair_key


@dataclass(slots=True)
class CallSession:
    """In-memory state of one call between two users.

    Only CallSignalingCoordinator mutates instances. ``*_connection_id`` is the
    connection that sent the offer (caller) or the answer (callee).
    """

    call_id: CallId
    caller_id: int
    callee_id: int
    state: CallState
    created_at: datetime
    last_activity_at: datetime
    caller_connection_id: str | None = None
    callee_connection_id: str | None = None

    @classmethod
    def offered(
        cls,
        caller_id: int,
        callee_id: int,
        now: datetime,
        caller_connection_id: str | None = None,
    ) -> CallSession:
        return cls(
            call_id=pair_key(caller_id, callee_id),
            caller_id=caller_id,
            callee_id=callee_id,
            state=CallState.OFFERED,
            created_at=now,
            last_activity_at=now,
            caller_connection_id=caller_connection_id,
        )

    @property
    def is_terminal(self) -> bool:
        return self.state == CallState.ENDED

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.caller_id, self.callee_id)

    def other(self, user_id: int) -> int:
        if user_id == self.caller_id:
            return self.callee_id
        if user_id == self.callee_id:
            return self.caller_id
        raise ValueError(f"user {user_id} is not in call {self.call_id}")

    def signaling_connection_of(self, user_id: int) -> str | None:
        if user_id == self.caller_id:
            return self.caller_connection_id
        if user_id == self.callee_id:
            return self.callee_connection_id
        return None

    def transition(self, state: CallState, now: datetime) -> None:
        self.state = state
        self.last_activity_at = now

    def touch(self, now: datetime) -> None:
        self.last_activity_at = now
