"""WebRTC call signaling: offer/answer/ICE relay over the user's live sockets.

State machine per unordered user pair::

    (none) --offer--> OFFERED --answer--> ANSWERED --connected--> ACTIVE
       ^                 |                   |                       |
       +---- declined / ended / timeout / disconnect ----------------+

Sessions live only in memory and are touched exclusively through the
coordinator's entry points. Every transition is applied before the first
``await`` of a handler, so handlers interleaving on the event loop always see
a consistent session table.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any

from realtime_service.application.exceptions import (
    CallBusyError,
    ForbiddenError,
    PersistenceError,
    StaleSignalError,
    TargetUnreachableError,
    ValidationError,
)
from realtime_service.application.ports.clock import Clock, SystemClock
from realtime_service.domain.entities.call_session import CallSession
from realtime_service.domain.value_objects.enums import CallEndReason, CallState, NotificationType
from realtime_service.domain.value_objects.ids import CallId, pair_key
from realtime_service.infrastructure.ws.connection import Connection
from realtime_service.infrastructure.ws.protocol import WsOutbound
from realtime_service.infrastructure.ws.registry import ConnectionRegistry
from realtime_service.services.notification_fanout import NotificationFanout

logger = logging.getLogger(__name__)

_RELAYABLE_ICE_STATES = frozenset({CallState.OFFERED, CallState.ANSWERED, CallState.ACTIVE})
_DISCONNECT_ENDS_STATES = frozenset({CallState.OFFERED, CallState.ANSWERED})


class CallSignalingCoordinator:
    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        fanout: NotificationFanout | None = None,
        clock: Clock | None = None,
        ring_timeout_seconds: float = 45.0,
        negotiation_timeout_seconds: float = 60.0,
        active_timeout_seconds: float = 4 * 3600.0,
        reaper_interval_seconds: float = 5.0,
    ) -> None:
        self._registry = registry
        self._fanout = fanout
        self._clock = clock or SystemClock()
        self._timeouts = {
            CallState.OFFERED: timedelta(seconds=ring_timeout_seconds),
            CallState.ANSWERED: timedelta(seconds=negotiation_timeout_seconds),
            CallState.ACTIVE: timedelta(seconds=active_timeout_seconds),
        }
        self._reaper_interval = reaper_interval_seconds
        self._sessions: dict[CallId, CallSession] = {}
        self._reaper_task: asyncio.Task[None] | None = None

    def session_between(self, user_a: int, user_b: int) -> CallSession | None:
        return self._sessions.get(pair_key(user_a, user_b))

    def get(self, call_id: str) -> CallSession | None:
        return self._sessions.get(CallId(call_id))

    def sessions_for(self, user_id: int) -> list[CallSession]:
        return [s for s in self._sessions.values() if s.has_participant(user_id)]

    def active_session_count(self) -> int:
        return len(self._sessions)

    async def offer(
        self,
        caller_id: int,
        callee_id: int,
        offer: Any,
        *,
        origin: Connection | None = None,
    ) -> CallSession:
        if caller_id == callee_id:
            raise ValidationError("Cannot call yourself")

        call_id = pair_key(caller_id, callee_id)
        existing = self._sessions.get(call_id)
        if existing is not None and not existing.is_terminal:
            raise CallBusyError(f"A call between {caller_id} and {callee_id} is already {existing.state}")
        if not self._registry.is_online(callee_id):
            raise TargetUnreachableError("User unreachable")

        session = CallSession.offered(
            caller_id,
            callee_id,
            self._clock.now(),
            caller_connection_id=origin.id if origin else None,
        )
        self._sessions[call_id] = session
        logger.info("Call %s offered: %s -> %s", call_id, caller_id, callee_id)

        delivered = await self._registry.push_to_user(
            callee_id,
            WsOutbound(
                type="call-offer",
                callId=call_id,
                fromUserId=caller_id,
                targetUserId=callee_id,
                offer=offer,
            ),
            exclude=origin,
        )
        if delivered == 0:
            # Every callee socket failed during the write.
            self._discard(session)
            raise TargetUnreachableError("User unreachable")
        return session

    async def answer(
        self,
        from_user_id: int,
        target_user_id: int,
        answer: Any,
        *,
        origin: Connection | None = None,
    ) -> CallSession:
        session = self._require_session(from_user_id, target_user_id)
        if from_user_id != session.callee_id:
            raise ForbiddenError(f"User {from_user_id} is not the callee of call {session.call_id}")
        if session.state != CallState.OFFERED:
            raise StaleSignalError(f"Call {session.call_id} already {session.state}")

        session.transition(CallState.ANSWERED, self._clock.now())
        session.callee_connection_id = origin.id if origin else None
        logger.info("Call %s answered by %s", session.call_id, from_user_id)

        await self._registry.push_to_user(
            session.caller_id,
            WsOutbound(
                type="call-answer",
                callId=session.call_id,
                fromUserId=from_user_id,
                targetUserId=session.caller_id,
                answer=answer,
            ),
            exclude=origin,
        )
        return session

    async def ice_candidate(
        self,
        from_user_id: int,
        target_user_id: int,
        candidate: Any,
        *,
        origin: Connection | None = None,
    ) -> bool:
        """Relay one ICE candidate. Candidates for ended or unknown calls are dropped."""
        session = self._sessions.get(pair_key(from_user_id, target_user_id))
        if session is None or session.state not in _RELAYABLE_ICE_STATES:
            logger.debug("Dropped ICE candidate %s -> %s: no live call", from_user_id, target_user_id)
            return False
        session.touch(self._clock.now())
        delivered = await self._registry.push_to_user(
            target_user_id,
            WsOutbound(
                type="ice-candidate",
                callId=session.call_id,
                fromUserId=from_user_id,
                targetUserId=target_user_id,
                candidate=candidate,
            ),
            exclude=origin,
        )
        return delivered > 0

    async def connected(
        self,
        from_user_id: int,
        target_user_id: int,
    ) -> CallSession:
        """Wire form of :meth:`notify_connected`, sent by a participant's client."""
        session = self._require_session(from_user_id, target_user_id)
        self.notify_connected(session.call_id)
        return session

    def notify_connected(self, call_id: str) -> bool:
        """Transport hook: the peer connection reports connected."""
        session = self._sessions.get(CallId(call_id))
        if session is None:
            logger.debug("notify_connected for unknown call %s", call_id)
            return False
        if session.state == CallState.ACTIVE:
            return True
        if session.state != CallState.ANSWERED:
            logger.debug("notify_connected ignored for call %s in state %s", call_id, session.state)
            return False
        session.transition(CallState.ACTIVE, self._clock.now())
        logger.info("Call %s active", call_id)
        return True

    async def decline(
        self,
        from_user_id: int,
        target_user_id: int,
        *,
        origin: Connection | None = None,
    ) -> CallSession:
        session = self._require_session(from_user_id, target_user_id)
        if from_user_id != session.callee_id:
            raise ForbiddenError("Only the callee can decline a call")
        if session.state != CallState.OFFERED:
            raise ValidationError(f"Call {session.call_id} can no longer be declined")

        self._discard(session)
        logger.info("Call %s declined by %s", session.call_id, from_user_id)
        # Other tabs of the callee stop ringing too.
        await self._registry.push_to_users(
            (session.caller_id, session.callee_id),
            WsOutbound(
                type="call-declined",
                callId=session.call_id,
                fromUserId=from_user_id,
                targetUserId=session.caller_id,
            ),
            exclude=origin,
        )
        return session

    async def end(
        self,
        from_user_id: int,
        target_user_id: int,
        *,
        origin: Connection | None = None,
    ) -> CallSession:
        session = self._require_session(from_user_id, target_user_id)
        was_ringing = session.state == CallState.OFFERED
        self._discard(session)
        logger.info("Call %s ended by %s", session.call_id, from_user_id)

        await self._registry.push_to_users(
            (session.other(from_user_id), from_user_id),
            self._ended_frame(session, from_user_id, CallEndReason.HANGUP),
            exclude=origin,
        )
        if was_ringing and from_user_id == session.caller_id:
            await self._notify_missed(session)
        return session

    async def connection_lost(self, conn: Connection, user_id: int) -> list[CallSession]:
        """End ringing/negotiating calls whose signaling socket just went away.

        Call after ``ConnectionRegistry.unbind``. A session ends when the dropped
        socket is the one the user signaled from, or when the user has no live
        socket left at all.
        """
        still_online = self._registry.is_online(user_id)
        ended: list[CallSession] = []
        for session in self.sessions_for(user_id):
            if session.state not in _DISCONNECT_ENDS_STATES:
                continue
            if still_online and session.signaling_connection_of(user_id) != conn.id:
                continue
            self._discard(session)
            ended.append(session)

        for session in ended:
            logger.info("Call %s ended: user %s disconnected", session.call_id, user_id)
            await self._registry.push_to_user(
                session.other(user_id),
                self._ended_frame(session, user_id, CallEndReason.DISCONNECTED),
            )
        return ended

    async def reap_expired(self) -> list[CallSession]:
        """Remove sessions idle past their state's timeout; tell both sides."""
        now = self._clock.now()
        expired = [
            (s, s.state) for s in self._sessions.values()
            if not s.is_terminal and now - s.last_activity_at > self._timeouts[s.state]
        ]
        # Remove every expired session before the first await.
        for session, _ in expired:
            self._discard(session)

        for session, prior_state in expired:
            logger.info("Call %s reaped after idle timeout in state %s", session.call_id, prior_state)
            # Skip the frame when a newer call for the pair already owns this call id.
            if session.call_id not in self._sessions:
                await self._registry.push_to_users(
                    (session.caller_id, session.callee_id),
                    WsOutbound(
                        type="call-ended",
                        callId=session.call_id,
                        reason=CallEndReason.TIMEOUT.value,
                    ),
                )
            if prior_state == CallState.OFFERED:
                await self._notify_missed(session)
        return [session for session, _ in expired]

    def start(self) -> None:
        if self._reaper_task is None:
            self._reaper_task = asyncio.create_task(self._reap_loop(), name="call-session-reaper")
            logger.info("Call reaper started (interval=%.1fs)", self._reaper_interval)

    async def stop(self) -> None:
        if self._reaper_task:
            self._reaper_task.cancel()
            try:
                await self._reaper_task
            except asyncio.CancelledError:
                pass
            self._reaper_task = None
            logger.info("Call reaper stopped")

    async def _reap_loop(self) -> None:
        while True:
            await asyncio.sleep(self._reaper_interval)
            try:
                await self.reap_expired()
            except Exception:
                logger.exception("Call reaper iteration failed")

    def _require_session(self, from_user_id: int, target_user_id: int) -> CallSession:
        session = self._sessions.get(pair_key(from_user_id, target_user_id))
        if session is None or session.is_terminal:
            raise StaleSignalError(f"No call between {from_user_id} and {target_user_id}")
        return session

    def _discard(self, session: CallSession) -> None:
        session.transition(CallState.ENDED, self._clock.now())
        if self._sessions.get(session.call_id) is session:
            del self._sessions[session.call_id]

    @staticmethod
    def _ended_frame(session: CallSession, from_user_id: int, reason: CallEndReason) -> WsOutbound:
        return WsOutbound(
            type="call-ended",
            callId=session.call_id,
            fromUserId=from_user_id,
            targetUserId=session.other(from_user_id),
            reason=reason.value,
        )

    async def _notify_missed(self, session: CallSession) -> None:
        if self._fanout is None:
            return
        try:
            await self._fanout.notify(
                session.callee_id,
                NotificationType.MISSED_CALL,
                "You missed a call",
                related_user_id=session.caller_id,
            )
        except PersistenceError:
            logger.warning("Skipped missed_call notification for call %s", session.call_id)
