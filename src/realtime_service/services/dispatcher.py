"""Per-frame handling for one WebSocket connection.

The FastAPI endpoint reads text frames and hands each one to
:meth:`FrameDispatcher.handle`; everything protocol-level (auth-first rule,
dispatch by ``type``, mapping errors to reply frames) lives here so it can be
exercised without a server.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Literal

import pydantic

from realtime_service.application.dto.message import VoiceAttachment
from realtime_service.application.dto.records import GroupMessageRecord, MessageRecord
from realtime_service.application.exceptions import (
    AppError,
    AuthRequiredError,
    ForbiddenError,
    StaleSignalError,
)
from realtime_service.application.ports.auth import TokenVerifier
from realtime_service.infrastructure.ws.connection import Connection
from realtime_service.infrastructure.ws.protocol import (
    AuthFrame,
    CallAnswerFrame,
    CallOfferFrame,
    CallTargetFrame,
    DirectMessageFrame,
    GroupMessageFrame,
    IceCandidateFrame,
    MarkReadFrame,
    PingFrame,
    WsOutbound,
    call_error_frame,
    error_frame,
    parse_inbound,
)
from realtime_service.services.hub import RealtimeHub

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, Any], Awaitable[None]]

_CALL_FRAMES = (CallOfferFrame, CallAnswerFrame, IceCandidateFrame, CallTargetFrame)


class FrameDispatcher:
    def __init__(
        self,
        hub: RealtimeHub,
        *,
        auth_mode: Literal["user_id", "token"] = "user_id",
        verifier: TokenVerifier | None = None,
        max_unauthenticated_frames: int = 5,
    ) -> None:
        if auth_mode == "token" and verifier is None:
            raise ValueError("auth_mode='token' requires a TokenVerifier")
        self._hub = hub
        self._auth_mode = auth_mode
        self._verifier = verifier
        self._max_unauthenticated = max_unauthenticated_frames
        self._handlers: dict[str, Handler] = {
            "ping": self._on_ping,
            "message": self._on_message,
            "group-message": self._on_group_message,
            "mark-read": self._on_mark_read,
            "call-offer": self._on_call_offer,
            "call-answer": self._on_call_answer,
            "ice-candidate": self._on_ice_candidate,
            "call-declined": self._on_call_declined,
            "call-ended": self._on_call_ended,
            "call-connected": self._on_call_connected,
        }

    async def handle(self, conn: Connection, raw: str | bytes) -> bool:
        """Process one inbound frame. Returns False when the socket should be closed."""
        try:
            frame = parse_inbound(raw)
        except pydantic.ValidationError as exc:
            logger.debug("WS invalid frame on conn=%s: %s", conn.id, exc)
            await conn.send(error_frame("invalid_payload", _first_error(exc)).encode())
            return self._count_unauthenticated(conn)

        if isinstance(frame, AuthFrame):
            if not await self._authenticate(conn, frame):
                return self._count_unauthenticated(conn)
            return True

        if not conn.is_authenticated:
            logger.debug("WS %s frame before auth on conn=%s dropped", frame.type, conn.id)
            return self._count_unauthenticated(conn)

        self._hub.presence.heartbeat(conn.user_id)
        try:
            await self._handlers[frame.type](conn, frame)
        except StaleSignalError as exc:
            logger.debug("Stale %s from user=%s dropped: %s", frame.type, conn.user_id, exc.detail)
        except ForbiddenError as exc:
            if isinstance(frame, _CALL_FRAMES):
                logger.warning("Rejected %s from user=%s: %s", frame.type, conn.user_id, exc.detail)
            else:
                await conn.send(error_frame(exc.code, exc.detail, frame.type).encode())
        except AppError as exc:
            if isinstance(frame, _CALL_FRAMES):
                await conn.send(call_error_frame(frame.target_user_id, exc.code, exc.detail).encode())
            else:
                await conn.send(error_frame(exc.code, exc.detail, frame.type).encode())
        except Exception:
            logger.exception("WS %s handler failed for user=%s", frame.type, conn.user_id)
            await conn.send(error_frame("internal_error", frame=frame.type).encode())
        return True

    def _count_unauthenticated(self, conn: Connection) -> bool:
        if conn.is_authenticated:
            return True
        conn.unauthenticated_frames += 1
        return conn.unauthenticated_frames <= self._max_unauthenticated

    async def _authenticate(self, conn: Connection, frame: AuthFrame) -> bool:
        try:
            await self._verify_identity(frame)
        except AuthRequiredError as exc:
            logger.info("WS auth rejected on conn=%s: %s", conn.id, exc.detail)
            return False

        if not await self._hub.bind(conn, frame.user_id):
            return False
        conn.unauthenticated_frames = 0
        self._hub.presence.heartbeat(frame.user_id)
        logger.info("User %s authenticated on conn=%s", frame.user_id, conn.id)
        await conn.send(WsOutbound(type="auth-ok", userId=frame.user_id).encode())
        return True

    async def _verify_identity(self, frame: AuthFrame) -> None:
        if self._auth_mode == "token":
            if not frame.token:
                raise AuthRequiredError("token required")
            try:
                principal = await self._verifier.verify(frame.token)
            except Exception as exc:
                raise AuthRequiredError("invalid token") from exc
            if principal.user_id != frame.user_id:
                raise AuthRequiredError("token does not match userId")

        try:
            async with self._hub.uow_factory() as uow:
                exists = await uow.users.exists(frame.user_id)
        except Exception as exc:
            logger.exception("User lookup failed during WS auth")
            raise AuthRequiredError("user lookup failed") from exc
        if not exists:
            raise AuthRequiredError(f"unknown user {frame.user_id}")

    async def _on_ping(self, conn: Connection, frame: PingFrame) -> None:
        await conn.send(WsOutbound(type="pong").encode())

    async def _on_message(self, conn: Connection, frame: DirectMessageFrame) -> None:
        message = await self._hub.messages.route_direct(
            conn.user_id,
            frame.to_user_id,
            frame.content,
            VoiceAttachment.from_fields(frame.voice_message_url, frame.voice_message_duration),
            origin=conn,
        )
        record = MessageRecord.model_validate(message, from_attributes=True)
        await conn.send(WsOutbound(type="message-sent", message=record.to_wire()).encode())

    async def _on_group_message(self, conn: Connection, frame: GroupMessageFrame) -> None:
        group_message = await self._hub.messages.route_group(
            conn.user_id,
            frame.group_id,
            frame.content,
            VoiceAttachment.from_fields(frame.voice_message_url, frame.voice_message_duration),
            origin=conn,
        )
        record = GroupMessageRecord.model_validate(group_message, from_attributes=True)
        await conn.send(WsOutbound(type="group-message-sent", message=record.to_wire()).encode())

    async def _on_mark_read(self, conn: Connection, frame: MarkReadFrame) -> None:
        await self._hub.messages.mark_read(frame.message_id, conn.user_id)

    async def _on_call_offer(self, conn: Connection, frame: CallOfferFrame) -> None:
        await self._hub.calls.offer(conn.user_id, frame.target_user_id, frame.offer, origin=conn)

    async def _on_call_answer(self, conn: Connection, frame: CallAnswerFrame) -> None:
        await self._hub.calls.answer(conn.user_id, frame.target_user_id, frame.answer, origin=conn)

    async def _on_ice_candidate(self, conn: Connection, frame: IceCandidateFrame) -> None:
        await self._hub.calls.ice_candidate(
            conn.user_id, frame.target_user_id, frame.candidate, origin=conn,
        )

    async def _on_call_declined(self, conn: Connection, frame: CallTargetFrame) -> None:
        await self._hub.calls.decline(conn.user_id, frame.target_user_id, origin=conn)

    async def _on_call_ended(self, conn: Connection, frame: CallTargetFrame) -> None:
        await self._hub.calls.end(conn.user_id, frame.target_user_id, origin=conn)

    async def _on_call_connected(self, conn: Connection, frame: CallTargetFrame) -> None:
        await self._hub.calls.connected(conn.user_id, frame.target_user_id)


def _first_error(exc: pydantic.ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid frame"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return f"{loc}: {first.get('msg', '')}" if loc else first.get("msg", "invalid frame")
