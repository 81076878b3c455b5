"""WebSocket frame models.

Frames are flat JSON objects with a ``type`` discriminator and camelCase
fields, e.g. ``{"type": "call-offer", "targetUserId": 7, "offer": {...}}``.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class _Inbound(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuthFrame(_Inbound):
    type: Literal["auth", "authenticate"]
    user_id: int
    token: str | None = None


class PingFrame(_Inbound):
    type: Literal["ping"]


class DirectMessageFrame(_Inbound):
    type: Literal["message"]
    to_user_id: int
    content: str = ""
    voice_message_url: str | None = None
    voice_message_duration: int | None = Field(default=None, ge=0)


class GroupMessageFrame(_Inbound):
    type: Literal["group-message"]
    group_id: int
    content: str = ""
    voice_message_url: str | None = None
    voice_message_duration: int | None = Field(default=None, ge=0)


class MarkReadFrame(_Inbound):
    type: Literal["mark-read"]
    message_id: int


class CallOfferFrame(_Inbound):
    type: Literal["call-offer"]
    target_user_id: int
    offer: Any


class CallAnswerFrame(_Inbound):
    type: Literal["call-answer"]
    target_user_id: int
    answer: Any


class IceCandidateFrame(_Inbound):
    type: Literal["ice-candidate"]
    target_user_id: int
    candidate: Any


class CallTargetFrame(_Inbound):
    """Frames that carry nothing but the other participant."""

    type: Literal["call-declined", "call-ended", "call-connected"]
    target_user_id: int


WsInbound = Annotated[
    Union[
        AuthFrame,
        PingFrame,
        DirectMessageFrame,
        GroupMessageFrame,
        MarkReadFrame,
        CallOfferFrame,
        CallAnswerFrame,
        IceCandidateFrame,
        CallTargetFrame,
    ],
    Field(discriminator="type"),
]

inbound_adapter: TypeAdapter[WsInbound] = TypeAdapter(WsInbound)


def parse_inbound(raw: str | bytes) -> WsInbound:
    """Raises ``pydantic.ValidationError`` on malformed JSON or unknown frames."""
    return inbound_adapter.validate_json(raw)


class WsOutbound(BaseModel):
    """Server → Client. Extra keyword fields become top-level frame keys."""

    model_config = ConfigDict(extra="allow")

    type: str

    def encode(self) -> str:
        return self.model_dump_json()


def error_frame(code: str, detail: str = "", frame: str | None = None) -> WsOutbound:
    fields: dict[str, Any] = {"code": code}
    if detail:
        fields["detail"] = detail
    if frame:
        fields["frame"] = frame
    return WsOutbound(type="error", **fields)


def call_error_frame(target_user_id: int, code: str, error: str) -> WsOutbound:
    return WsOutbound(type="call-error", targetUserId=target_user_id, code=code, error=error)
