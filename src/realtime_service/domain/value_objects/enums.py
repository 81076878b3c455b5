from __future__ import annotations

from enum import StrEnum


class CallState(StrEnum):
    OFFERED = "offered"
    ANSWERED = "answered"
    ACTIVE = "active"
    ENDED = "ended"


class NotificationType(StrEnum):
    NEW_MESSAGE = "new_message"
    MISSED_CALL = "missed_call"
    MUTUAL_CRUSH = "mutual_crush"
    FRIEND_GROUP_CREATED = "friend_group_created"


class CallEndReason(StrEnum):
    HANGUP = "hangup"
    DECLINED = "declined"
    TIMEOUT = "timeout"
    DISCONNECTED = "disconnected"
