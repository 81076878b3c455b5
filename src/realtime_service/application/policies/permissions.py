from __future__ import annotations

from realtime_service.application.exceptions import ForbiddenError, NotFoundError
from realtime_service.domain.entities.message import Message
from realtime_service.domain.entities.notification import Notification


def assert_message_recipient(message: Message | None, reader_user_id: int) -> Message:
    """Raise unless ``reader_user_id`` is the message's recipient."""
    if message is None:
        raise NotFoundError("Message not found")
    if message.to_user_id != reader_user_id:
        raise ForbiddenError("Only the recipient may mark a message read")
    return message


def assert_group_member(members: set[int], user_id: int) -> None:
    if user_id not in members:
        raise ForbiddenError("Not a member of this group")


def assert_notification_owner(notification: Notification | None, user_id: int) -> Notification:
    if notification is None:
        raise NotFoundError("Notification not found")
    if notification.user_id != user_id:
        raise ForbiddenError("Not your notification")
    return notification
