"""Read side for the REST endpoints: conversation history and notifications."""
from __future__ import annotations

from dataclasses import replace

from realtime_service.application.policies.permissions import (
    assert_group_member,
    assert_notification_owner,
)
from realtime_service.application.uow import UnitOfWork
from realtime_service.domain.entities.group_message import GroupMessage
from realtime_service.domain.entities.message import Message
from realtime_service.domain.entities.notification import Notification


async def list_between(
    user_id: int,
    other_user_id: int,
    before_id: int | None,
    limit: int,
    uow: UnitOfWork,
) -> list[Message]:
    return await uow.messages.list_between(
        user_id, other_user_id, before_id=before_id, limit=limit,
    )


async def list_recent(user_id: int, limit: int, uow: UnitOfWork) -> list[Message]:
    """Latest message of each conversation the user takes part in, newest first."""
    return await uow.messages.list_recent_for(user_id, limit=limit)


async def list_group_messages(
    group_id: int,
    user_id: int,
    before_id: int | None,
    limit: int,
    uow: UnitOfWork,
) -> list[GroupMessage]:
    members = await uow.groups.members_of(group_id)
    assert_group_member(members, user_id)
    return await uow.groups.list_messages(group_id, before_id=before_id, limit=limit)


async def list_notifications(user_id: int, limit: int, uow: UnitOfWork) -> list[Notification]:
    return await uow.notifications.list_for_user(user_id, limit=limit)


async def mark_notification_read(
    notification_id: int,
    user_id: int,
    uow: UnitOfWork,
) -> Notification:
    notification = assert_notification_owner(
        await uow.notifications.get_by_id(notification_id), user_id,
    )
    if notification.is_read:
        return notification
    await uow.notifications_w.mark_read(notification_id)
    await uow.commit()
    return replace(notification, is_read=True)
