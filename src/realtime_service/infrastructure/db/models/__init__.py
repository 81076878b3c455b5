"""Import all models so metadata.create_all sees every table."""
from realtime_service.infrastructure.db.models.group import (
    FriendGroupMemberModel,
    FriendGroupModel,
    GroupMessageModel,
)
from realtime_service.infrastructure.db.models.message import MessageModel
from realtime_service.infrastructure.db.models.notification import NotificationModel
from realtime_service.infrastructure.db.models.user import UserModel

__all__ = [
    "FriendGroupMemberModel",
    "FriendGroupModel",
    "GroupMessageModel",
    "MessageModel",
    "NotificationModel",
    "UserModel",
]
