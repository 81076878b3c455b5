"""Seed development data: a few users, a friend group and a short chat history."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from realtime_service.application.dto.message import DirectMessageDraft, GroupMessageDraft
from realtime_service.infrastructure.db.base import Base
from realtime_service.infrastructure.db.models import (
    FriendGroupMemberModel,
    FriendGroupModel,
    UserModel,
)
from realtime_service.infrastructure.db.session import AsyncSessionLocal, engine
from realtime_service.infrastructure.db.uow import SqlAlchemyUoW

logger = logging.getLogger(__name__)

USERS = {1: "alice", 2: "bob", 3: "carol"}


async def seed() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session)
        now = datetime.now(timezone.utc)

        session.add_all(UserModel(id=uid, name=name) for uid, name in USERS.items())
        group = FriendGroupModel(name="weekend plans")
        session.add(group)
        await session.flush()
        session.add_all(
            FriendGroupMemberModel(group_id=group.id, user_id=uid) for uid in USERS
        )

        direct = [
            (1, 2, "hey, are you around tonight?"),
            (2, 1, "yes! call me in 10"),
            (1, 2, "ok"),
        ]
        for offset, (sender, recipient, content) in enumerate(direct):
            await uow.messages_w.save(
                DirectMessageDraft(
                    from_user_id=sender,
                    to_user_id=recipient,
                    content=content,
                    created_at=now + timedelta(seconds=offset),
                )
            )
        await uow.group_messages_w.save(
            GroupMessageDraft(
                from_user_id=3,
                group_id=group.id,
                content="who is bringing snacks?",
                created_at=now,
            )
        )

        await uow.commit()
        logger.info(
            "Seeded %d users, group %s and %d direct messages",
            len(USERS), group.id, len(direct),
        )


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
