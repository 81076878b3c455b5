from __future__ import annotations

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from realtime_service.application.dto.message import GroupMessageDraft
from realtime_service.domain.entities.group_message import GroupMessage
from realtime_service.infrastructure.db.mappers import group_message as mapper
from realtime_service.infrastructure.db.models.group import FriendGroupMemberModel, GroupMessageModel


class GroupReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def members_of(self, group_id: int) -> set[int]:
        stmt = select(FriendGroupMemberModel.user_id).where(
            FriendGroupMemberModel.group_id == group_id
        )
        result = await self._session.execute(stmt)
        return set(result.scalars().all())

    async def list_messages(
        self,
        group_id: int,
        *,
        before_id: int | None = None,
        limit: int = 50,
    ) -> list[GroupMessage]:
        stmt = (
            select(GroupMessageModel)
            .where(GroupMessageModel.group_id == group_id)
            .order_by(GroupMessageModel.id.desc())
            .limit(limit)
        )
        if before_id is not None:
            stmt = stmt.where(GroupMessageModel.id < before_id)
        result = await self._session.execute(stmt)
        rows = [mapper.model_to_entity(m) for m in result.scalars().all()]
        rows.reverse()
        return rows


class GroupMessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save(self, draft: GroupMessageDraft) -> GroupMessage:
        stmt = (
            insert(GroupMessageModel)
            .values(**mapper.draft_to_values(draft))
            .returning(GroupMessageModel)
        )
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())
