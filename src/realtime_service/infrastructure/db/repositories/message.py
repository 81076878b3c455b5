from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, case, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from realtime_service.application.dto.message import DirectMessageDraft
from realtime_service.domain.entities.message import Message
from realtime_service.infrastructure.db.mappers import message as mapper
from realtime_service.infrastructure.db.models.message import MessageModel


def _pair_clause(user_a: int, user_b: int):
    return or_(
        and_(MessageModel.from_user_id == user_a, MessageModel.to_user_id == user_b),
        and_(MessageModel.from_user_id == user_b, MessageModel.to_user_id == user_a),
    )


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, message_id: int) -> Message | None:
        model = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(model) if model else None

    async def list_between(
        self,
        user_a: int,
        user_b: int,
        *,
        before_id: int | None = None,
        limit: int = 50,
    ) -> list[Message]:
        # Newest page first, then flipped so callers get chronological order.
        stmt = (
            select(MessageModel)
            .where(_pair_clause(user_a, user_b))
            .order_by(MessageModel.id.desc())
            .limit(limit)
        )
        if before_id is not None:
            stmt = stmt.where(MessageModel.id < before_id)
        result = await self._session.execute(stmt)
        rows = [mapper.model_to_entity(m) for m in result.scalars().all()]
        rows.reverse()
        return rows

    async def list_recent_for(self, user_id: int, *, limit: int = 50) -> list[Message]:
        partner = case(
            (MessageModel.from_user_id == user_id, MessageModel.to_user_id),
            else_=MessageModel.from_user_id,
        )
        latest = (
            select(func.max(MessageModel.id).label("id"))
            .where(or_(MessageModel.from_user_id == user_id, MessageModel.to_user_id == user_id))
            .group_by(partner)
            .subquery()
        )
        stmt = (
            select(MessageModel)
            .join(latest, MessageModel.id == latest.c.id)
            .order_by(MessageModel.id.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save(self, draft: DirectMessageDraft) -> Message:
        stmt = (
            insert(MessageModel)
            .values(**mapper.draft_to_values(draft))
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())

    async def mark_read(self, message_id: int, read_at: datetime) -> Message | None:
        """Conditional update keeps the transition monotonic under concurrent readers."""
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id, MessageModel.is_read.is_(False))
            .values(is_read=True, read_at=read_at)
            .returning(MessageModel)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def mark_all_read(self, to_user_id: int, from_user_id: int, read_at: datetime) -> list[int]:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.to_user_id == to_user_id,
                MessageModel.from_user_id == from_user_id,
                MessageModel.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
            .returning(MessageModel.id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return sorted(result.scalars().all())
