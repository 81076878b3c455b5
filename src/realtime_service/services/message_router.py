"""Direct and group chat delivery: persist, then push to live connections.

A direct message the store rejects is still relayed live, flagged unsaved.
"""
from __future__ import annotations

import asyncio
import logging
import weakref

from realtime_service.application.dto.message import (
    DirectMessageDraft,
    GroupMessageDraft,
    VoiceAttachment,
)
from realtime_service.application.dto.records import (
    GroupMessageRecord,
    MessageRecord,
    UnsavedMessageRecord,
)
from realtime_service.application.exceptions import (
    AppError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from realtime_service.application.policies.permissions import (
    assert_group_member,
    assert_message_recipient,
)
from realtime_service.application.ports.clock import Clock, SystemClock
from realtime_service.application.uow import UowFactory
from realtime_service.domain.entities.group_message import GroupMessage
from realtime_service.domain.entities.message import Message
from realtime_service.domain.value_objects.enums import NotificationType
from realtime_service.domain.value_objects.ids import pair_key
from realtime_service.infrastructure.ws.connection import Connection
from realtime_service.infrastructure.ws.protocol import WsOutbound
from realtime_service.infrastructure.ws.registry import ConnectionRegistry
from realtime_service.services.notification_fanout import NotificationFanout

logger = logging.getLogger(__name__)


def _check_body(content: str, voice: VoiceAttachment | None) -> None:
    if not content.strip() and voice is None:
        raise ValidationError("Message needs content or a voice attachment")


class MessageRouter:
    """Routes chat frames to recipients.

    A per-pair lock spans persist + push, so a live recipient sees messages of
    one sender in persisted id order even when the sender writes from several
    tabs at once.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        uow_factory: UowFactory,
        fanout: NotificationFanout,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._registry = registry
        self._uow_factory = uow_factory
        self._fanout = fanout
        self._clock = clock or SystemClock()
        self._pair_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, user_a: int, user_b: int) -> asyncio.Lock:
        key = pair_key(user_a, user_b)
        lock = self._pair_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._pair_locks[key] = lock
        return lock

    async def route_direct(
        self,
        from_user_id: int,
        to_user_id: int,
        content: str,
        voice: VoiceAttachment | None = None,
        *,
        origin: Connection | None = None,
    ) -> Message:
        _check_body(content, voice)
        if from_user_id == to_user_id:
            raise ValidationError("Cannot send a message to yourself")

        lock = self._lock_for(from_user_id, to_user_id)
        async with lock:
            draft = DirectMessageDraft(
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                content=content,
                voice=voice,
                created_at=self._clock.now(),
            )
            try:
                message = await self._save_direct(draft)
            except PersistenceError:
                await self._push_unsaved(draft, origin)
                raise
            frame = WsOutbound(
                type="message",
                message=MessageRecord.model_validate(message, from_attributes=True).to_wire(),
            )
            delivered = await self._registry.push_to_users(
                (to_user_id, from_user_id), frame, exclude=origin,
            )

        logger.debug(
            "Direct message %s %s->%s delivered to %d connection(s)",
            message.id, from_user_id, to_user_id, delivered,
        )
        if not self._registry.is_online(to_user_id):
            await self._notify_offline_recipient(message)
        return message

    async def _save_direct(self, draft: DirectMessageDraft) -> Message:
        try:
            async with self._uow_factory() as uow:
                if not await uow.users.exists(draft.to_user_id):
                    raise NotFoundError("Recipient not found")
                message = await uow.messages_w.save(draft)
                await uow.commit()
                return message
        except AppError:
            raise
        except Exception as exc:
            logger.exception("Failed to store message %s->%s", draft.from_user_id, draft.to_user_id)
            raise PersistenceError("Message could not be stored") from exc

    async def _push_unsaved(self, draft: DirectMessageDraft, origin: Connection | None) -> None:
        voice = draft.voice
        record = UnsavedMessageRecord(
            from_user_id=draft.from_user_id,
            to_user_id=draft.to_user_id,
            content=draft.content,
            voice_message_url=voice.url if voice else None,
            voice_message_duration=voice.duration if voice else None,
            created_at=draft.created_at,
        )
        delivered = await self._registry.push_to_users(
            (draft.to_user_id, draft.from_user_id),
            WsOutbound(type="message", message=record.to_wire()),
            exclude=origin,
        )
        logger.warning(
            "Unsaved message %s->%s relayed to %d connection(s)",
            draft.from_user_id, draft.to_user_id, delivered,
        )

    async def _notify_offline_recipient(self, message: Message) -> None:
        text = "Sent you a voice message" if message.voice_message_url and not message.content else message.content
        try:
            await self._fanout.notify(
                message.to_user_id,
                NotificationType.NEW_MESSAGE,
                text[:200],
                related_user_id=message.from_user_id,
            )
        except PersistenceError:
            # The message itself is stored; a missing notification is not fatal.
            logger.warning("Skipped new_message notification for message %s", message.id)

    async def route_group(
        self,
        from_user_id: int,
        group_id: int,
        content: str,
        voice: VoiceAttachment | None = None,
        *,
        origin: Connection | None = None,
    ) -> GroupMessage:
        _check_body(content, voice)
        try:
            async with self._uow_factory() as uow:
                members = await uow.groups.members_of(group_id)
                assert_group_member(members, from_user_id)
                group_message = await uow.group_messages_w.save(
                    GroupMessageDraft(
                        from_user_id=from_user_id,
                        group_id=group_id,
                        content=content,
                        voice=voice,
                        created_at=self._clock.now(),
                    )
                )
                await uow.commit()
        except AppError:
            raise
        except Exception as exc:
            logger.exception("Failed to store group message in group=%s", group_id)
            raise PersistenceError("Group message could not be stored") from exc

        frame = WsOutbound(
            type="group-message",
            message=GroupMessageRecord.model_validate(group_message, from_attributes=True).to_wire(),
        )
        delivered = await self._registry.push_to_users(sorted(members), frame, exclude=origin)
        logger.debug(
            "Group message %s in group=%s delivered to %d connection(s)",
            group_message.id, group_id, delivered,
        )
        return group_message

    async def mark_read(self, message_id: int, reader_user_id: int) -> Message:
        """Mark a message read by its recipient. Repeated calls are no-ops."""
        try:
            async with self._uow_factory() as uow:
                message = assert_message_recipient(
                    await uow.messages.get_by_id(message_id), reader_user_id,
                )
                if message.is_read:
                    return message
                updated = await uow.messages_w.mark_read(message_id, self._clock.now())
                await uow.commit()
        except AppError:
            raise
        except Exception as exc:
            logger.exception("Failed to mark message %s read", message_id)
            raise PersistenceError("Read receipt could not be stored") from exc

        if updated is None:
            # Lost a race with another tab; the stored row already has its read_at.
            try:
                async with self._uow_factory() as uow:
                    current = await uow.messages.get_by_id(message_id)
            except Exception as exc:
                logger.exception("Failed to reload message %s after concurrent read", message_id)
                raise PersistenceError("Read receipt could not be loaded") from exc
            return current or message

        await self._registry.push_to_user(
            updated.from_user_id,
            WsOutbound(
                type="message-read",
                messageId=updated.id,
                readerUserId=reader_user_id,
                readAt=updated.read_at.isoformat() if updated.read_at else None,
            ),
        )
        return updated

    async def mark_conversation_read(self, reader_user_id: int, other_user_id: int) -> list[int]:
        """Mark everything ``other_user_id`` sent to the reader as read."""
        read_at = self._clock.now()
        try:
            async with self._uow_factory() as uow:
                ids = await uow.messages_w.mark_all_read(reader_user_id, other_user_id, read_at)
                await uow.commit()
        except Exception as exc:
            logger.exception("Failed to mark conversation %s<-%s read", reader_user_id, other_user_id)
            raise PersistenceError("Read receipts could not be stored") from exc

        for message_id in ids:
            await self._registry.push_to_user(
                other_user_id,
                WsOutbound(
                    type="message-read",
                    messageId=message_id,
                    readerUserId=reader_user_id,
                    readAt=read_at.isoformat(),
                ),
            )
        return ids
