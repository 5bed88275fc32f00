from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_chat.models.message import Message, EnumMessageType
from classroom_chat.models.message_event import MessageEvent, EnumMessageEventType
from classroom_chat.models.room import utcnow

logger = logging.getLogger(__name__)


class MessageStore:
    """Append-only per-room message log plus its change-feed outbox."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, message_id: UUID) -> Message | None:
        result = await self.db.execute(
            select(Message).where(Message.id == message_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, message_id: UUID) -> Message | None:
        """Read the message under its row lock, so writers and other indexers queue behind us."""
        result = await self.db.execute(
            select(Message)
            .where(Message.id == message_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_many(self, message_ids: Sequence[UUID]) -> dict[UUID, Message]:
        if not message_ids:
            return {}
        result = await self.db.execute(select(Message).where(Message.id.in_(list(message_ids))))
        return {message.id: message for message in result.scalars().all()}

    async def append(
            self,
            room_id: UUID,
            seq: int,
            author_id: str,
            message_type: EnumMessageType,
            content: str,
            payload: dict,
            reply_to_id: UUID | None = None
    ) -> Message:
        message = Message(
            room_id=room_id,
            seq=seq,
            author_id=author_id,
            message_type=message_type,
            content=content,
            payload=payload,
            reply_to_id=reply_to_id,
            created_at=utcnow(),
        )
        self.db.add(message)
        await self.db.flush()
        return message

    async def record_event(self, message: Message, event_type: EnumMessageEventType) -> MessageEvent:
        event = MessageEvent(message_id=message.id, room_id=message.room_id, event_type=event_type)
        self.db.add(event)
        await self.db.flush()
        return event

    async def mark_edited(self, message: Message, content: str, payload: dict) -> Message:
        message.content = content
        message.payload = payload
        message.edited_at = utcnow()
        await self.db.flush()
        return message

    async def mark_deleted(self, message: Message, actor_id: str) -> Message:
        message.is_deleted = True
        message.deleted_at = utcnow()
        message.deleted_by = actor_id
        await self.db.flush()
        return message

    async def page_after(self, room_id: UUID, after_seq: int, limit: int) -> Sequence[Message]:
        """Ascending page of at most ``limit`` messages with seq > after_seq."""
        result = await self.db.execute(
            select(Message)
            .where(Message.room_id == room_id, Message.seq > after_seq)
            .order_by(Message.seq.asc())
            .limit(limit)
        )
        return result.scalars().all()

    async def page_before(self, room_id: UUID, before_seq: int | None, floor_seq: int, limit: int) -> Sequence[Message]:
        """The ``limit`` messages right before before_seq (newest when None), oldest first."""
        query = select(Message).where(Message.room_id == room_id, Message.seq > floor_seq)
        if before_seq is not None:
            query = query.where(Message.seq < before_seq)
        result = await self.db.execute(query.order_by(Message.seq.desc()).limit(limit))
        return list(reversed(result.scalars().all()))

    async def iter_room(self, room_id: UUID | None = None, batch_size: int = 500):
        """Yield batches of messages in (room, seq) order for index rebuilds."""
        last_key = None
        while True:
            query = select(Message).order_by(Message.room_id, Message.seq).limit(batch_size)
            if room_id is not None:
                query = query.where(Message.room_id == room_id)
            if last_key is not None:
                last_room, last_seq = last_key
                query = query.where(
                    (Message.room_id > last_room) | ((Message.room_id == last_room) & (Message.seq > last_seq))
                )
            batch = (await self.db.execute(query)).scalars().all()
            if not batch:
                return
            yield batch
            last_key = (batch[-1].room_id, batch[-1].seq)

    async def purge_before(self, room_id: UUID, cutoff: datetime) -> list[UUID]:
        """Physically remove messages created before ``cutoff``, recording purge events."""
        result = await self.db.execute(
            select(Message.id).where(Message.room_id == room_id, Message.created_at < cutoff)
        )
        message_ids = list(result.scalars().all())
        if not message_ids:
            return []
        await self.db.execute(
            update(Message)
            .where(Message.reply_to_id.in_(message_ids))
            .values(reply_to_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            delete(Message).where(Message.id.in_(message_ids)).execution_options(synchronize_session="fetch")
        )
        for message_id in message_ids:
            self.db.add(MessageEvent(message_id=message_id, room_id=room_id, event_type=EnumMessageEventType.PURGED))
        await self.db.flush()
        return message_ids

    async def pending_events(self, limit: int) -> Sequence[MessageEvent]:
        result = await self.db.execute(
            select(MessageEvent)
            .where(MessageEvent.processed_at.is_(None))
            .order_by(MessageEvent.id)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    async def get_events(self, event_ids: Sequence[int]) -> Sequence[MessageEvent]:
        if not event_ids:
            return []
        result = await self.db.execute(
            select(MessageEvent)
            .where(MessageEvent.id.in_(list(event_ids)))
            .order_by(MessageEvent.id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

