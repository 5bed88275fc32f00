from __future__ import annotations

import logging
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_chat.exceptions import NotFoundError
from classroom_chat.models.room import Room, utcnow

logger = logging.getLogger(__name__)


class RoomDirectory:
    """Room metadata store. Rooms never hold their member list."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, room_id: UUID) -> Room | None:
        result = await self.db.execute(
            select(Room).where(Room.id == room_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_active(self, room_id: UUID) -> Room:
        room = await self.get(room_id)
        if room is None or room.is_disabled:
            raise NotFoundError(detail=f"Room {room_id} not found")
        return room

    async def get_many(self, room_ids: Iterable[UUID]) -> dict[UUID, Room]:
        ids = list(room_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Room).where(Room.id.in_(ids)))
        return {room.id: room for room in result.scalars().all()}

    def add(self, room: Room) -> Room:
        self.db.add(room)
        return room

    async def update_settings(self, room: Room, settings: dict) -> Room:
        room.settings = settings
        room.updated_at = utcnow()
        return room

    async def reserve_seat(self, room_id: UUID, max_members: int) -> bool:
        """Conditionally bump member_count; False when the room is already full."""
        result = await self.db.execute(
            update(Room)
            .where(Room.id == room_id, Room.is_disabled == False, Room.member_count < max_members)
            .values(member_count=Room.member_count + 1, last_activity_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_seat(self, room_id: UUID, count: int = 1) -> None:
        await self.db.execute(
            update(Room)
            .where(Room.id == room_id, Room.member_count >= count)
            .values(member_count=Room.member_count - count, last_activity_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def set_member_count(self, room_id: UUID, count: int) -> None:
        await self.db.execute(
            update(Room)
            .where(Room.id == room_id)
            .values(member_count=count)
            .execution_options(synchronize_session=False)
        )

    async def next_seq(self, room_id: UUID) -> int:
        """Allocate the next message position in the room.

        The UPDATE takes the room row lock until commit, so positions become
        visible in allocation order.
        """
        result = await self.db.execute(
            update(Room)
            .where(Room.id == room_id)
            .values(last_seq=Room.last_seq + 1, last_activity_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError(detail=f"Room {room_id} not found")
        seq = await self.db.scalar(select(Room.last_seq).where(Room.id == room_id))
        return int(seq)

    async def disable(self, room: Room) -> Room:
        room.is_disabled = True
        room.member_count = 0
        room.updated_at = utcnow()
        return room

    async def list_active(self, limit: int = 500, after_id: UUID | None = None) -> Sequence[Room]:
        query = select(Room).where(Room.is_disabled == False).order_by(Room.id).limit(limit)
        if after_id is not None:
            query = query.where(Room.id > after_id)
        result = await self.db.execute(query)
        return result.scalars().all()
