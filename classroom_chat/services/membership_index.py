from __future__ import annotations

import logging
from typing import Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_chat.models.membership import RoomMembership, EnumMemberRole
from classroom_chat.schemas.pagination import Pagination

logger = logging.getLogger(__name__)


class MembershipIndex:
    """Many-to-many room/user relation with an indexed lookup in each direction.

    By room: the (room_id, user_id) primary key.
    By user: the (user_id, joined_at) secondary index.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, room_id: UUID, user_id: str) -> RoomMembership | None:
        result = await self.db.execute(
            select(RoomMembership)
            .where(RoomMembership.room_id == room_id, RoomMembership.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def add(self, room_id: UUID, user_id: str, role: EnumMemberRole, visible_from_seq: int = 0) -> RoomMembership:
        membership = RoomMembership(
            room_id=room_id,
            user_id=user_id,
            role=role,
            visible_from_seq=visible_from_seq,
        )
        self.db.add(membership)
        return membership

    async def remove(self, room_id: UUID, user_id: str) -> bool:
        result = await self.db.execute(
            delete(RoomMembership)
            .where(RoomMembership.room_id == room_id, RoomMembership.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def remove_all(self, room_id: UUID) -> int:
        result = await self.db.execute(
            delete(RoomMembership)
            .where(RoomMembership.room_id == room_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def list_by_user(self, user_id: str, pagination: Pagination) -> tuple[int, Sequence[RoomMembership]]:
        query = select(RoomMembership).where(RoomMembership.user_id == user_id)
        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar()
        result = await self.db.execute(
            query.order_by(RoomMembership.joined_at.desc(), RoomMembership.room_id)
            .offset(pagination.offset)
            .limit(pagination.size)
        )
        return total, result.scalars().all()

    async def list_by_room(self, room_id: UUID, pagination: Pagination) -> tuple[int, Sequence[RoomMembership]]:
        query = select(RoomMembership).where(RoomMembership.room_id == room_id)
        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar()
        result = await self.db.execute(
            query.order_by(RoomMembership.joined_at, RoomMembership.user_id)
            .offset(pagination.offset)
            .limit(pagination.size)
        )
        return total, result.scalars().all()

    async def all_for_room(self, room_id: UUID) -> Sequence[RoomMembership]:
        result = await self.db.execute(
            select(RoomMembership)
            .where(RoomMembership.room_id == room_id)
            .order_by(RoomMembership.joined_at, RoomMembership.user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    async def count(self, room_id: UUID) -> int:
        return await self.db.scalar(
            select(func.count()).select_from(RoomMembership).where(RoomMembership.room_id == room_id)
        )

    async def count_owners(self, room_id: UUID) -> int:
        return await self.db.scalar(
            select(func.count())
            .select_from(RoomMembership)
            .where(RoomMembership.room_id == room_id, RoomMembership.role == EnumMemberRole.OWNER)
        )

    async def rooms_without_owner(self, room_ids: Sequence[UUID]) -> list[UUID]:
        """Of the given rooms, those that have no owner-role membership."""
        if not room_ids:
            return []
        owned = await self.db.execute(
            select(RoomMembership.room_id)
            .where(RoomMembership.room_id.in_(room_ids), RoomMembership.role == EnumMemberRole.OWNER)
            .distinct()
        )
        owned_ids = set(owned.scalars().all())
        return [room_id for room_id in room_ids if room_id not in owned_ids]
