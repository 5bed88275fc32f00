from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_chat.config import ChatServiceConfig
from classroom_chat.exceptions import (
    CapacityError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from classroom_chat.models.membership import RoomMembership, EnumMemberRole
from classroom_chat.models.message import Message, EnumMessageType
from classroom_chat.models.message_event import EnumMessageEventType
from classroom_chat.models.room import Room, EnumRoomType
from classroom_chat.schemas.message import MessagePage, MessageResponse, body_text, body_type
from classroom_chat.schemas.pagination import Pagination
from classroom_chat.schemas.room import RoomCreate, RoomSettings
from classroom_chat.services.index_dispatcher import IndexDispatcher, NullIndexDispatcher
from classroom_chat.services.membership_index import MembershipIndex
from classroom_chat.services.message_store import MessageStore
from classroom_chat.services.room_directory import RoomDirectory
from classroom_chat.services.search_index import SearchIndex
from classroom_chat.utils.retry import with_store_retry

logger = logging.getLogger(__name__)

DIRECT_ROOM_MAX_MEMBERS = 2
UPLOAD_TYPES = (EnumMessageType.IMAGE, EnumMessageType.FILE)


def _field_errors(error: PydanticValidationError) -> Dict[str, str]:
    return {".".join(str(loc) for loc in item["loc"]): item["msg"] for item in error.errors()}


class RoomService:
    """Orchestrates rooms, memberships, messages and search for one request.

    Every operation is a single unit of work on ``db``; consistency comes
    from conditional writes and row locks in the store, never from
    in-process state.
    """

    def __init__(
            self,
            db: AsyncSession,
            config: ChatServiceConfig,
            publisher=None,
            index_dispatcher: Optional[IndexDispatcher] = None
    ):
        self.db = db
        self.config = config
        self.publisher = publisher
        self.index_dispatcher = index_dispatcher or NullIndexDispatcher()
        self.rooms = RoomDirectory(db)
        self.memberships = MembershipIndex(db)
        self.messages = MessageStore(db)
        self.search_index = SearchIndex(db)

    # Helpers

    async def _unit(self, name: str, operation):
        return await with_store_retry(
            self.db,
            operation,
            attempts=self.config.store_retry_attempts,
            base_delay=self.config.store_retry_base_delay,
            name=name,
        )

    def _page(self, pagination: Optional[Pagination]) -> Pagination:
        if pagination is None:
            return Pagination(page=1, size=self.config.default_page_size)
        return Pagination(page=pagination.page, size=min(pagination.size, self.config.max_page_size))

    async def _publish(self, event: str, room_id: Optional[UUID], data: Dict[str, Any]) -> None:
        if self.publisher is not None:
            await self.publisher.publish(event, room_id, data)

    def _dispatch(self, event_ids: Sequence[int]) -> None:
        try:
            self.index_dispatcher.dispatch(list(event_ids))
        except Exception as e:
            logger.warning(f"Index dispatch failed for events {list(event_ids)}: {e}")

    async def _lock_room(self, room_id: UUID) -> Room:
        result = await self.db.execute(
            select(Room)
            .where(Room.id == room_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        room = result.scalar_one_or_none()
        if room is None or room.is_disabled:
            raise NotFoundError(detail=f"Room {room_id} not found")
        return room

    async def _require_membership(self, room_id: UUID, user_id: str) -> RoomMembership:
        membership = await self.memberships.get(room_id, user_id)
        if membership is None:
            raise ForbiddenError(detail=f"User {user_id} is not a member of room {room_id}")
        return membership

    def _validate_settings(
            self,
            room_type: EnumRoomType,
            patch: Optional[Dict[str, Any]],
            base: Optional[Dict[str, Any]] = None
    ) -> RoomSettings:
        defaults = {
            "max_members": DIRECT_ROOM_MAX_MEMBERS if room_type == EnumRoomType.DIRECT else self.config.max_room_members,
            "message_retention_days": self.config.message_retention_days,
        }
        merged = {**defaults, **(base or {}), **(patch or {})}
        try:
            settings = RoomSettings.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(detail="Invalid room settings", field_errors=_field_errors(e))
        if settings.max_members > self.config.max_room_members:
            raise ValidationError(
                detail=f"max_members cannot exceed {self.config.max_room_members}",
                field_errors={"max_members": f"must be <= {self.config.max_room_members}"},
            )
        if room_type == EnumRoomType.DIRECT and settings.max_members > DIRECT_ROOM_MAX_MEMBERS:
            raise ValidationError(
                detail="Direct rooms hold at most two members",
                field_errors={"max_members": f"must be <= {DIRECT_ROOM_MAX_MEMBERS} for direct rooms"},
            )
        return settings

    def _validate_body(self, body) -> Tuple[EnumMessageType, str]:
        message_type = body_type(body)
        text = body_text(body)
        if message_type in (EnumMessageType.TEXT, EnumMessageType.SYSTEM) and not text.strip():
            raise ValidationError(detail="Message text cannot be empty")
        if len(text) > self.config.max_message_length:
            raise ValidationError(
                detail=f"Message too long (max {self.config.max_message_length} characters)",
                field_errors={"body": f"must be at most {self.config.max_message_length} characters"},
            )
        return message_type, text

    # Rooms

    async def create_room(self, creator_id: str, data: RoomCreate) -> Tuple[Room, RoomMembership]:
        """Write the room and its owner membership as one transaction."""
        name = (data.name or "").strip()
        if not name:
            raise ValidationError(detail="Room name is required", field_errors={"name": "must not be empty"})
        if len(name) > self.config.max_room_name_length:
            raise ValidationError(
                detail=f"Room name too long (max {self.config.max_room_name_length} characters)",
                field_errors={"name": f"must be at most {self.config.max_room_name_length} characters"},
            )
        settings = self._validate_settings(data.room_type, data.settings)
        room_id = uuid.uuid4()

        async def _create():
            existing = await self.rooms.get(room_id)
            if existing is not None:
                # A previous attempt committed but its acknowledgement was lost
                membership = await self.memberships.get(room_id, creator_id)
                if membership is None:
                    membership = self.memberships.add(room_id, creator_id, EnumMemberRole.OWNER)
                    await self.db.flush()
                    await self.rooms.set_member_count(room_id, await self.memberships.count(room_id))
                    await self.db.commit()
                return existing, membership

            room = self.rooms.add(Room(
                id=room_id,
                name=name,
                description=data.description,
                room_type=data.room_type,
                created_by=creator_id,
                settings=settings.model_dump(),
                member_count=1,
                last_seq=0,
            ))
            await self.db.flush()
            membership = self.memberships.add(room_id, creator_id, EnumMemberRole.OWNER)
            await self.db.commit()
            return room, membership

        room, membership = await self._unit("create room", _create)
        logger.info(f"Room {room.id} ({room.room_type.value}) created by {creator_id}")
        await self._publish("room.created", room.id, {"room_id": str(room.id), "created_by": creator_id})
        return room, membership

    async def get_room(self, user_id: str, room_id: UUID) -> Tuple[Room, RoomMembership]:
        room = await self.rooms.get_active(room_id)
        membership = await self._require_membership(room_id, user_id)
        return room, membership

    async def update_room_settings(self, user_id: str, room_id: UUID, patch: Dict[str, Any]) -> Room:
        async def _update():
            room = await self._lock_room(room_id)
            membership = await self._require_membership(room_id, user_id)
            if membership.role != EnumMemberRole.OWNER:
                raise ForbiddenError(detail="Only the room owner can change room settings")
            settings = self._validate_settings(room.room_type, patch, base=room.settings)
            if settings.max_members < room.member_count:
                raise ValidationError(
                    detail=f"Room already has {room.member_count} members",
                    field_errors={"max_members": f"must be >= the current member count ({room.member_count})"},
                )
            await self.rooms.update_settings(room, settings.model_dump())
            await self.db.commit()
            return room

        room = await self._unit("update room settings", _update)
        logger.info(f"Room {room_id} settings updated by {user_id}")
        await self._publish("room.updated", room_id, {"settings": room.settings, "updated_by": user_id})
        return room

    async def disband_room(self, user_id: str, room_id: UUID) -> None:
        async def _disband():
            room = await self._lock_room(room_id)
            membership = await self._require_membership(room_id, user_id)
            if membership.role != EnumMemberRole.OWNER:
                raise ForbiddenError(detail="Only the room owner can disband the room")
            await self.memberships.remove_all(room_id)
            await self.rooms.disable(room)
            await self.db.commit()

        await self._unit("disband room", _disband)
        logger.info(f"Room {room_id} disbanded by {user_id}")
        await self._publish("room.disbanded", room_id, {"disbanded_by": user_id})

    # Membership

    async def join_room(self, user_id: str, room_id: UUID) -> RoomMembership:
        """Idempotent: an existing membership is returned unchanged."""

        async def _join():
            room = await self.rooms.get_active(room_id)
            existing = await self.memberships.get(room_id, user_id)
            if existing is not None:
                return existing, False

            settings = RoomSettings.model_validate(room.settings)
            visible_from_seq = 0 if settings.history_public else room.last_seq
            # Seat first: the conditional update also takes the room row lock
            if not await self.rooms.reserve_seat(room_id, settings.max_members):
                await self.db.rollback()
                existing = await self.memberships.get(room_id, user_id)
                if existing is not None:
                    return existing, False
                # A room disbanded in the meantime reports NotFound rather than full
                await self.rooms.get_active(room_id)
                raise CapacityError(detail=f"Room {room_id} is at maximum capacity ({settings.max_members})")
            try:
                membership = self.memberships.add(room_id, user_id, EnumMemberRole.MEMBER, visible_from_seq)
                await self.db.flush()
            except IntegrityError:
                # Lost the insert race to a concurrent join of the same user
                await self.db.rollback()
                existing = await self.memberships.get(room_id, user_id)
                if existing is None:
                    raise
                return existing, False
            await self.db.commit()
            return membership, True

        membership, created = await self._unit("join room", _join)
        if created:
            logger.info(f"User {user_id} joined room {room_id}")
            await self._publish("member.joined", room_id, {"user_id": user_id, "role": membership.role.value})
        return membership

    async def leave_room(self, user_id: str, room_id: UUID) -> bool:
        """Remove the caller's membership. Returns True when the room was disbanded.

        A sole owner cannot leave while others remain; the last member
        leaving disbands the room.
        """

        async def _leave():
            room = await self._lock_room(room_id)
            membership = await self.memberships.get(room_id, user_id)
            if membership is None:
                raise NotFoundError(detail=f"User {user_id} is not a member of room {room_id}")
            member_count = await self.memberships.count(room_id)
            if membership.role == EnumMemberRole.OWNER:
                owner_count = await self.memberships.count_owners(room_id)
                if owner_count == 1 and member_count > 1:
                    raise ConflictError(
                        detail="The sole owner cannot leave while other members remain; transfer ownership first"
                    )
            if member_count == 1:
                await self.memberships.remove_all(room_id)
                await self.rooms.disable(room)
                await self.db.commit()
                return True
            await self.memberships.remove(room_id, user_id)
            await self.rooms.release_seat(room_id)
            await self.db.commit()
            return False

        disbanded = await self._unit("leave room", _leave)
        logger.info(f"User {user_id} left room {room_id}{' (room disbanded)' if disbanded else ''}")
        await self._publish("member.left", room_id, {"user_id": user_id})
        if disbanded:
            await self._publish("room.disbanded", room_id, {"disbanded_by": user_id})
        return disbanded

    async def remove_member(self, actor_id: str, room_id: UUID, user_id: str) -> None:
        if actor_id == user_id:
            await self.leave_room(user_id, room_id)
            return

        async def _remove():
            await self._lock_room(room_id)
            actor = await self._require_membership(room_id, actor_id)
            if not actor.can_moderate:
                raise ForbiddenError(detail="Only moderators and owners can remove members")
            target = await self.memberships.get(room_id, user_id)
            if target is None:
                raise NotFoundError(detail=f"User {user_id} is not a member of room {room_id}")
            if target.role == EnumMemberRole.OWNER:
                raise ForbiddenError(detail="Room owners cannot be removed")
            if target.role == EnumMemberRole.MODERATOR and actor.role != EnumMemberRole.OWNER:
                raise ForbiddenError(detail="Only the owner can remove a moderator")
            await self.memberships.remove(room_id, user_id)
            await self.rooms.release_seat(room_id)
            await self.db.commit()

        await self._unit("remove member", _remove)
        logger.info(f"User {user_id} removed from room {room_id} by {actor_id}")
        await self._publish("member.left", room_id, {"user_id": user_id, "removed_by": actor_id})

    async def transfer_ownership(self, actor_id: str, room_id: UUID, new_owner_id: str) -> RoomMembership:
        if actor_id == new_owner_id:
            raise ValidationError(detail="New owner must be a different member")

        async def _transfer():
            await self._lock_room(room_id)
            actor = await self._require_membership(room_id, actor_id)
            if actor.role != EnumMemberRole.OWNER:
                raise ForbiddenError(detail="Only the room owner can transfer ownership")
            target = await self.memberships.get(room_id, new_owner_id)
            if target is None:
                raise NotFoundError(detail=f"User {new_owner_id} is not a member of room {room_id}")
            target.role = EnumMemberRole.OWNER
            actor.role = EnumMemberRole.MODERATOR
            await self.db.commit()
            return target

        target = await self._unit("transfer ownership", _transfer)
        logger.info(f"Ownership of room {room_id} transferred from {actor_id} to {new_owner_id}")
        await self._publish("member.role_changed", room_id, {"user_id": new_owner_id, "role": EnumMemberRole.OWNER.value})
        await self._publish("member.role_changed", room_id, {"user_id": actor_id, "role": EnumMemberRole.MODERATOR.value})
        return target

    async def set_member_role(self, actor_id: str, room_id: UUID, user_id: str, role: EnumMemberRole) -> RoomMembership:
        if role == EnumMemberRole.OWNER:
            raise ValidationError(detail="Use ownership transfer to appoint an owner")

        async def _set_role():
            await self._lock_room(room_id)
            actor = await self._require_membership(room_id, actor_id)
            if actor.role != EnumMemberRole.OWNER:
                raise ForbiddenError(detail="Only the room owner can change member roles")
            target = await self.memberships.get(room_id, user_id)
            if target is None:
                raise NotFoundError(detail=f"User {user_id} is not a member of room {room_id}")
            if target.role == EnumMemberRole.OWNER:
                raise ConflictError(detail="An owner's role changes only through ownership transfer")
            target.role = role
            await self.db.commit()
            return target

        target = await self._unit("set member role", _set_role)
        logger.info(f"User {user_id} in room {room_id} is now {role.value}")
        await self._publish("member.role_changed", room_id, {"user_id": user_id, "role": role.value})
        return target

    async def get_user_rooms(self, user_id: str, pagination: Optional[Pagination] = None) -> Tuple[int, List[Tuple[Room, RoomMembership]]]:
        """Memberships by user first, then the rooms they point at."""
        page = self._page(pagination)
        total, memberships = await self.memberships.list_by_user(user_id, page)
        rooms = await self.rooms.get_many(m.room_id for m in memberships)
        items = []
        for membership in memberships:
            room = rooms.get(membership.room_id)
            if room is None:
                logger.error(f"Membership of {user_id} points at missing room {membership.room_id}")
                continue
            items.append((room, membership))
        return total, items

    async def get_room_members(
            self,
            room_id: UUID,
            pagination: Optional[Pagination] = None,
            actor_id: Optional[str] = None
    ) -> Tuple[int, Sequence[RoomMembership]]:
        await self.rooms.get_active(room_id)
        if actor_id is not None:
            await self._require_membership(room_id, actor_id)
        return await self.memberships.list_by_room(room_id, self._page(pagination))

    async def require_membership(self, user_id: str, room_id: UUID) -> RoomMembership:
        await self.rooms.get_active(room_id)
        return await self._require_membership(room_id, user_id)

    # Messages

    async def send_message(self, author_id: str, room_id: UUID, body, reply_to_id: Optional[UUID] = None) -> Message:
        message_type, text = self._validate_body(body)

        async def _send():
            room = await self.rooms.get_active(room_id)
            membership = await self._require_membership(room_id, author_id)
            settings = RoomSettings.model_validate(room.settings)
            if message_type in UPLOAD_TYPES and not settings.allow_file_uploads:
                raise ForbiddenError(detail="File uploads are disabled in this room")
            if message_type == EnumMessageType.SYSTEM and not membership.can_moderate:
                raise ForbiddenError(detail="Only moderators and owners can post system messages")
            if reply_to_id is not None:
                parent = await self.messages.get(reply_to_id)
                if parent is None or parent.room_id != room_id:
                    raise NotFoundError(detail=f"Reply target {reply_to_id} not found in room {room_id}")

            seq = await self.rooms.next_seq(room_id)
            message = await self.messages.append(
                room_id=room_id,
                seq=seq,
                author_id=author_id,
                message_type=message_type,
                content=text,
                payload=body.model_dump(mode="json"),
                reply_to_id=reply_to_id,
            )
            event = await self.messages.record_event(message, EnumMessageEventType.CREATED)
            event_id = event.id
            await self.db.commit()
            return message, event_id

        message, event_id = await self._unit("send message", _send)
        logger.info(f"Message {message.id} (seq {message.seq}) sent to room {room_id} by {author_id}")
        self._dispatch([event_id])
        await self._publish("message.sent", room_id, MessageResponse.from_message(message).model_dump(mode="json"))
        return message

    async def edit_message(self, actor_id: str, message_id: UUID, body) -> Message:
        message_type, text = self._validate_body(body)

        async def _edit():
            message = await self.messages.get(message_id)
            if message is None:
                raise NotFoundError(detail=f"Message {message_id} not found")
            await self.rooms.get_active(message.room_id)
            await self._require_membership(message.room_id, actor_id)
            if message.author_id != actor_id:
                raise ForbiddenError(detail="Only the author can edit a message")
            if message.is_deleted:
                raise ConflictError(detail="Deleted messages cannot be edited")
            if message.message_type != message_type:
                raise ValidationError(
                    detail=f"Cannot change a {message.message_type.value} message into {message_type.value}"
                )
            await self.messages.mark_edited(message, text, body.model_dump(mode="json"))
            event = await self.messages.record_event(message, EnumMessageEventType.UPDATED)
            event_id = event.id
            await self.db.commit()
            return message, event_id

        message, event_id = await self._unit("edit message", _edit)
        logger.info(f"Message {message_id} edited by {actor_id}")
        self._dispatch([event_id])
        await self._publish("message.edited", message.room_id, MessageResponse.from_message(message).model_dump(mode="json"))
        return message

    async def delete_message(self, actor_id: str, message_id: UUID) -> Message:
        """Soft delete: the message keeps its seq so page cursors stay valid."""

        async def _delete():
            message = await self.messages.get(message_id)
            if message is None:
                raise NotFoundError(detail=f"Message {message_id} not found")
            await self.rooms.get_active(message.room_id)
            membership = await self._require_membership(message.room_id, actor_id)
            if not membership.can_moderate:
                raise ForbiddenError(detail="Only moderators and owners can delete messages")
            if message.is_deleted:
                return message, None
            await self.messages.mark_deleted(message, actor_id)
            event = await self.messages.record_event(message, EnumMessageEventType.DELETED)
            event_id = event.id
            await self.db.commit()
            return message, event_id

        message, event_id = await self._unit("delete message", _delete)
        if event_id is not None:
            logger.info(f"Message {message_id} deleted by {actor_id}")
            self._dispatch([event_id])
            await self._publish("message.deleted", message.room_id, {"message_id": str(message_id), "seq": message.seq})
        return message

    async def list_messages(
            self,
            user_id: str,
            room_id: UUID,
            after_seq: Optional[int] = None,
            before_seq: Optional[int] = None,
            limit: Optional[int] = None
    ) -> MessagePage:
        """Ascending seq pages.

        ``after_seq`` walks forward, ``before_seq`` walks back, neither gives
        the newest page. ``has_more`` refers to the direction of travel.
        """
        if after_seq is not None and before_seq is not None:
            raise ValidationError(detail="Use either after_seq or before_seq, not both")
        limit = min(limit or self.config.default_page_size, self.config.max_page_size)
        if limit < 1:
            raise ValidationError(detail="limit must be positive")
        await self.rooms.get_active(room_id)
        membership = await self._require_membership(room_id, user_id)
        floor_seq = membership.visible_from_seq

        if after_seq is not None:
            rows = await self.messages.page_after(room_id, max(after_seq, floor_seq), limit + 1)
            has_more = len(rows) > limit
            items = list(rows[:limit])
        else:
            rows = await self.messages.page_before(room_id, before_seq, floor_seq, limit + 1)
            has_more = len(rows) > limit
            items = list(rows[-limit:])

        return MessagePage(
            items=[MessageResponse.from_message(m) for m in items],
            next_after_seq=items[-1].seq if items else max(after_seq or 0, floor_seq),
            prev_before_seq=items[0].seq if items else None,
            has_more=has_more,
        )

    async def search_messages(
            self,
            user_id: str,
            room_id: UUID,
            query: str,
            pagination: Optional[Pagination] = None,
            author_id: Optional[str] = None,
            message_type: Optional[EnumMessageType] = None
    ) -> Tuple[int, List[Message]]:
        """Search is not authoritative: index failures degrade to no results."""
        if not query or not query.strip():
            raise ValidationError(detail="Search query cannot be empty")
        page = self._page(pagination)
        await self.rooms.get_active(room_id)
        membership = await self._require_membership(room_id, user_id)
        try:
            total, documents = await self.search_index.search(
                room_id,
                query,
                page,
                author_id=author_id,
                message_type=message_type.value if message_type else None,
                min_seq=membership.visible_from_seq,
            )
            messages = await self.messages.get_many([d.message_id for d in documents])
        except Exception as e:
            if isinstance(e, SQLAlchemyError):
                await self.db.rollback()
            logger.warning(f"Search in room {room_id} failed, returning no results: {e}")
            return 0, []
        # The index may lag a delete; the message store has the final word
        items = [
            messages[d.message_id]
            for d in documents
            if d.message_id in messages and not messages[d.message_id].is_deleted
        ]
        return total, items

    # Maintenance

    async def find_ownerless_rooms(self, batch_size: int = 500) -> List[UUID]:
        ownerless: List[UUID] = []
        after_id = None
        while True:
            rooms = await self.rooms.list_active(limit=batch_size, after_id=after_id)
            if not rooms:
                break
            ownerless.extend(await self.memberships.rooms_without_owner([room.id for room in rooms]))
            after_id = rooms[-1].id
        return ownerless

    async def repair_room_ownership(self, room_id: UUID) -> Optional[RoomMembership]:
        """Restore the owner invariant for one room; returns the promoted or reinstated owner."""

        async def _repair():
            room = await self._lock_room(room_id)
            memberships = await self.memberships.all_for_room(room_id)
            promoted = None
            if not any(m.role == EnumMemberRole.OWNER for m in memberships):
                if memberships:
                    moderators = [m for m in memberships if m.role == EnumMemberRole.MODERATOR]
                    promoted = (moderators or list(memberships))[0]
                    promoted.role = EnumMemberRole.OWNER
                else:
                    promoted = self.memberships.add(room_id, room.created_by, EnumMemberRole.OWNER)
                await self.db.flush()
            await self.rooms.set_member_count(room_id, await self.memberships.count(room_id))
            await self.db.commit()
            return promoted

        promoted = await self._unit("repair room ownership", _repair)
        if promoted is not None:
            logger.warning(f"Room {room_id} had no owner; {promoted.user_id} is now owner")
            await self._publish("member.role_changed", room_id, {"user_id": promoted.user_id, "role": EnumMemberRole.OWNER.value})
        return promoted

    async def purge_expired_messages(self, now: Optional[datetime] = None, batch_size: int = 500) -> int:
        now = now or datetime.now(timezone.utc)
        purged = 0
        after_id = None
        while True:
            rooms = await self.rooms.list_active(limit=batch_size, after_id=after_id)
            if not rooms:
                break
            room_policies = [(room.id, RoomSettings.model_validate(room.settings).message_retention_days) for room in rooms]
            after_id = rooms[-1].id
            for target_room_id, retention_days in room_policies:
                cutoff = now - timedelta(days=retention_days)

                async def _purge():
                    removed = await self.messages.purge_before(target_room_id, cutoff)
                    await self.db.commit()
                    return removed

                removed = await self._unit("purge expired messages", _purge)
                if removed:
                    logger.info(f"Purged {len(removed)} expired messages from room {target_room_id}")
                    purged += len(removed)
        return purged
