from sqlalchemy import Column, String, DateTime, Integer, Enum, ForeignKey, Index, Uuid
import enum
from classroom_chat.database import Base
from classroom_chat.models.room import utcnow


class EnumMemberRole(enum.Enum):
    OWNER = "owner"
    MODERATOR = "moderator"
    MEMBER = "member"


class RoomMembership(Base):
    """One row per (room, user) pair; the row exists only while the user is a member.

    The primary key serves "members of a room", the user index serves
    "rooms of a user". Rooms never carry their member list.
    """
    __tablename__ = "room_memberships"

    room_id = Column(Uuid, ForeignKey("rooms.id"), primary_key=True)
    user_id = Column(String(128), primary_key=True)
    role = Column(Enum(EnumMemberRole, values_callable=lambda e: [m.value for m in e]), nullable=False, default=EnumMemberRole.MEMBER)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    # Messages with seq <= this value predate the join and stay hidden
    visible_from_seq = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_room_memberships_user_joined", "user_id", "joined_at"),
    )

    @property
    def can_moderate(self) -> bool:
        return self.role in (EnumMemberRole.OWNER, EnumMemberRole.MODERATOR)
