from sqlalchemy import Boolean, Column, String, DateTime, Integer, JSON, Enum, Uuid
from sqlalchemy.orm import relationship
import uuid
import enum
from classroom_chat.database import Base
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EnumRoomType(enum.Enum):
    DIRECT = "direct"
    GROUP = "group"
    COURSE = "course"
    STUDY_GROUP = "study_group"


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(String, nullable=True)
    room_type = Column(Enum(EnumRoomType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    created_by = Column(String(128), nullable=False, index=True)
    settings = Column(JSON, nullable=False, default=dict)
    # Denormalized from room_memberships; guarded by conditional updates
    member_count = Column(Integer, nullable=False, default=0)
    last_seq = Column(Integer, nullable=False, default=0)
    is_disabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    last_activity_at = Column(DateTime(timezone=True), default=utcnow)

    messages = relationship("Message", back_populates="room", lazy="noload")
