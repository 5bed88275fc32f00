from sqlalchemy import Boolean, Column, String, Text, DateTime, Integer, JSON, Enum, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
import uuid
import enum
from classroom_chat.database import Base
from classroom_chat.models.room import utcnow


class EnumMessageType(enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class Message(Base):
    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False)
    # Per-room position, assigned under the room row lock
    seq = Column(Integer, nullable=False)
    author_id = Column(String(128), nullable=False, index=True)
    message_type = Column(Enum(EnumMessageType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    content = Column(Text, nullable=False, default="")
    payload = Column(JSON, nullable=False)
    reply_to_id = Column(Uuid, ForeignKey("messages.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String(128), nullable=True)

    __table_args__ = (
        UniqueConstraint("room_id", "seq", name="uq_messages_room_seq"),
    )

    room = relationship("Room", back_populates="messages", lazy="noload")
