from sqlalchemy import Column, Integer, String, DateTime, Enum, Index, Uuid
import enum
from classroom_chat.database import Base, FeedId
from classroom_chat.models.room import utcnow


class EnumMessageEventType(enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    PURGED = "purged"


class MessageEvent(Base):
    """Change-feed outbox row, written in the same transaction as the message change."""
    __tablename__ = "message_events"

    id = Column(FeedId, primary_key=True, autoincrement=True)
    message_id = Column(Uuid, nullable=False, index=True)
    room_id = Column(Uuid, nullable=False)
    event_type = Column(Enum(EnumMessageEventType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_message_events_pending", "processed_at", "id"),
    )
