from sqlalchemy import Boolean, Column, String, Text, DateTime, Integer, Index, Uuid
from classroom_chat.database import Base, FeedId


class SearchDocument(Base):
    """Denormalized, rebuildable projection of a message used for full-text lookup."""
    __tablename__ = "search_documents"

    message_id = Column(Uuid, primary_key=True)
    room_id = Column(Uuid, nullable=False)
    author_id = Column(String(128), nullable=False)
    message_type = Column(String(16), nullable=False)
    body = Column(Text, nullable=False, default="")
    body_normalized = Column(Text, nullable=False, default="")
    seq = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    # Tombstone keeps re-delivered events for deleted messages from resurrecting them
    is_deleted = Column(Boolean, nullable=False, default=False)
    last_event_id = Column(FeedId, nullable=False, default=0)

    __table_args__ = (
        Index("ix_search_documents_room_seq", "room_id", "seq"),
    )
