from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from uuid import UUID
from datetime import datetime, timezone

from classroom_chat.models.message_event import EnumMessageEventType


class NotificationEvent(BaseModel):
    event: str
    room_id: Optional[UUID] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChangeEvent(BaseModel):
    """One change-feed record as consumed by the search indexer."""
    event_id: int
    message_id: UUID
    room_id: UUID
    event_type: EnumMessageEventType
