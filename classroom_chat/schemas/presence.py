from pydantic import BaseModel
from typing import Literal, Optional
from uuid import UUID
from datetime import datetime
import enum


class EnumPresenceStatus(str, enum.Enum):
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"


class Presence(BaseModel):
    user_id: str
    status: EnumPresenceStatus = EnumPresenceStatus.OFFLINE
    current_room_id: Optional[UUID] = None
    last_activity: Optional[datetime] = None


class PresencePing(BaseModel):
    status: Literal["online", "away"] = "online"
    room_id: Optional[UUID] = None
