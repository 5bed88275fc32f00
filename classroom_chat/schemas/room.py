from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, Optional
from uuid import UUID
from datetime import datetime

from classroom_chat.models.room import EnumRoomType
from classroom_chat.models.membership import EnumMemberRole
from classroom_chat.schemas.presence import Presence


class RoomSettings(BaseModel):
    max_members: int = Field(100, ge=1)
    history_public: bool = True
    allow_file_uploads: bool = True
    message_retention_days: int = Field(90, ge=1, le=3650)

    model_config = ConfigDict(extra="forbid")


class RoomCreate(BaseModel):
    name: str
    description: Optional[str] = None
    room_type: EnumRoomType = EnumRoomType.GROUP
    # Validated against RoomSettings by the service so bounds errors share one path
    settings: Optional[Dict[str, Any]] = None


class RoomSettingsUpdate(BaseModel):
    settings: Dict[str, Any]


class RoomResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    room_type: EnumRoomType
    created_by: str
    settings: RoomSettings
    member_count: int
    is_disabled: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MembershipResponse(BaseModel):
    room_id: UUID
    user_id: str
    role: EnumMemberRole
    joined_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserRoomResponse(BaseModel):
    room: RoomResponse
    role: EnumMemberRole
    joined_at: datetime


class TransferOwnershipRequest(BaseModel):
    new_owner_id: str


class MemberRoleUpdate(BaseModel):
    role: EnumMemberRole


class RoomMemberResponse(MembershipResponse):
    presence: Optional[Presence] = None


class LeaveRoomResponse(BaseModel):
    room_id: UUID
    disbanded: bool
