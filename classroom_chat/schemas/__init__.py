from .room import (
    RoomSettings, RoomCreate, RoomSettingsUpdate, RoomResponse, MembershipResponse,
    UserRoomResponse, TransferOwnershipRequest, MemberRoleUpdate, RoomMemberResponse, LeaveRoomResponse
)
from .message import (
    TextBody, ImageBody, FileBody, SystemBody, MessageBody, MessageCreate, MessageEdit,
    MessageResponse, MessagePage
)
from .presence import EnumPresenceStatus, Presence, PresencePing
from .events import NotificationEvent, ChangeEvent
from .pagination import Pagination, PaginatedResponse
from .response import BaseResponse

__all__ = [
    "RoomSettings", "RoomCreate", "RoomSettingsUpdate", "RoomResponse", "MembershipResponse",
    "UserRoomResponse", "TransferOwnershipRequest", "MemberRoleUpdate", "RoomMemberResponse", "LeaveRoomResponse",
    "TextBody", "ImageBody", "FileBody", "SystemBody", "MessageBody", "MessageCreate",
    "MessageEdit", "MessageResponse", "MessagePage",
    "EnumPresenceStatus", "Presence", "PresencePing",
    "NotificationEvent", "ChangeEvent",
    "Pagination", "PaginatedResponse",
    "BaseResponse",
]
