from .room import Room, EnumRoomType
from .membership import RoomMembership, EnumMemberRole
from .message import Message, EnumMessageType
from .message_event import MessageEvent, EnumMessageEventType
from .search_document import SearchDocument

__all__ = [
    "Room", "EnumRoomType",
    "RoomMembership", "EnumMemberRole",
    "Message", "EnumMessageType",
    "MessageEvent", "EnumMessageEventType",
    "SearchDocument",
]
