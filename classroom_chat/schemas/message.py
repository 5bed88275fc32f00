from pydantic import BaseModel, Field, TypeAdapter
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID
from datetime import datetime

from classroom_chat.models.message import EnumMessageType


class TextBody(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageBody(BaseModel):
    type: Literal["image"] = "image"
    url: str
    caption: Optional[str] = None
    width: Optional[int] = Field(None, ge=1)
    height: Optional[int] = Field(None, ge=1)


class FileBody(BaseModel):
    type: Literal["file"] = "file"
    url: str
    file_name: str
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = Field(None, ge=0)


class SystemBody(BaseModel):
    type: Literal["system"] = "system"
    text: str
    event: Optional[str] = None


MessageBody = Annotated[Union[TextBody, ImageBody, FileBody, SystemBody], Field(discriminator="type")]

message_body_adapter = TypeAdapter(MessageBody)


def body_type(body) -> EnumMessageType:
    if isinstance(body, TextBody):
        return EnumMessageType.TEXT
    if isinstance(body, ImageBody):
        return EnumMessageType.IMAGE
    if isinstance(body, FileBody):
        return EnumMessageType.FILE
    if isinstance(body, SystemBody):
        return EnumMessageType.SYSTEM
    raise TypeError(f"Unhandled message body {type(body).__name__}")


def body_text(body) -> str:
    """Plain text projection used for length checks and the search index."""
    if isinstance(body, (TextBody, SystemBody)):
        return body.text
    if isinstance(body, ImageBody):
        return body.caption or ""
    if isinstance(body, FileBody):
        return body.file_name
    raise TypeError(f"Unhandled message body {type(body).__name__}")


class MessageCreate(BaseModel):
    body: MessageBody
    reply_to_id: Optional[UUID] = None


class MessageEdit(BaseModel):
    body: MessageBody


class MessageResponse(BaseModel):
    id: UUID
    room_id: UUID
    seq: int
    author_id: str
    message_type: EnumMessageType
    body: Optional[MessageBody] = None
    reply_to_id: Optional[UUID] = None
    created_at: datetime
    edited_at: Optional[datetime] = None
    is_deleted: bool = False

    @classmethod
    def from_message(cls, message) -> "MessageResponse":
        # Deleted messages keep their slot but not their content
        body = None if message.is_deleted else message_body_adapter.validate_python(message.payload)
        return cls(
            id=message.id,
            room_id=message.room_id,
            seq=message.seq,
            author_id=message.author_id,
            message_type=message.message_type,
            body=body,
            reply_to_id=message.reply_to_id,
            created_at=message.created_at,
            edited_at=message.edited_at,
            is_deleted=message.is_deleted,
        )


class MessagePage(BaseModel):
    items: List[MessageResponse]
    next_after_seq: Optional[int] = None
    prev_before_seq: Optional[int] = None
    has_more: bool = False
