from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from uuid import UUID
import logging

from classroom_chat.dependencies import get_room_service
from classroom_chat.middlewares.auth_middleware import get_current_identity
from classroom_chat.models.message import EnumMessageType
from classroom_chat.schemas.message import MessageCreate, MessageEdit, MessagePage, MessageResponse
from classroom_chat.schemas.pagination import Pagination, PaginatedResponse
from classroom_chat.schemas.response import BaseResponse
from classroom_chat.services.room_service import RoomService
from classroom_chat.utils.jwt import Identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["messages"])


@router.post(
    "/rooms/{room_id}/messages",
    response_model=BaseResponse[MessageResponse],
    status_code=status.HTTP_201_CREATED
)
async def send_message(
    room_id: UUID,
    data: MessageCreate,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    message = await service.send_message(identity.user_id, room_id, data.body, reply_to_id=data.reply_to_id)
    return BaseResponse(success=True, message="Message sent", data=MessageResponse.from_message(message))


@router.get(
    "/rooms/{room_id}/messages",
    response_model=BaseResponse[MessagePage]
)
async def list_messages(
    room_id: UUID,
    after_seq: Optional[int] = Query(None, ge=0),
    before_seq: Optional[int] = Query(None, ge=1),
    limit: int = Query(50, ge=1, le=100),
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    page = await service.list_messages(identity.user_id, room_id, after_seq=after_seq, before_seq=before_seq, limit=limit)
    return BaseResponse(success=True, message="Messages fetched", data=page)


@router.get(
    "/rooms/{room_id}/messages/search",
    response_model=BaseResponse[PaginatedResponse[MessageResponse]]
)
async def search_messages(
    room_id: UUID,
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    author_id: Optional[str] = Query(None),
    message_type: Optional[EnumMessageType] = Query(None),
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    total, messages = await service.search_messages(
        identity.user_id,
        room_id,
        q,
        Pagination(page=page, size=size),
        author_id=author_id,
        message_type=message_type
    )
    return BaseResponse(
        success=True,
        message="Search results",
        data=PaginatedResponse[MessageResponse](
            total=total,
            page=page,
            size=size,
            items=[MessageResponse.from_message(m) for m in messages]
        )
    )


@router.patch(
    "/messages/{message_id}",
    response_model=BaseResponse[MessageResponse]
)
async def edit_message(
    message_id: UUID,
    data: MessageEdit,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    message = await service.edit_message(identity.user_id, message_id, data.body)
    return BaseResponse(success=True, message="Message edited", data=MessageResponse.from_message(message))


@router.delete(
    "/messages/{message_id}",
    response_model=BaseResponse[MessageResponse]
)
async def delete_message(
    message_id: UUID,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    message = await service.delete_message(identity.user_id, message_id)
    return BaseResponse(success=True, message="Message deleted", data=MessageResponse.from_message(message))
