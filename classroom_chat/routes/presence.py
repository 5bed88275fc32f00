from fastapi import APIRouter, Depends

from classroom_chat.dependencies import get_presence_tracker, get_room_service
from classroom_chat.middlewares.auth_middleware import get_current_identity
from classroom_chat.schemas.presence import EnumPresenceStatus, Presence, PresencePing
from classroom_chat.schemas.response import BaseResponse
from classroom_chat.services.presence_service import PresenceTracker
from classroom_chat.services.room_service import RoomService
from classroom_chat.utils.jwt import Identity

router = APIRouter(prefix="/presence", tags=["presence"])


@router.post("/ping", response_model=BaseResponse[Presence])
async def ping(
    data: PresencePing,
    identity: Identity = Depends(get_current_identity),
    presence: PresenceTracker = Depends(get_presence_tracker),
    service: RoomService = Depends(get_room_service)
):
    # A user can only be "in" rooms they belong to
    if data.room_id is not None:
        await service.require_membership(identity.user_id, data.room_id)
    record = await presence.ping(identity.user_id, room_id=data.room_id, status=EnumPresenceStatus(data.status))
    return BaseResponse(success=True, message="Presence updated", data=record)


@router.post("/disconnect", response_model=BaseResponse[Presence])
async def disconnect(
    identity: Identity = Depends(get_current_identity),
    presence: PresenceTracker = Depends(get_presence_tracker)
):
    record = await presence.disconnect(identity.user_id)
    return BaseResponse(success=True, message="Presence cleared", data=record)


@router.get("/{user_id}", response_model=BaseResponse[Presence])
async def get_presence(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    presence: PresenceTracker = Depends(get_presence_tracker)
):
    record = await presence.get(user_id)
    return BaseResponse(success=True, message="Presence fetched", data=record)
