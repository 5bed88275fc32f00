from fastapi import APIRouter, Depends, Query, status
from uuid import UUID
import logging

from classroom_chat.dependencies import get_presence_tracker, get_room_service
from classroom_chat.middlewares.auth_middleware import get_current_identity
from classroom_chat.schemas.pagination import Pagination, PaginatedResponse
from classroom_chat.schemas.response import BaseResponse
from classroom_chat.schemas.room import (
    LeaveRoomResponse, MemberRoleUpdate, MembershipResponse, RoomCreate, RoomMemberResponse,
    RoomResponse, RoomSettingsUpdate, TransferOwnershipRequest, UserRoomResponse
)
from classroom_chat.services.presence_service import PresenceTracker
from classroom_chat.services.room_service import RoomService
from classroom_chat.utils.jwt import Identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rooms", tags=["rooms"])


def _user_room(room, membership) -> UserRoomResponse:
    return UserRoomResponse(
        room=RoomResponse.model_validate(room),
        role=membership.role,
        joined_at=membership.joined_at
    )


@router.post(
    "",
    response_model=BaseResponse[UserRoomResponse],
    status_code=status.HTTP_201_CREATED
)
async def create_room(
    data: RoomCreate,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    room, membership = await service.create_room(identity.user_id, data)
    return BaseResponse(success=True, message="Room created", data=_user_room(room, membership))


@router.get(
    "",
    response_model=BaseResponse[PaginatedResponse[UserRoomResponse]]
)
async def list_my_rooms(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    pagination = Pagination(page=page, size=size)
    total, rooms = await service.get_user_rooms(identity.user_id, pagination)
    return BaseResponse(
        success=True,
        message="Rooms fetched",
        data=PaginatedResponse[UserRoomResponse](
            total=total,
            page=page,
            size=size,
            items=[_user_room(room, membership) for room, membership in rooms]
        )
    )


@router.get(
    "/{room_id}",
    response_model=BaseResponse[UserRoomResponse]
)
async def get_room(
    room_id: UUID,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    room, membership = await service.get_room(identity.user_id, room_id)
    return BaseResponse(success=True, message="Room fetched", data=_user_room(room, membership))


@router.patch(
    "/{room_id}/settings",
    response_model=BaseResponse[RoomResponse]
)
async def update_room_settings(
    room_id: UUID,
    data: RoomSettingsUpdate,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    room = await service.update_room_settings(identity.user_id, room_id, data.settings)
    return BaseResponse(success=True, message="Room settings updated", data=RoomResponse.model_validate(room))


@router.delete(
    "/{room_id}",
    response_model=BaseResponse[None]
)
async def disband_room(
    room_id: UUID,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    await service.disband_room(identity.user_id, room_id)
    return BaseResponse(success=True, message="Room disbanded")


@router.post(
    "/{room_id}/join",
    response_model=BaseResponse[MembershipResponse]
)
async def join_room(
    room_id: UUID,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    membership = await service.join_room(identity.user_id, room_id)
    return BaseResponse(success=True, message="Joined room", data=MembershipResponse.model_validate(membership))


@router.post(
    "/{room_id}/leave",
    response_model=BaseResponse[LeaveRoomResponse]
)
async def leave_room(
    room_id: UUID,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    disbanded = await service.leave_room(identity.user_id, room_id)
    return BaseResponse(
        success=True,
        message="Left room",
        data=LeaveRoomResponse(room_id=room_id, disbanded=disbanded)
    )


@router.get(
    "/{room_id}/members",
    response_model=BaseResponse[PaginatedResponse[RoomMemberResponse]]
)
async def list_room_members(
    room_id: UUID,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    include_presence: bool = Query(False),
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service),
    presence: PresenceTracker = Depends(get_presence_tracker)
):
    pagination = Pagination(page=page, size=size)
    total, memberships = await service.get_room_members(room_id, pagination, actor_id=identity.user_id)
    states = await presence.get_many(m.user_id for m in memberships) if include_presence else {}
    items = [
        RoomMemberResponse(
            room_id=m.room_id,
            user_id=m.user_id,
            role=m.role,
            joined_at=m.joined_at,
            presence=states.get(m.user_id)
        )
        for m in memberships
    ]
    return BaseResponse(
        success=True,
        message="Members fetched",
        data=PaginatedResponse[RoomMemberResponse](total=total, page=page, size=size, items=items)
    )


@router.post(
    "/{room_id}/transfer-ownership",
    response_model=BaseResponse[MembershipResponse]
)
async def transfer_ownership(
    room_id: UUID,
    data: TransferOwnershipRequest,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    membership = await service.transfer_ownership(identity.user_id, room_id, data.new_owner_id)
    return BaseResponse(success=True, message="Ownership transferred", data=MembershipResponse.model_validate(membership))


@router.put(
    "/{room_id}/members/{user_id}/role",
    response_model=BaseResponse[MembershipResponse]
)
async def set_member_role(
    room_id: UUID,
    user_id: str,
    data: MemberRoleUpdate,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    membership = await service.set_member_role(identity.user_id, room_id, user_id, data.role)
    return BaseResponse(success=True, message="Role updated", data=MembershipResponse.model_validate(membership))


@router.delete(
    "/{room_id}/members/{user_id}",
    response_model=BaseResponse[None]
)
async def remove_member(
    room_id: UUID,
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    service: RoomService = Depends(get_room_service)
):
    await service.remove_member(identity.user_id, room_id, user_id)
    return BaseResponse(success=True, message="Member removed")
