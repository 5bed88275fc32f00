from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from classroom_chat.dependencies import get_change_feed_indexer, get_presence_tracker, get_room_service
from classroom_chat.middlewares.auth_middleware import require_admin
from classroom_chat.schemas.response import BaseResponse
from classroom_chat.services.change_feed import ChangeFeedIndexer
from classroom_chat.services.presence_service import PresenceTracker
from classroom_chat.services.room_service import RoomService
from classroom_chat.utils.jwt import Identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/search/rebuild", response_model=BaseResponse[Dict[str, Any]])
async def rebuild_search_index(
    room_id: Optional[UUID] = Query(None),
    identity: Identity = Depends(require_admin),
    indexer: ChangeFeedIndexer = Depends(get_change_feed_indexer)
):
    logger.info(f"Search index rebuild requested by {identity.user_id} for {room_id or 'all rooms'}")
    indexed = await indexer.rebuild(room_id)
    return BaseResponse(success=True, message="Search index rebuilt", data={"indexed": indexed})


@router.post("/search/drain", response_model=BaseResponse[Dict[str, Any]])
async def drain_change_feed(
    batch_size: int = Query(100, ge=1, le=1000),
    identity: Identity = Depends(require_admin),
    indexer: ChangeFeedIndexer = Depends(get_change_feed_indexer)
):
    processed = await indexer.process_pending(batch_size)
    return BaseResponse(success=True, message="Change feed drained", data={"processed": processed})


@router.get("/rooms/ownerless", response_model=BaseResponse[List[UUID]])
async def list_ownerless_rooms(
    identity: Identity = Depends(require_admin),
    service: RoomService = Depends(get_room_service)
):
    room_ids = await service.find_ownerless_rooms()
    return BaseResponse(success=True, message=f"{len(room_ids)} ownerless rooms", data=room_ids)


@router.post("/rooms/{room_id}/repair", response_model=BaseResponse[Dict[str, Any]])
async def repair_room(
    room_id: UUID,
    identity: Identity = Depends(require_admin),
    service: RoomService = Depends(get_room_service)
):
    promoted = await service.repair_room_ownership(room_id)
    return BaseResponse(
        success=True,
        message="Room repaired" if promoted else "Room already has an owner",
        data={"room_id": str(room_id), "owner_id": promoted.user_id if promoted else None}
    )


@router.post("/messages/purge", response_model=BaseResponse[Dict[str, Any]])
async def purge_expired_messages(
    identity: Identity = Depends(require_admin),
    service: RoomService = Depends(get_room_service)
):
    purged = await service.purge_expired_messages()
    return BaseResponse(success=True, message="Expired messages purged", data={"purged": purged})


@router.post("/presence/sweep", response_model=BaseResponse[List[str]])
async def sweep_presence(
    identity: Identity = Depends(require_admin),
    presence: PresenceTracker = Depends(get_presence_tracker)
):
    swept = await presence.sweep()
    return BaseResponse(success=True, message=f"{len(swept)} users marked offline", data=swept)
