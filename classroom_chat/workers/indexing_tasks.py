import asyncio
from typing import List, Optional
from uuid import UUID

from classroom_chat.celery_app import celery_app
from classroom_chat.config import ChatServiceConfig, settings
from classroom_chat.database import SessionLocal, engine
from classroom_chat.exceptions import TransientStoreError
from classroom_chat.redis_client import close_redis, get_redis
from classroom_chat.services.change_feed import ChangeFeedIndexer
from classroom_chat.services.index_dispatcher import NullIndexDispatcher
from classroom_chat.services.notification_service import EventPublisher
from classroom_chat.services.presence_service import PresenceTracker
from classroom_chat.services.room_service import RoomService
import logging

logger = logging.getLogger(__name__)

MAX_DRAIN_BATCHES = 50


def _run(coro):
    """Run one task body on a fresh loop; pooled connections must not outlive it."""

    async def _wrapped():
        try:
            return await coro
        finally:
            await close_redis()
            await engine.dispose()

    return asyncio.run(_wrapped())


def _indexer(db) -> ChangeFeedIndexer:
    return ChangeFeedIndexer(
        db,
        max_event_attempts=settings.index_max_event_attempts,
        retry_attempts=settings.store_retry_attempts,
        retry_base_delay=settings.store_retry_base_delay,
    )


async def _room_service(db) -> RoomService:
    publisher = EventPublisher(await get_redis(), channel_prefix=settings.events_channel_prefix)
    return RoomService(
        db,
        ChatServiceConfig.from_settings(settings),
        publisher=publisher,
        index_dispatcher=NullIndexDispatcher(),
    )


@celery_app.task(
    bind=True,
    autoretry_for=(TransientStoreError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_jitter=True,
    max_retries=5
)
def index_message_events(self, event_ids: List[int]):
    logger.info(f"Indexing change events {event_ids}")
    return _run(_index_events(event_ids))


async def _index_events(event_ids: List[int]) -> int:
    async with SessionLocal() as db:
        return await _indexer(db).process_events(event_ids)


@celery_app.task
def drain_change_feed(batch_size: Optional[int] = None):
    """Pick up change events whose dispatch was lost or that failed transiently."""
    return _run(_drain(batch_size or settings.index_batch_size))


async def _drain(batch_size: int) -> int:
    total = 0
    async with SessionLocal() as db:
        indexer = _indexer(db)
        for _ in range(MAX_DRAIN_BATCHES):
            try:
                processed = await indexer.process_pending(batch_size)
            except TransientStoreError as e:
                logger.warning(f"Change feed drain stopped after {total} events: {e.detail}")
                break
            total += processed
            if processed < batch_size:
                break
    if total:
        logger.info(f"Drained {total} change events")
    return total


@celery_app.task
def rebuild_search_index(room_id: Optional[str] = None):
    logger.info(f"Rebuilding search index for {room_id or 'all rooms'}")
    return _run(_rebuild(UUID(room_id) if room_id else None))


async def _rebuild(room_id: Optional[UUID]) -> int:
    async with SessionLocal() as db:
        return await _indexer(db).rebuild(room_id, batch_size=settings.index_batch_size)


@celery_app.task
def sweep_presence():
    return _run(_sweep())


async def _sweep() -> List[str]:
    redis = await get_redis()
    tracker = PresenceTracker(
        redis,
        publisher=EventPublisher(redis, channel_prefix=settings.events_channel_prefix),
        timeout_seconds=settings.presence_timeout_seconds,
        offline_ttl_seconds=settings.presence_offline_ttl_seconds,
    )
    return await tracker.sweep()


@celery_app.task
def purge_expired_messages():
    return _run(_purge())


async def _purge() -> int:
    async with SessionLocal() as db:
        service = await _room_service(db)
        return await service.purge_expired_messages()


@celery_app.task
def repair_room_ownership():
    return _run(_repair())


async def _repair() -> List[str]:
    repaired = []
    async with SessionLocal() as db:
        service = await _room_service(db)
        for room_id in await service.find_ownerless_rooms():
            owner = await service.repair_room_ownership(room_id)
            if owner is not None:
                repaired.append(str(room_id))
    if repaired:
        logger.warning(f"Repaired ownership of {len(repaired)} rooms")
    return repaired
