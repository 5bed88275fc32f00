from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_chat.config import ChatServiceConfig, Settings, get_settings
from classroom_chat.database import get_db
from classroom_chat.redis_client import get_redis
from classroom_chat.services.change_feed import ChangeFeedIndexer
from classroom_chat.services.index_dispatcher import CeleryIndexDispatcher, IndexDispatcher
from classroom_chat.services.notification_service import EventPublisher
from classroom_chat.services.presence_service import PresenceTracker
from classroom_chat.services.room_service import RoomService


def get_service_config(app_settings: Settings = Depends(get_settings)) -> ChatServiceConfig:
    return ChatServiceConfig.from_settings(app_settings)


def get_index_dispatcher() -> IndexDispatcher:
    return CeleryIndexDispatcher()


async def get_event_publisher(app_settings: Settings = Depends(get_settings)) -> EventPublisher:
    return EventPublisher(await get_redis(), channel_prefix=app_settings.events_channel_prefix)


async def get_presence_tracker(
    publisher: EventPublisher = Depends(get_event_publisher),
    app_settings: Settings = Depends(get_settings)
) -> PresenceTracker:
    return PresenceTracker(
        publisher.redis,
        publisher=publisher,
        timeout_seconds=app_settings.presence_timeout_seconds,
        offline_ttl_seconds=app_settings.presence_offline_ttl_seconds,
    )


async def get_room_service(
    db: AsyncSession = Depends(get_db),
    config: ChatServiceConfig = Depends(get_service_config),
    publisher: EventPublisher = Depends(get_event_publisher),
    index_dispatcher: IndexDispatcher = Depends(get_index_dispatcher)
) -> RoomService:
    return RoomService(db, config, publisher=publisher, index_dispatcher=index_dispatcher)


async def get_change_feed_indexer(
    db: AsyncSession = Depends(get_db),
    config: ChatServiceConfig = Depends(get_service_config)
) -> ChangeFeedIndexer:
    return ChangeFeedIndexer(
        db,
        max_event_attempts=config.index_max_event_attempts,
        retry_attempts=config.store_retry_attempts,
        retry_base_delay=config.store_retry_base_delay,
    )
