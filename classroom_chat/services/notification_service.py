import logging
from typing import Any, Dict, Optional
from uuid import UUID

from classroom_chat.schemas.events import NotificationEvent

logger = logging.getLogger(__name__)


class EventPublisher:
    """Publishes room state changes to the notification channel.

    Fan-out and delivery belong to the subscribers of the channel; a failed
    publish is logged and never fails the write that produced it.
    """

    def __init__(self, redis, channel_prefix: str = "chat"):
        self.redis = redis
        self.channel_prefix = channel_prefix

    def channel_for(self, room_id: Optional[UUID]) -> str:
        if room_id is None:
            return f"{self.channel_prefix}:global"
        return f"{self.channel_prefix}:room:{room_id}"

    async def publish(self, event: str, room_id: Optional[UUID] = None, data: Optional[Dict[str, Any]] = None) -> bool:
        envelope = NotificationEvent(event=event, room_id=room_id, data=data or {})
        try:
            await self.redis.publish(self.channel_for(room_id), envelope.model_dump_json())
            logger.debug(f"Published {event} for room {room_id}")
            return True
        except Exception as e:
            logger.warning(f"Failed to publish {event} for room {room_id}: {e}")
            return False
