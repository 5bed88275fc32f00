import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from classroom_chat.schemas.presence import EnumPresenceStatus, Presence

logger = logging.getLogger("presence_service")


class PresenceTracker:
    """Ephemeral per-user online state kept in Redis.

    offline --ping--> online/away (current room R) --timeout--> offline.
    Records expire on their own; the sweep turns stale users offline and
    announces it. Presence says nothing about membership.
    """

    ACTIVE_SET = "presence:active"

    def __init__(
            self,
            redis,
            publisher=None,
            timeout_seconds: int = 300,
            offline_ttl_seconds: int = 86400
    ):
        self.redis = redis
        self.publisher = publisher
        self.timeout_seconds = timeout_seconds
        self.offline_ttl_seconds = offline_ttl_seconds

    @staticmethod
    def _key(user_id: str) -> str:
        return f"presence:user:{user_id}"

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _decode(user_id: str, raw: Optional[str]) -> Presence:
        if not raw:
            return Presence(user_id=user_id)
        return Presence.model_validate_json(raw)

    async def get(self, user_id: str) -> Presence:
        return self._decode(user_id, await self.redis.get(self._key(user_id)))

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, Presence]:
        ids = list(user_ids)
        if not ids:
            return {}
        raw_values = await self.redis.mget([self._key(user_id) for user_id in ids])
        return {user_id: self._decode(user_id, raw) for user_id, raw in zip(ids, raw_values)}

    async def ping(
            self,
            user_id: str,
            room_id: Optional[UUID] = None,
            status: EnumPresenceStatus = EnumPresenceStatus.ONLINE,
            now: Optional[datetime] = None
    ) -> Presence:
        if status == EnumPresenceStatus.OFFLINE:
            return await self.disconnect(user_id, now=now)
        now = now or self._now()
        previous = await self.get(user_id)
        record = Presence(user_id=user_id, status=status, current_room_id=room_id, last_activity=now)

        # Outlives the timeout so a late sweep still finds the last room
        await self.redis.set(self._key(user_id), record.model_dump_json(), ex=self.timeout_seconds * 2)
        await self.redis.zadd(self.ACTIVE_SET, {user_id: now.timestamp()})

        if previous.status != record.status or previous.current_room_id != record.current_room_id:
            await self._announce(record, previous.current_room_id)
        return record

    async def disconnect(self, user_id: str, now: Optional[datetime] = None) -> Presence:
        previous = await self.get(user_id)
        record = await self._store_offline(previous, now)
        if previous.status != EnumPresenceStatus.OFFLINE:
            await self._announce(record, previous.current_room_id)
        return record

    async def sweep(self, now: Optional[datetime] = None) -> List[str]:
        """Mark users offline whose last activity is older than the timeout."""
        now = now or self._now()
        cutoff = now.timestamp() - self.timeout_seconds
        stale = await self.redis.zrangebyscore(self.ACTIVE_SET, "-inf", cutoff)
        swept = []
        for user_id in stale:
            previous = await self.get(user_id)
            if previous.last_activity is not None and previous.last_activity.timestamp() > cutoff:
                continue
            await self.redis.zrem(self.ACTIVE_SET, user_id)
            if previous.status == EnumPresenceStatus.OFFLINE:
                continue
            record = await self._store_offline(previous, previous.last_activity)
            await self._announce(record, previous.current_room_id)
            swept.append(user_id)
        if swept:
            logger.info(f"Presence sweep marked {len(swept)} users offline")
        return swept

    async def _store_offline(self, previous: Presence, last_activity: Optional[datetime]) -> Presence:
        record = Presence(
            user_id=previous.user_id,
            status=EnumPresenceStatus.OFFLINE,
            current_room_id=None,
            last_activity=last_activity or previous.last_activity or self._now(),
        )
        await self.redis.set(self._key(record.user_id), record.model_dump_json(), ex=self.offline_ttl_seconds)
        await self.redis.zrem(self.ACTIVE_SET, record.user_id)
        return record

    async def _announce(self, record: Presence, previous_room_id: Optional[UUID]) -> None:
        if self.publisher is None:
            return
        data = record.model_dump(mode="json")
        rooms = {room_id for room_id in (previous_room_id, record.current_room_id) if room_id is not None}
        for room_id in rooms:
            await self.publisher.publish("presence.changed", room_id, data)
