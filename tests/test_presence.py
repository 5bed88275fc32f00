import json
import uuid
from datetime import datetime, timedelta, timezone

from classroom_chat.schemas.presence import EnumPresenceStatus


def _presence_events(fake_redis):
    return [
        (channel, json.loads(raw)["data"])
        for channel, raw in fake_redis.published
        if json.loads(raw)["event"] == "presence.changed"
    ]


async def test_unknown_user_is_offline(presence_tracker):
    record = await presence_tracker.get("ghost")
    assert record.status == EnumPresenceStatus.OFFLINE
    assert record.last_activity is None


async def test_ping_marks_online_in_room(presence_tracker, fake_redis):
    room_id = uuid.uuid4()

    record = await presence_tracker.ping("alice", room_id=room_id)

    assert record.status == EnumPresenceStatus.ONLINE
    assert record.current_room_id == room_id
    assert (await presence_tracker.get("alice")).current_room_id == room_id
    assert fake_redis.ttls["presence:user:alice"] == 600
    events = _presence_events(fake_redis)
    assert events == [(f"chat:room:{room_id}", record.model_dump(mode="json"))]


async def test_repeated_pings_only_announce_changes(presence_tracker, fake_redis):
    first_room, second_room = uuid.uuid4(), uuid.uuid4()

    await presence_tracker.ping("alice", room_id=first_room)
    await presence_tracker.ping("alice", room_id=first_room)
    assert len(_presence_events(fake_redis)) == 1

    await presence_tracker.ping("alice", room_id=second_room)
    channels = [channel for channel, _ in _presence_events(fake_redis)[1:]]
    # Both the room left and the room entered hear about the move
    assert sorted(channels) == sorted([f"chat:room:{first_room}", f"chat:room:{second_room}"])

    await presence_tracker.ping("alice", room_id=second_room, status=EnumPresenceStatus.AWAY)
    assert (await presence_tracker.get("alice")).status == EnumPresenceStatus.AWAY


async def test_disconnect_goes_offline_once(presence_tracker, fake_redis):
    room_id = uuid.uuid4()
    await presence_tracker.ping("alice", room_id=room_id)

    record = await presence_tracker.disconnect("alice")
    await presence_tracker.disconnect("alice")

    assert record.status == EnumPresenceStatus.OFFLINE
    assert record.current_room_id is None
    assert fake_redis.ttls["presence:user:alice"] == 3600
    assert len(_presence_events(fake_redis)) == 2


async def test_sweep_times_out_idle_users(presence_tracker, fake_redis):
    now = datetime.now(timezone.utc)
    room_id = uuid.uuid4()
    await presence_tracker.ping("idle", room_id=room_id, now=now - timedelta(seconds=301))
    await presence_tracker.ping("active", room_id=room_id, now=now - timedelta(seconds=10))

    swept = await presence_tracker.sweep(now=now)

    assert swept == ["idle"]
    idle = await presence_tracker.get("idle")
    assert idle.status == EnumPresenceStatus.OFFLINE
    assert idle.last_activity == now - timedelta(seconds=301)
    assert (await presence_tracker.get("active")).status == EnumPresenceStatus.ONLINE
    assert await presence_tracker.sweep(now=now) == []


async def test_get_many(presence_tracker):
    await presence_tracker.ping("alice")
    states = await presence_tracker.get_many(["alice", "bob"])
    assert states["alice"].status == EnumPresenceStatus.ONLINE
    assert states["bob"].status == EnumPresenceStatus.OFFLINE
