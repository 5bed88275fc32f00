import asyncio
import uuid

import pytest
from httpx import AsyncClient


async def _create_room(client, headers, **payload):
    payload.setdefault("name", "CS101")
    resp = await client.post("/rooms", headers=headers, json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["room"]


@pytest.mark.asyncio
async def test_course_room_capacity_scenario(app_client: tuple[object, AsyncClient], auth_headers):
    app, client = app_client
    alice, bob, carol = auth_headers("alice"), auth_headers("bob"), auth_headers("carol")

    room = await _create_room(client, alice, room_type="course", settings={"max_members": 2})
    assert room["member_count"] == 1
    assert room["settings"]["max_members"] == 2

    resp_members = await client.get(f"/rooms/{room['id']}/members", headers=alice)
    members = resp_members.json()["data"]["items"]
    assert [(m["user_id"], m["role"]) for m in members] == [("alice", "owner")]

    resp_join = await client.post(f"/rooms/{room['id']}/join", headers=bob)
    assert resp_join.status_code == 200
    assert resp_join.json()["data"]["role"] == "member"

    resp_full = await client.post(f"/rooms/{room['id']}/join", headers=carol)
    assert resp_full.status_code == 409
    assert resp_full.json()["error"]["code"] == "CAP_001"

    resp_members = await client.get(f"/rooms/{room['id']}/members", headers=alice)
    assert resp_members.json()["data"]["total"] == 2


@pytest.mark.asyncio
async def test_messaging_scenario(app_client: tuple[object, AsyncClient], auth_headers, dispatcher):
    app, client = app_client
    alice, dave = auth_headers("alice"), auth_headers("dave")
    room = await _create_room(client, alice)

    resp_send = await client.post(
        f"/rooms/{room['id']}/messages", headers=alice, json={"body": {"type": "text", "text": "hello"}}
    )
    assert resp_send.status_code == 201
    message = resp_send.json()["data"]
    assert message["author_id"] == "alice"
    assert message["room_id"] == room["id"]
    assert message["seq"] == 1
    assert message["body"] == {"type": "text", "text": "hello"}
    assert len(dispatcher.dispatched) == 1

    resp_forbidden = await client.post(
        f"/rooms/{room['id']}/messages", headers=dave, json={"body": {"type": "text", "text": "hi"}}
    )
    assert resp_forbidden.status_code == 403
    assert resp_forbidden.json()["error"]["code"] == "AUTH_002"

    resp_list = await client.get(f"/rooms/{room['id']}/messages", headers=alice, params={"after_seq": 0})
    page = resp_list.json()["data"]
    assert [m["body"]["text"] for m in page["items"]] == ["hello"]
    assert page["has_more"] is False

    resp_edit = await client.patch(
        f"/messages/{message['id']}", headers=alice, json={"body": {"type": "text", "text": "hello, class"}}
    )
    assert resp_edit.status_code == 200
    assert resp_edit.json()["data"]["edited_at"] is not None

    resp_delete = await client.delete(f"/messages/{message['id']}", headers=alice)
    assert resp_delete.status_code == 200
    assert resp_delete.json()["data"]["is_deleted"] is True
    assert resp_delete.json()["data"]["body"] is None


@pytest.mark.asyncio
async def test_leave_scenario(app_client: tuple[object, AsyncClient], auth_headers):
    app, client = app_client
    alice, bob = auth_headers("alice"), auth_headers("bob")
    room = await _create_room(client, alice)
    await client.post(f"/rooms/{room['id']}/join", headers=bob)

    resp_blocked = await client.post(f"/rooms/{room['id']}/leave", headers=alice)
    assert resp_blocked.status_code == 409
    assert resp_blocked.json()["error"]["code"] == "CONF_001"

    resp_leave = await client.post(f"/rooms/{room['id']}/leave", headers=bob)
    assert resp_leave.status_code == 200
    assert resp_leave.json()["data"]["disbanded"] is False

    resp_room = await client.get(f"/rooms/{room['id']}", headers=alice)
    assert resp_room.json()["data"]["role"] == "owner"
    assert resp_room.json()["data"]["room"]["member_count"] == 1

    # The owner is now the last member: leaving disbands the room
    resp_last = await client.post(f"/rooms/{room['id']}/leave", headers=alice)
    assert resp_last.status_code == 200
    assert resp_last.json()["data"]["disbanded"] is True

    resp_gone = await client.get(f"/rooms/{room['id']}", headers=alice)
    assert resp_gone.status_code == 404
    assert resp_gone.json()["error"]["code"] == "NF_001"


@pytest.mark.asyncio
async def test_concurrent_join_scenario(app_client: tuple[object, AsyncClient], auth_headers):
    app, client = app_client
    alice, bob = auth_headers("alice"), auth_headers("bob")
    room = await _create_room(client, alice)

    responses = await asyncio.gather(
        client.post(f"/rooms/{room['id']}/join", headers=bob),
        client.post(f"/rooms/{room['id']}/join", headers=bob),
    )

    assert [r.status_code for r in responses] == [200, 200]
    resp_members = await client.get(f"/rooms/{room['id']}/members", headers=alice)
    users = [m["user_id"] for m in resp_members.json()["data"]["items"]]
    assert sorted(users) == ["alice", "bob"]

    resp_rooms = await client.get("/rooms", headers=bob)
    assert [item["room"]["id"] for item in resp_rooms.json()["data"]["items"]] == [room["id"]]


@pytest.mark.asyncio
async def test_search_after_drain(app_client: tuple[object, AsyncClient], auth_headers):
    app, client = app_client
    alice, admin = auth_headers("alice"), auth_headers("ops", groups=["admin"])
    room = await _create_room(client, alice)
    await client.post(
        f"/rooms/{room['id']}/messages", headers=alice, json={"body": {"type": "text", "text": "Midterm review on Monday"}}
    )

    resp_forbidden = await client.post("/admin/search/drain", headers=alice)
    assert resp_forbidden.status_code == 403

    resp_drain = await client.post("/admin/search/drain", headers=admin)
    assert resp_drain.json()["data"]["processed"] == 1

    resp_search = await client.get(f"/rooms/{room['id']}/messages/search", headers=alice, params={"q": "midterm"})
    results = resp_search.json()["data"]
    assert results["total"] == 1
    assert results["items"][0]["body"]["text"] == "Midterm review on Monday"

    resp_rebuild = await client.post("/admin/search/rebuild", headers=admin)
    assert resp_rebuild.json()["data"]["indexed"] == 1


@pytest.mark.asyncio
async def test_presence_endpoints(app_client: tuple[object, AsyncClient], auth_headers):
    app, client = app_client
    alice, bob = auth_headers("alice"), auth_headers("bob")
    room = await _create_room(client, alice)

    resp_outsider = await client.post("/presence/ping", headers=bob, json={"room_id": room["id"]})
    assert resp_outsider.status_code == 403

    resp_ping = await client.post("/presence/ping", headers=alice, json={"room_id": room["id"]})
    assert resp_ping.json()["data"]["status"] == "online"

    resp_members = await client.get(
        f"/rooms/{room['id']}/members", headers=alice, params={"include_presence": True}
    )
    assert resp_members.json()["data"]["items"][0]["presence"]["status"] == "online"

    resp_bob = await client.get("/presence/alice", headers=bob)
    assert resp_bob.json()["data"]["current_room_id"] == room["id"]

    resp_off = await client.post("/presence/disconnect", headers=alice)
    assert resp_off.json()["data"]["status"] == "offline"


@pytest.mark.asyncio
async def test_error_envelopes(app_client: tuple[object, AsyncClient], auth_headers):
    app, client = app_client
    alice = auth_headers("alice")

    resp_anon = await client.get("/rooms")
    assert resp_anon.status_code == 401
    assert resp_anon.json()["error"]["code"] == "AUTH_001"

    resp_bad_token = await client.get("/rooms", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp_bad_token.status_code == 401

    resp_missing = await client.post(f"/rooms/{uuid.uuid4()}/join", headers=alice)
    assert resp_missing.status_code == 404

    resp_invalid = await client.post("/rooms", headers=alice, json={"name": ""})
    assert resp_invalid.status_code == 422
    assert resp_invalid.json()["error"]["code"] == "VAL_001"

    resp_settings = await client.post("/rooms", headers=alice, json={"name": "Room", "settings": {"max_members": 0}})
    assert resp_settings.status_code == 422
    assert "max_members" in resp_settings.json()["error"]["details"]["field_errors"]

    resp_body = await client.post(
        f"/rooms/{uuid.uuid4()}/messages", headers=alice, json={"body": {"type": "video", "url": "x"}}
    )
    assert resp_body.status_code == 422
    assert resp_body.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_admin_room_repair(app_client: tuple[object, AsyncClient], auth_headers):
    app, client = app_client
    alice, admin = auth_headers("alice"), auth_headers("ops", groups=["admin"])
    await _create_room(client, alice)

    resp_ownerless = await client.get("/admin/rooms/ownerless", headers=admin)
    assert resp_ownerless.status_code == 200
    assert resp_ownerless.json()["data"] == []

    resp_sweep = await client.post("/admin/presence/sweep", headers=admin)
    assert resp_sweep.json()["data"] == []

    resp_purge = await client.post("/admin/messages/purge", headers=admin)
    assert resp_purge.json()["data"]["purged"] == 0


@pytest.mark.asyncio
async def test_root_and_health(app_client: tuple[object, AsyncClient]):
    app, client = app_client

    resp_root = await client.get("/")
    assert resp_root.json()["status"] == "running"

    resp_health = await client.get("/health")
    assert resp_health.status_code == 200
    report = resp_health.json()
    assert report["status"] == "healthy"
    assert set(report["checks"]) == {"database", "redis", "change_feed"}
