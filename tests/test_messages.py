import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

from classroom_chat.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from classroom_chat.models.membership import EnumMemberRole
from classroom_chat.models.message import Message, EnumMessageType
from classroom_chat.models.message_event import MessageEvent, EnumMessageEventType
from classroom_chat.schemas.message import FileBody, ImageBody, SystemBody, TextBody
from classroom_chat.schemas.room import RoomCreate


@pytest.fixture
async def course_room(room_service):
    room, _ = await room_service.create_room("alice", RoomCreate(name="CS101"))
    await room_service.join_room("bob", room.id)
    return room


async def test_send_message_assigns_increasing_positions(room_service, course_room, dispatcher, db_session):
    first = await room_service.send_message("alice", course_room.id, TextBody(text="hello"))
    second = await room_service.send_message("bob", course_room.id, TextBody(text="hi alice"))

    assert (first.seq, second.seq) == (1, 2)
    assert first.author_id == "alice" and first.room_id == course_room.id
    assert first.message_type == EnumMessageType.TEXT

    events = (await db_session.execute(select(MessageEvent).order_by(MessageEvent.id))).scalars().all()
    assert [(e.message_id, e.event_type) for e in events] == [
        (first.id, EnumMessageEventType.CREATED),
        (second.id, EnumMessageEventType.CREATED),
    ]
    assert dispatcher.dispatched == [e.id for e in events]


async def test_non_member_cannot_send(room_service, course_room):
    with pytest.raises(ForbiddenError):
        await room_service.send_message("dave", course_room.id, TextBody(text="let me in"))


async def test_send_to_unknown_room(room_service):
    with pytest.raises(NotFoundError):
        await room_service.send_message("alice", uuid.uuid4(), TextBody(text="anyone?"))


async def test_message_body_rules(room_service, course_room):
    with pytest.raises(ValidationError):
        await room_service.send_message("alice", course_room.id, TextBody(text="   "))
    with pytest.raises(ValidationError):
        await room_service.send_message("alice", course_room.id, TextBody(text="x" * 1001))
    with pytest.raises(ForbiddenError):
        await room_service.send_message("bob", course_room.id, SystemBody(text="Exam moved to Friday"))

    notice = await room_service.send_message("alice", course_room.id, SystemBody(text="Exam moved to Friday", event="schedule"))
    assert notice.message_type == EnumMessageType.SYSTEM

    image = await room_service.send_message("bob", course_room.id, ImageBody(url="https://cdn/x.png", caption="whiteboard"))
    assert image.message_type == EnumMessageType.IMAGE
    assert image.content == "whiteboard"


async def test_uploads_respect_room_settings(room_service, course_room):
    await room_service.update_room_settings("alice", course_room.id, {"allow_file_uploads": False})

    with pytest.raises(ForbiddenError):
        await room_service.send_message("bob", course_room.id, FileBody(url="https://cdn/notes.pdf", file_name="notes.pdf"))

    text = await room_service.send_message("bob", course_room.id, TextBody(text="fine, plain text"))
    assert text.seq == 1


async def test_reply_must_target_same_room(room_service, course_room):
    other, _ = await room_service.create_room("alice", RoomCreate(name="Other"))
    elsewhere = await room_service.send_message("alice", other.id, TextBody(text="elsewhere"))
    parent = await room_service.send_message("alice", course_room.id, TextBody(text="question?"))

    reply = await room_service.send_message("bob", course_room.id, TextBody(text="answer"), reply_to_id=parent.id)
    assert reply.reply_to_id == parent.id

    with pytest.raises(NotFoundError):
        await room_service.send_message("bob", course_room.id, TextBody(text="wrong"), reply_to_id=elsewhere.id)


async def test_edit_message(room_service, course_room, dispatcher):
    message_id = (await room_service.send_message("bob", course_room.id, TextBody(text="helo"))).id

    with pytest.raises(ForbiddenError):
        await room_service.edit_message("alice", message_id, TextBody(text="hello"))
    with pytest.raises(ValidationError):
        await room_service.edit_message("bob", message_id, ImageBody(url="https://cdn/x.png"))

    edited = await room_service.edit_message("bob", message_id, TextBody(text="hello"))
    assert edited.content == "hello"
    assert edited.edited_at is not None
    assert edited.seq == 1
    assert len(dispatcher.dispatched) == 2


async def test_delete_is_moderated_and_idempotent(room_service, course_room, dispatcher):
    message_id = (await room_service.send_message("bob", course_room.id, TextBody(text="oops"))).id

    with pytest.raises(ForbiddenError):
        await room_service.delete_message("bob", message_id)

    deleted = await room_service.delete_message("alice", message_id)
    again = await room_service.delete_message("alice", message_id)

    assert deleted.is_deleted and again.is_deleted
    assert deleted.deleted_by == "alice"
    # Second delete records no new change event
    assert len(dispatcher.dispatched) == 2

    with pytest.raises(ConflictError):
        await room_service.edit_message("bob", message_id, TextBody(text="restored?"))
    with pytest.raises(NotFoundError):
        await room_service.delete_message("alice", uuid.uuid4())


async def test_moderators_can_delete(room_service, course_room):
    await room_service.join_room("carol", course_room.id)
    await room_service.set_member_role("alice", course_room.id, "carol", EnumMemberRole.MODERATOR)
    message = await room_service.send_message("bob", course_room.id, TextBody(text="spam"))

    deleted = await room_service.delete_message("carol", message.id)
    assert deleted.is_deleted


async def test_soft_deleted_messages_keep_their_position(room_service, course_room):
    for i in range(1, 6):
        await room_service.send_message("alice", course_room.id, TextBody(text=f"message {i}"))
    page = await room_service.list_messages("bob", course_room.id, after_seq=0, limit=10)
    target = page.items[2]

    await room_service.delete_message("alice", target.id)
    page = await room_service.list_messages("bob", course_room.id, after_seq=0, limit=10)

    assert [m.seq for m in page.items] == [1, 2, 3, 4, 5]
    assert page.items[2].is_deleted is True
    assert page.items[2].body is None
    assert page.items[3].body.text == "message 4"


async def test_forward_pages_have_no_gaps_with_writes_between(room_service, course_room):
    for i in range(5):
        await room_service.send_message("alice", course_room.id, TextBody(text=f"m{i}"))

    seen = []
    after_seq = 0
    late_writes = iter(["late 1", "late 2"])
    while True:
        page = await room_service.list_messages("bob", course_room.id, after_seq=after_seq, limit=2)
        seen.extend(m.seq for m in page.items)
        after_seq = page.next_after_seq
        # Writes land between page fetches
        text = next(late_writes, None)
        if text:
            await room_service.send_message("bob", course_room.id, TextBody(text=text))
        if not page.has_more:
            break

    assert seen == list(range(1, 8))


async def test_backward_pages_from_newest(room_service, course_room):
    for i in range(7):
        await room_service.send_message("alice", course_room.id, TextBody(text=f"m{i}"))

    newest = await room_service.list_messages("bob", course_room.id, limit=3)
    assert [m.seq for m in newest.items] == [5, 6, 7]
    assert newest.has_more is True

    older = await room_service.list_messages("bob", course_room.id, before_seq=newest.prev_before_seq, limit=3)
    assert [m.seq for m in older.items] == [2, 3, 4]

    oldest = await room_service.list_messages("bob", course_room.id, before_seq=older.prev_before_seq, limit=3)
    assert [m.seq for m in oldest.items] == [1]
    assert oldest.has_more is False

    with pytest.raises(ValidationError):
        await room_service.list_messages("bob", course_room.id, after_seq=1, before_seq=5)
    with pytest.raises(ForbiddenError):
        await room_service.list_messages("dave", course_room.id)


async def test_private_history_hidden_from_late_joiners(room_service):
    room, _ = await room_service.create_room("alice", RoomCreate(name="Staff", settings={"history_public": False}))
    await room_service.send_message("alice", room.id, TextBody(text="before carol"))
    membership = await room_service.join_room("carol", room.id)
    await room_service.send_message("alice", room.id, TextBody(text="after carol"))

    assert membership.visible_from_seq == 1
    page = await room_service.list_messages("carol", room.id, after_seq=0)
    assert [m.body.text for m in page.items] == ["after carol"]
    page = await room_service.list_messages("alice", room.id)
    assert len(page.items) == 2


async def test_concurrent_sends_get_unique_positions(room_service, course_room, make_service):
    results = await asyncio.gather(
        *(make_service().send_message("alice" if i % 2 else "bob", course_room.id, TextBody(text=f"race {i}")) for i in range(6))
    )

    assert sorted(m.seq for m in results) == [1, 2, 3, 4, 5, 6]
    page = await room_service.list_messages("alice", course_room.id, after_seq=0, limit=10)
    assert [m.seq for m in page.items] == [1, 2, 3, 4, 5, 6]


async def test_purge_expired_messages(room_service, course_room, db_session):
    old = await room_service.send_message("alice", course_room.id, TextBody(text="ancient"))
    reply = await room_service.send_message("bob", course_room.id, TextBody(text="re: ancient"), reply_to_id=old.id)
    await db_session.execute(
        update(Message)
        .where(Message.id == old.id)
        .values(created_at=datetime.now(timezone.utc) - timedelta(days=91))
        .execution_options(synchronize_session=False)
    )
    await db_session.commit()

    purged = await room_service.purge_expired_messages()

    assert purged == 1
    assert await room_service.messages.get(old.id) is None
    survivor = await room_service.messages.get(reply.id)
    assert survivor.reply_to_id is None
    events = (await db_session.execute(
        select(MessageEvent).where(MessageEvent.event_type == EnumMessageEventType.PURGED)
    )).scalars().all()
    assert [e.message_id for e in events] == [old.id]
