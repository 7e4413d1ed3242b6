import asyncio
import json
from datetime import timedelta

import pytest
from roomchat.schemas import events
from roomchat.schemas.room import CreateRoomRequest
from roomchat.services.chat_service import ChatService
from roomchat.services.message_service import MessageService
from roomchat.services.room_service import RoomService
from roomchat.utils.datetime_utils import utc_now
from roomchat.utils.room_locks import RoomLockRegistry
from roomchat.utils.session_registry import SessionRegistry, SessionState
from roomchat.utils.websocket_manager import WebsocketManager


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def chat(async_session, registry):
    locks = RoomLockRegistry()
    room_service = RoomService(async_session, locks)
    return ChatService(
        db=async_session,
        room_service=room_service,
        message_service=MessageService(async_session),
        registry=registry,
        websocket_manager=WebsocketManager(registry),
        locks=locks,
    )


@pytest.fixture
def connect(chat, fake_socket):
    async def _connect(user):
        socket = fake_socket()
        connection_id = await chat.websocket_manager.connect(socket)
        chat.connect(connection_id, user.id, user.username)
        return connection_id, socket
    return _connect


def _frame(event_type, **fields):
    return json.dumps({"type": event_type, **fields})


async def _create(chat, user, **kwargs):
    return await chat.room_service.create_room(user.id, CreateRoomRequest(**kwargs))


@pytest.mark.asyncio
async def test_join_public_room_and_chat(chat, connect, test_user, other_user):
    room = await _create(chat, test_user, name="general")
    alice, alice_socket = await connect(test_user)
    bob, bob_socket = await connect(other_user)

    await chat.handle_event(alice, _frame("join-room", room_id=str(room.id)))
    await chat.handle_event(bob, _frame("join-room", room_id=str(room.id)))

    snapshot = bob_socket.events(events.ROOM_JOINED)[0]
    assert snapshot["room_id"] == str(room.id)
    assert snapshot["room"]["member_count"] == 2
    assert {m["username"] for m in snapshot["room"]["members"]} == {test_user.username, other_user.username}
    assert snapshot["messages"] == []
    assert alice_socket.events(events.USER_JOINED)[0]["username"] == other_user.username
    assert bob_socket.events(events.USER_JOINED) == []

    before = (await chat.room_service.get_room(room.id)).last_activity
    await chat.handle_event(bob, _frame("send-message", content="  hello there  "))

    for socket in (alice_socket, bob_socket):
        message = socket.events(events.NEW_MESSAGE)[0]
        assert message["content"] == "hello there"
        assert message["sender_username"] == other_user.username

    assert await chat.message_service.count(room.id) == 1
    assert (await chat.room_service.get_room(room.id)).last_activity >= before


@pytest.mark.asyncio
async def test_snapshot_carries_recent_history(chat, connect, test_user, other_user):
    room = await _create(chat, test_user, name="general")
    for i in range(3):
        await chat.message_service.append(room.id, test_user.id, f"earlier {i}")

    bob, _ = await connect(other_user)
    snapshot = await chat.join(bob, room.id)
    assert [m["content"] for m in snapshot["messages"]] == ["earlier 0", "earlier 1", "earlier 2"]


@pytest.mark.asyncio
async def test_private_room_needs_key(chat, connect, registry, test_user, other_user):
    room = await _create(chat, test_user, name="secret", is_private=True)
    bob, bob_socket = await connect(other_user)

    await chat.handle_event(bob, _frame("join-room", room_id=str(room.id)))
    error = bob_socket.events(events.ERROR)[0]
    assert error["code"] == "denied"
    assert error["reason"] == "missing_key"
    assert registry.get(bob).state == SessionState.AUTHENTICATED

    await chat.handle_event(bob, _frame("join-room", room_id=str(room.id), access_key="WRONG999"))
    assert bob_socket.events(events.ERROR)[1]["reason"] == "mismatch"

    await chat.handle_event(bob, _frame("join-room", room_id=str(room.id), access_key=room.access_key))
    assert registry.get(bob).room_id == room.id
    assert await chat.room_service.is_member(room.id, other_user.id)


@pytest.mark.asyncio
async def test_expired_key_is_refused(chat, connect, test_user, other_user):
    room = await _create(chat, test_user, name="secret", is_private=True)
    room.key_expires_at = utc_now() - timedelta(minutes=5)
    await chat.db.commit()

    bob, bob_socket = await connect(other_user)
    await chat.handle_event(bob, _frame("join-room", room_id=str(room.id), access_key=room.access_key))

    assert bob_socket.events(events.ERROR)[0]["reason"] == "expired"


@pytest.mark.asyncio
async def test_member_rejoins_private_room_without_key(chat, connect, test_user):
    room = await _create(chat, test_user, name="secret", is_private=True)
    alice, alice_socket = await connect(test_user)

    await chat.handle_event(alice, _frame("join-room", room_id=str(room.id)))
    assert alice_socket.types() == [events.ROOM_JOINED]


@pytest.mark.asyncio
async def test_send_outside_room_is_rejected(chat, connect, test_user):
    alice, alice_socket = await connect(test_user)

    await chat.handle_event(alice, _frame("send-message", content="anyone?"))
    assert alice_socket.events(events.ERROR)[0]["code"] == "not_in_room"


@pytest.mark.asyncio
async def test_invalid_frames_report_errors(chat, connect, test_user):
    room = await _create(chat, test_user, name="general")
    alice, alice_socket = await connect(test_user)

    await chat.handle_event(alice, "not json")
    await chat.handle_event(alice, _frame("dance"))
    await chat.handle_event(alice, _frame("join-room", room_id="not-a-uuid"))
    assert [e["code"] for e in alice_socket.events(events.ERROR)] == ["invalid_input"] * 3

    await chat.handle_event(alice, _frame("join-room", room_id=str(room.id)))
    await chat.handle_event(alice, _frame("send-message", content="x" * 1001))
    await chat.handle_event(alice, _frame("send-message", content="   "))
    assert [e["code"] for e in alice_socket.events(events.ERROR)][3:] == ["invalid_content"] * 2
    assert await chat.message_service.count(room.id) == 0


@pytest.mark.asyncio
async def test_unknown_room(chat, connect, test_user):
    alice, alice_socket = await connect(test_user)
    await chat.handle_event(alice, _frame("join-room", room_id="00000000-0000-0000-0000-000000000000"))
    assert alice_socket.events(events.ERROR)[0]["code"] == "not_found"


@pytest.mark.asyncio
async def test_broadcasts_stay_inside_their_room(chat, connect, test_user, other_user):
    general = await _create(chat, test_user, name="general")
    random = await _create(chat, test_user, name="random")
    alice, alice_socket = await connect(test_user)
    bob, bob_socket = await connect(other_user)

    await chat.join(alice, general.id)
    await chat.join(bob, random.id)
    await chat.send(alice, "only for general")
    await chat.typing(alice, True)

    assert bob_socket.events(events.NEW_MESSAGE) == []
    assert bob_socket.events(events.USER_TYPING) == []
    assert alice_socket.events(events.USER_TYPING) == []


@pytest.mark.asyncio
async def test_typing_reaches_others(chat, connect, test_user, other_user):
    room = await _create(chat, test_user, name="general")
    alice, _ = await connect(test_user)
    bob, bob_socket = await connect(other_user)
    await chat.join(alice, room.id)
    await chat.join(bob, room.id)

    await chat.handle_event(alice, _frame("typing", is_typing=False))
    assert bob_socket.events(events.USER_TYPING) == [
        {"room_id": str(room.id), "user_id": str(test_user.id), "username": test_user.username, "is_typing": False}
    ]


@pytest.mark.asyncio
async def test_switching_rooms_announces_departure(chat, connect, registry, test_user, other_user):
    general = await _create(chat, test_user, name="general")
    random = await _create(chat, test_user, name="random")
    alice, alice_socket = await connect(test_user)
    bob, _ = await connect(other_user)
    await chat.join(alice, general.id)
    await chat.join(bob, general.id)

    await chat.join(bob, random.id)

    assert alice_socket.events(events.USER_LEFT)[0]["user_id"] == str(other_user.id)
    assert registry.sessions_in_room(general.id) == {alice}
    assert registry.sessions_in_room(random.id) == {bob}


@pytest.mark.asyncio
async def test_leave_and_disconnect(chat, connect, registry, test_user, other_user):
    room = await _create(chat, test_user, name="general")
    alice, alice_socket = await connect(test_user)
    bob, _ = await connect(other_user)
    await chat.join(alice, room.id)
    await chat.join(bob, room.id)

    await chat.handle_event(bob, _frame("leave-room"))
    assert registry.get(bob).room_id is None
    assert len(alice_socket.events(events.USER_LEFT)) == 1
    # Leaving the live room keeps the membership.
    assert await chat.room_service.is_member(room.id, other_user.id)

    await chat.join(bob, room.id)
    await chat.disconnect(bob)
    assert bob not in registry
    assert len(alice_socket.events(events.USER_LEFT)) == 2
    assert chat.is_user_connected(test_user.id)
    assert not chat.is_user_connected(other_user.id)


@pytest.mark.asyncio
async def test_concurrent_joins_respect_capacity(chat, connect, make_user, test_user):
    room = await _create(chat, test_user, name="tiny", max_members=2)
    first, second = await make_user("first"), await make_user("second")
    first_id, first_socket = await connect(first)
    second_id, second_socket = await connect(second)

    await asyncio.gather(
        chat.handle_event(first_id, _frame("join-room", room_id=str(room.id))),
        chat.handle_event(second_id, _frame("join-room", room_id=str(room.id))),
    )

    outcomes = sorted(
        "joined" if s.events(events.ROOM_JOINED) else s.events(events.ERROR)[0]["code"]
        for s in (first_socket, second_socket)
    )
    assert outcomes == ["capacity_exceeded", "joined"]
    assert (await chat.room_service.get_room(room.id)).member_count == 2


@pytest.mark.asyncio
async def test_join_does_not_hold_a_transaction_open(chat, connect, async_session, test_user, other_user):
    room = await _create(chat, test_user, name="general")
    await chat.message_service.append(room.id, test_user.id, "earlier")
    bob, _ = await connect(other_user)

    await chat.handle_event(bob, _frame("join-room", room_id=str(room.id)))
    assert not async_session.in_transaction()

    await chat.handle_event(bob, _frame("join-room", room_id="00000000-0000-0000-0000-000000000000"))
    assert not async_session.in_transaction()
