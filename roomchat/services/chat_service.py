from typing import Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.error_handler import error_body
from ..core.exceptions import (
    BaseAPIException,
    InternalServerErrorException,
    InvalidInputException,
    NotInRoomException,
)
from ..core.log_config import get_logger
from ..schemas import events
from ..schemas.message import MessageResponse
from ..utils.datetime_utils import utc_now
from ..utils.room_locks import RoomLockRegistry
from ..utils.session_registry import Session, SessionRegistry
from ..utils.websocket_manager import WebsocketManager
from .access_control import validate_join
from .message_service import MessageService, build_message_response
from .room_service import RoomService

logger = get_logger("chat")


class ChatService:
    """
    Coordinates what a live connection does inside rooms.

    A connection is Authenticated once registered and InRoom after a
    successful join. Joins and sends run under the room's lock so membership
    checks, capacity checks and message appends for one room never interleave.
    Registry updates happen only after validation and persistence succeed.
    """

    def __init__(
        self,
        db: AsyncSession,
        room_service: RoomService,
        message_service: MessageService,
        registry: SessionRegistry,
        websocket_manager: WebsocketManager,
        locks: RoomLockRegistry,
    ):
        self.db = db
        self.room_service = room_service
        self.message_service = message_service
        self.registry = registry
        self.websocket_manager = websocket_manager
        self.locks = locks

    def connect(self, connection_id: str, user_id: UUID, username: str) -> Session:
        """Registers an authenticated connection; it starts outside any room."""
        return self.registry.on_connect(connection_id, user_id, username)

    def is_user_connected(self, user_id: UUID) -> bool:
        return bool(self.registry.connections_for_user(user_id))

    async def handle_event(self, connection_id: str, raw_event: str):
        """
        Parses one inbound frame and runs it. Failures are reported to this
        connection only and never end the connection.
        """
        try:
            event = events.inbound_event_adapter.validate_json(raw_event)
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            logger.warning(f"Malformed event on connection {connection_id}: {first.get('msg')}")
            await self._send_error(connection_id, InvalidInputException(detail=f"Malformed event: {first.get('msg', 'invalid payload')}"))
            return

        try:
            await self.dispatch(connection_id, event)
        except BaseAPIException as e:
            logger.info(f"'{event.type}' on connection {connection_id} failed: {e.detail}")
            # Typed failures are raised before any write; this only ends the read transaction.
            await self.db.commit()
            await self._send_error(connection_id, e)
        except Exception as e:
            logger.error(f"Unexpected error handling '{event.type}' on connection {connection_id}: {e}", exc_info=True)
            await self.db.rollback()
            await self._send_error(connection_id, InternalServerErrorException())

    async def dispatch(self, connection_id: str, event):
        if isinstance(event, events.JoinRoomEvent):
            await self.join(connection_id, event.room_id, event.access_key)
        elif isinstance(event, events.SendMessageEvent):
            await self.send(connection_id, event.content, event.reply_to)
        elif isinstance(event, events.TypingEvent):
            await self.typing(connection_id, event.is_typing)
        elif isinstance(event, events.LeaveRoomEvent):
            await self.leave(connection_id)

    async def join(self, connection_id: str, room_id: UUID, access_key: Optional[str] = None) -> dict:
        """
        Moves a connection into a room.

        Non-members are admitted through access control and added as members
        (public rooms always, private rooms with a valid key). Returns the room
        snapshot that is also sent to the joining connection.

        Raises:
            RoomNotFoundException: If the room does not exist
            AccessDeniedException: If a private room refuses the key
            RoomFullException: If the room has no free slot
        """
        session = self._require_session(connection_id)

        async with self.locks.lock_for(room_id):
            room = await self.room_service.get_room(room_id)
            if not room.has_member(session.user_id):
                validate_join(room, access_key).raise_if_denied()
                await self.room_service.add_member(room, session.user_id)

            await self.room_service.touch_activity(room)
            messages = await self.message_service.recent(room_id, settings.recent_messages_limit)
            members = await self.room_service.get_members(room_id)
            # Snapshot reads are done; release the connection for the life of the socket.
            await self.db.commit()

            previous_room_id = self.registry.set_room(connection_id, room_id)
            if previous_room_id is not None and previous_room_id != room_id:
                await self.websocket_manager.to_room(
                    previous_room_id, events.USER_LEFT, self._presence_payload(session, previous_room_id, "left")
                )

            snapshot = {
                "room_id": str(room.id),
                "room": {
                    "name": room.name,
                    "description": room.description,
                    "is_private": room.is_private,
                    "member_count": len(members),
                    "max_members": room.max_members,
                    "members": [
                        {
                            "user_id": str(m.user_id),
                            "username": m.user.username,
                            "avatar": m.user.avatar,
                            "is_online": m.user.is_online,
                        }
                        for m in members
                    ],
                },
                "messages": [build_message_response(m).model_dump() for m in messages],
            }

            if previous_room_id != room_id:
                await self.websocket_manager.to_room_except(
                    room_id, connection_id, events.USER_JOINED, self._presence_payload(session, room_id, "joined")
                )
            await self.websocket_manager.to_connection(connection_id, events.ROOM_JOINED, snapshot)

        logger.info(f"{session.username} joined room '{room.name}' on connection {connection_id}")
        return snapshot

    async def leave(self, connection_id: str):
        """
        Takes the connection out of its current room. Room membership is kept;
        removing membership is a separate operation of the room surface.
        """
        session = self._require_session(connection_id)
        room_id = self.registry.set_room(connection_id, None)
        if room_id is None:
            return
        await self.websocket_manager.to_room(room_id, events.USER_LEFT, self._presence_payload(session, room_id, "left"))
        logger.info(f"{session.username} left room {room_id} on connection {connection_id}")

    async def send(self, connection_id: str, content: str, reply_to: Optional[UUID] = None) -> MessageResponse:
        """
        Stores a message in the connection's current room and broadcasts it to
        every connection in that room, the sender's included.

        Raises:
            NotInRoomException: If the connection has not joined a room
            InvalidMessageContentException: If the content is empty or too long
        """
        session = self._require_session(connection_id)
        room_id = session.room_id
        if room_id is None:
            raise NotInRoomException()

        async with self.locks.lock_for(room_id):
            room = await self.room_service.get_room(room_id)
            message = await self.message_service.append(
                room_id=room_id,
                sender_id=session.user_id,
                content=content,
                reply_to_id=reply_to,
            )
            await self.room_service.touch_activity(room)

            response = build_message_response(message)
            await self.websocket_manager.to_room(room_id, events.NEW_MESSAGE, response.model_dump())

        logger.debug(f"{session.username} sent message {message.id} to room {room_id}")
        return response

    async def typing(self, connection_id: str, is_typing: bool):
        session = self._require_session(connection_id)
        if session.room_id is None:
            return
        await self.websocket_manager.to_room_except(
            session.room_id,
            connection_id,
            events.USER_TYPING,
            {
                "room_id": str(session.room_id),
                "user_id": str(session.user_id),
                "username": session.username,
                "is_typing": is_typing,
            },
        )

    async def disconnect(self, connection_id: str) -> Optional[Session]:
        """Forgets the connection and tells its room, if any, that the user left."""
        session = self.registry.on_disconnect(connection_id)
        self.websocket_manager.disconnect(connection_id)
        if session is not None and session.room_id is not None:
            await self.websocket_manager.to_room(
                session.room_id, events.USER_LEFT, self._presence_payload(session, session.room_id, "left")
            )
        return session

    def _require_session(self, connection_id: str) -> Session:
        session = self.registry.get(connection_id)
        if session is None:
            raise NotInRoomException(detail="Connection is not registered")
        return session

    async def _send_error(self, connection_id: str, exc: BaseAPIException):
        payload = error_body(exc)
        payload["status_code"] = exc.status_code
        await self.websocket_manager.to_connection(connection_id, events.ERROR, payload)

    @staticmethod
    def _presence_payload(session: Session, room_id: UUID, verb: str) -> dict:
        return {
            "room_id": str(room_id),
            "user_id": str(session.user_id),
            "username": session.username,
            "message": f"{session.username} {verb} the room",
            "timestamp": utc_now().isoformat(),
        }
