from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.globals import websocket_manager, session_registry, room_locks
from roomchat.utils.room_locks import RoomLockRegistry
from roomchat.utils.session_registry import SessionRegistry
from roomchat.utils.websocket_manager import WebsocketManager

from roomchat.database.postgres import get_db_session
from roomchat.services.auth_service import AuthService
from roomchat.services.room_service import RoomService
from roomchat.services.message_service import MessageService
from roomchat.services.chat_service import ChatService
from roomchat.services.user_service import UserService

def get_websocket_manager() -> WebsocketManager:
    """
    Dependency that provides the singleton WebsocketManager instance.
    """
    return websocket_manager

def get_session_registry() -> SessionRegistry:
    """
    Dependency that provides the singleton SessionRegistry instance.
    """
    return session_registry

def get_room_locks() -> RoomLockRegistry:
    return room_locks

def get_auth_service(db: AsyncSession = Depends(get_db_session)) -> AuthService:
    """
    Dependency that provides an instance of AuthService with an active database session.
    """
    return AuthService(db)

def get_user_service(db: AsyncSession = Depends(get_db_session)) -> UserService:
    return UserService(db)

def get_room_service(
    db: AsyncSession = Depends(get_db_session),
    locks: RoomLockRegistry = Depends(get_room_locks),
) -> RoomService:
    """
    Dependency that provides an instance of RoomService with an active database session.
    """
    return RoomService(db, locks)

def get_message_service(db: AsyncSession = Depends(get_db_session)) -> MessageService:
    """
    Dependency that provides an instance of MessageService with an active database session.
    """
    return MessageService(db)

def get_chat_service(
    db: AsyncSession = Depends(get_db_session),
    room_service: RoomService = Depends(get_room_service),
    message_service: MessageService = Depends(get_message_service),
    registry: SessionRegistry = Depends(get_session_registry),
    ws_manager: WebsocketManager = Depends(get_websocket_manager),
    locks: RoomLockRegistry = Depends(get_room_locks),
) -> ChatService:
    """
    Dependency that provides an instance of ChatService with required dependencies.
    """
    return ChatService(
        db=db,
        room_service=room_service,
        message_service=message_service,
        registry=registry,
        websocket_manager=ws_manager,
        locks=locks,
    )
