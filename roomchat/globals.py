from .utils.room_locks import RoomLockRegistry
from .utils.session_registry import SessionRegistry
from .utils.websocket_manager import WebsocketManager

# Process-wide singletons, created once when the module is first imported.
# The registry is the single source of truth for who is live in which room.
session_registry = SessionRegistry()
room_locks = RoomLockRegistry()
websocket_manager = WebsocketManager(session_registry)
