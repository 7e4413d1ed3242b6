from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Set
from uuid import UUID

from .datetime_utils import utc_now


class SessionState(str, Enum):
    AUTHENTICATED = "authenticated"
    IN_ROOM = "in_room"


@dataclass
class Session:
    connection_id: str
    user_id: UUID
    username: str
    room_id: Optional[UUID] = None
    connected_at: datetime = field(default_factory=utc_now)

    @property
    def state(self) -> SessionState:
        return SessionState.IN_ROOM if self.room_id is not None else SessionState.AUTHENTICATED


class SessionRegistry:
    """
    In-memory table of live connections: connection id -> (identity, current room).

    This is the only place that knows which connections sit in which room; the
    broadcast path reads it and nothing else keeps a copy. All methods are
    synchronous, so each mutation completes without yielding to the event loop.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._room_index: Dict[UUID, Set[str]] = {}

    def on_connect(self, connection_id: str, user_id: UUID, username: str) -> Session:
        """Registers an authenticated connection that is not in any room yet."""
        if connection_id in self._sessions:
            raise ValueError(f"Connection {connection_id} is already registered")
        session = Session(connection_id=connection_id, user_id=user_id, username=username)
        self._sessions[connection_id] = session
        return session

    def on_disconnect(self, connection_id: str) -> Optional[Session]:
        """Removes a connection and returns its last state, or None if unknown."""
        session = self._sessions.pop(connection_id, None)
        if session is not None and session.room_id is not None:
            self._unindex(session.room_id, connection_id)
        return session

    def get(self, connection_id: str) -> Optional[Session]:
        return self._sessions.get(connection_id)

    def set_room(self, connection_id: str, room_id: Optional[UUID]) -> Optional[UUID]:
        """
        Moves a connection into ``room_id`` (or out of any room with None).
        Returns the room it occupied before.
        """
        session = self._sessions.get(connection_id)
        if session is None:
            raise KeyError(connection_id)

        previous = session.room_id
        if previous == room_id:
            return previous
        if previous is not None:
            self._unindex(previous, connection_id)
        session.room_id = room_id
        if room_id is not None:
            self._room_index.setdefault(room_id, set()).add(connection_id)
        return previous

    def sessions_in_room(self, room_id: UUID) -> Set[str]:
        """Snapshot of the connection ids currently in a room."""
        return set(self._room_index.get(room_id, ()))

    def connections_for_user(self, user_id: UUID) -> Set[str]:
        return {cid for cid, s in self._sessions.items() if s.user_id == user_id}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._sessions

    def _unindex(self, room_id: UUID, connection_id: str):
        members = self._room_index.get(room_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._room_index[room_id]
