import asyncio
import weakref
from uuid import UUID


class RoomLockRegistry:
    """
    Hands out one asyncio.Lock per room. Everything that reads and then
    mutates a room's membership or appends to its messages runs under that
    room's lock; locks of different rooms never contend.

    Locks are held weakly and disappear once no coroutine holds or awaits them.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, room_id: UUID) -> asyncio.Lock:
        key = str(room_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
