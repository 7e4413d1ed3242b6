from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, func, or_
from typing import List, Optional, Tuple

from ..core.config import settings
from ..core.log_config import get_logger
from ..models.room import Room, RoomTag
from ..models.room_membership import RoomMembership
from ..schemas.room import CreateRoomRequest, RoomMemberResponse, RoomResponse
from ..utils.datetime_utils import utc_now
from ..utils.room_locks import RoomLockRegistry
from ..core.exceptions import (
    AccessDeniedException,
    AlreadyMemberException,
    DenialReason,
    InternalServerErrorException,
    RoomAlreadyExistsException,
    RoomFullException,
    RoomNotFoundException,
)
from .access_control import generate_access_key, is_key_expired, validate_join

logger = get_logger("rooms")


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_room_response(room: Room, include_members: bool = True) -> RoomResponse:
    return RoomResponse(
        id=room.id,
        name=room.name,
        description=room.description or "",
        created_by=room.created_by,
        creator_username=room.creator.username if room.creator else None,
        is_private=room.is_private,
        tags=room.tags,
        max_members=room.max_members,
        member_count=room.member_count,
        members=[
            RoomMemberResponse(
                user_id=membership.user_id,
                username=membership.user.username,
                avatar=membership.user.avatar,
                is_online=membership.user.is_online,
                joined_at=membership.joined_at,
            )
            for membership in room.memberships
        ] if include_members else [],
        key_expires_at=room.key_expires_at,
        last_activity=room.last_activity,
        created_at=room.created_at,
    )


class RoomService:
    """
    Persisted room records: creation, lookup, search and membership.

    The primitive mutators (add_member, remove_member, touch_activity) assume
    the caller already holds the room's lock. The join/leave operations exposed
    to the HTTP surface take that lock themselves.
    """

    def __init__(self, db: AsyncSession, locks: RoomLockRegistry):
        self.db = db
        self.locks = locks

    async def create_room(
        self,
        user_id: UUID,
        request: CreateRoomRequest,
    ) -> Room:
        """
        Create a new room with its creator as the first member.

        Args:
            user_id: ID of the creator
            request: Room creation request

        Returns:
            The persisted Room; private rooms carry a freshly generated access key

        Raises:
            RoomAlreadyExistsException: If a room with the same name exists, ignoring case
            InternalServerErrorException: If room creation fails
        """
        name_key = request.name.lower()
        if await self._name_taken(name_key):
            raise RoomAlreadyExistsException()

        attempts = settings.access_key_max_attempts if request.is_private else 1
        for _ in range(attempts):
            access_key = generate_access_key() if request.is_private else None
            if access_key and await self._access_key_taken(access_key):
                logger.warning("Generated access key collided with an existing room, retrying.")
                continue

            room = Room(
                name=request.name,
                name_key=name_key,
                description=request.description,
                created_by=user_id,
                is_private=request.is_private,
                access_key=access_key,
                key_expires_at=request.key_expiration if request.is_private else None,
                max_members=request.max_members or settings.default_max_members,
                last_activity=utc_now(),
            )
            room.memberships.append(RoomMembership(user_id=user_id, joined_at=utc_now()))
            room.tag_entries = [RoomTag(name=tag) for tag in request.tags]
            self.db.add(room)
            try:
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                if await self._name_taken(name_key):
                    raise RoomAlreadyExistsException() from e
                if access_key is None:
                    raise InternalServerErrorException(detail="Failed to create room") from e
                logger.warning("Access key rejected by the database, retrying.")
                continue

            logger.info(f"Room '{room.name}' ({room.id}) created by {user_id}, private={room.is_private}")
            return await self.get_room(room.id)

        raise InternalServerErrorException(detail="Could not allocate a unique access key")

    async def find_public(self, search: str = "", page: int = 1, page_size: int = 10) -> Tuple[List[Room], int]:
        """
        Public rooms whose name, description or any tag contains ``search``
        (case-insensitive), most recently active first.
        """
        filters = [Room.is_private.is_(False)]
        search = (search or "").strip()
        if search:
            pattern = _like_pattern(search)
            filters.append(
                or_(
                    Room.name.ilike(pattern, escape="\\"),
                    Room.description.ilike(pattern, escape="\\"),
                    Room.tag_entries.any(RoomTag.name.ilike(pattern, escape="\\")),
                )
            )

        total = await self.db.execute(select(func.count()).select_from(Room).where(*filters))
        rooms = await self.db.execute(
            select(Room)
            .where(*filters)
            .order_by(Room.last_activity.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(rooms.scalars().all()), total.scalar_one()

    async def get_room(self, room_id: UUID) -> Room:
        """Loads a room with its members, always reading current database state."""
        result = await self.db.execute(
            select(Room)
            .filter(Room.id == room_id)
            .execution_options(populate_existing=True)
        )
        room = result.scalar_one_or_none()
        if room is None:
            raise RoomNotFoundException()
        return room

    async def find_by_access_key(self, access_key: str) -> Room:
        """Looks a room up by its key. Expiry is the caller's concern."""
        result = await self.db.execute(
            select(Room)
            .filter(Room.access_key == access_key)
            .execution_options(populate_existing=True)
        )
        room = result.scalar_one_or_none()
        if room is None:
            raise RoomNotFoundException(detail="Invalid access key")
        return room

    async def get_members(self, room_id: UUID) -> List[RoomMembership]:
        result = await self.db.execute(
            select(RoomMembership)
            .filter(RoomMembership.room_id == room_id)
            .order_by(RoomMembership.joined_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def is_member(self, room_id: UUID, user_id: UUID) -> bool:
        result = await self.db.execute(
            select(RoomMembership.id).filter(
                RoomMembership.room_id == room_id,
                RoomMembership.user_id == user_id,
            )
        )
        return result.first() is not None

    async def add_member(self, room: Room, user_id: UUID) -> RoomMembership:
        """
        Adds ``user_id`` to the room. Caller holds the room lock.

        Raises:
            AlreadyMemberException: If the user is already a member
            RoomFullException: If the room is at max_members
        """
        if room.has_member(user_id):
            raise AlreadyMemberException()
        if room.member_count >= room.max_members:
            raise RoomFullException()

        membership = RoomMembership(user_id=user_id, joined_at=utc_now())
        room.memberships.append(membership)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise AlreadyMemberException() from e
        logger.info(f"User {user_id} became a member of room {room.id} ({room.member_count}/{room.max_members})")
        return membership

    async def remove_member(self, room: Room, user_id: UUID) -> None:
        """Drops the user's membership; a no-op if there is none. Caller holds the room lock."""
        membership = next((m for m in room.memberships if m.user_id == user_id), None)
        if membership is None:
            return
        room.memberships.remove(membership)
        await self.db.commit()
        logger.info(f"User {user_id} removed from room {room.id}")

    async def touch_activity(self, room: Room) -> None:
        room.last_activity = utc_now()
        await self.db.commit()

    async def join_room(self, user_id: UUID, room_id: UUID, access_key: Optional[str] = None) -> Room:
        """
        Explicit membership join from the room management surface.

        Raises:
            RoomNotFoundException: If room doesn't exist
            AlreadyMemberException: If user is already a member
            AccessDeniedException: If the private room's key is missing, expired or wrong
            RoomFullException: If the room is at capacity
        """
        async with self.locks.lock_for(room_id):
            room = await self.get_room(room_id)
            if room.has_member(user_id):
                raise AlreadyMemberException()
            validate_join(room, access_key).raise_if_denied()
            await self.add_member(room, user_id)
            await self.touch_activity(room)
            return await self.get_room(room_id)

    async def join_by_access_key(self, user_id: UUID, access_key: str) -> Room:
        """
        Joins whichever room holds ``access_key``. Joining again as an
        existing member succeeds without changes.
        """
        room = await self.find_by_access_key(access_key)
        async with self.locks.lock_for(room.id):
            room = await self.get_room(room.id)
            if room.access_key != access_key:
                raise RoomNotFoundException(detail="Invalid access key")
            if is_key_expired(room):
                raise AccessDeniedException(DenialReason.EXPIRED)
            if not room.has_member(user_id):
                await self.add_member(room, user_id)
                await self.touch_activity(room)
            return await self.get_room(room.id)

    async def leave_room(self, user_id: UUID, room_id: UUID) -> Room:
        """Removes the caller's membership of a room."""
        async with self.locks.lock_for(room_id):
            room = await self.get_room(room_id)
            await self.remove_member(room, user_id)
            return await self.get_room(room_id)

    async def _name_taken(self, name_key: str) -> bool:
        result = await self.db.execute(select(Room.id).filter(Room.name_key == name_key))
        return result.first() is not None

    async def _access_key_taken(self, access_key: str) -> bool:
        result = await self.db.execute(select(Room.id).filter(Room.access_key == access_key))
        return result.first() is not None
