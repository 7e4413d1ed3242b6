from fastapi import APIRouter, Depends, Query, status
from uuid import UUID
from typing import Optional

from ..schemas.room import (
    CreateRoomRequest,
    JoinByKeyRequest,
    JoinRoomRequest,
    Pagination,
    RoomCreatedResponse,
    RoomListResponse,
    RoomResponse,
)
from ..schemas.message import MessagePageResponse
from ..services.room_service import RoomService, build_room_response
from ..services.message_service import MessageService, build_message_response
from roomchat.dependencies.service_dependencies import get_room_service, get_message_service
from roomchat.dependencies.auth_dependencies import get_current_user
from roomchat.models.user import User
from roomchat.core.exceptions import UnauthorizedAccessException

router = APIRouter(prefix="/api/rooms", tags=["rooms"])

@router.get("", response_model=RoomListResponse)
async def list_public_rooms(
    search: str = Query("", max_length=100, description="Substring of name, description or tag"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Lists public rooms, most recently active first.
    """
    rooms, total = await room_service.find_public(search, page, limit)
    return RoomListResponse(
        rooms=[build_room_response(room, include_members=False) for room in rooms],
        pagination=Pagination.build(page, limit, total),
    )

@router.post("", response_model=RoomCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    request: CreateRoomRequest,
    current_user: User = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Create a new room. The access key of a private room is only returned here.

    Args:
        request: Room creation request
        current_user: Authenticated user details
        room_service: Room service instance

    Returns:
        RoomCreatedResponse with the room and, for private rooms, its access key
    """
    room = await room_service.create_room(
        user_id=current_user.id,
        request=request
    )
    return RoomCreatedResponse(room=build_room_response(room), access_key=room.access_key)

@router.post("/join-by-key", response_model=RoomResponse)
async def join_by_key(
    request: JoinByKeyRequest,
    current_user: User = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Join whichever private room holds the given access key.
    """
    room = await room_service.join_by_access_key(current_user.id, request.access_key.strip())
    return build_room_response(room)

@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: UUID,
    room_service: RoomService = Depends(get_room_service)
):
    """
    Fetch a room with its members.
    """
    return build_room_response(await room_service.get_room(room_id))

@router.post("/{room_id}/join", response_model=RoomResponse)
async def join_room(
    room_id: UUID,
    request: Optional[JoinRoomRequest] = None,
    current_user: User = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Become a member of a room. Private rooms need their access key.

    Args:
        room_id: ID of the room
        request: Optional access key
        current_user: Authenticated user details
        room_service: Room service instance
    """
    room = await room_service.join_room(
        user_id=current_user.id,
        room_id=room_id,
        access_key=request.access_key if request else None,
    )
    return build_room_response(room)

@router.post("/{room_id}/leave", response_model=RoomResponse)
async def leave_room(
    room_id: UUID,
    current_user: User = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Give up membership of a room.
    """
    room = await room_service.leave_room(user_id=current_user.id, room_id=room_id)
    return build_room_response(room)

@router.get("/{room_id}/messages", response_model=MessagePageResponse)
async def get_room_messages(
    room_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100, description="Number of messages per page"),
    current_user: User = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service),
    message_service: MessageService = Depends(get_message_service),
):
    """
    Paginated message history; page 1 holds the newest messages, each page
    is ordered oldest-first. Private rooms only show history to members.
    """
    room = await room_service.get_room(room_id)
    if room.is_private and not room.has_member(current_user.id):
        raise UnauthorizedAccessException(detail="You are not a member of this room")
    messages, total = await message_service.page(room_id, page, limit)
    return MessagePageResponse(
        messages=[build_message_response(m) for m in messages],
        pagination=Pagination.build(page, limit, total),
    )
