from fastapi import APIRouter, Depends
from uuid import UUID
from typing import List

from roomchat.dependencies.auth_dependencies import get_current_user
from roomchat.dependencies.service_dependencies import (
    get_message_service,
    get_room_service,
    get_websocket_manager,
)
from roomchat.models.user import User
from roomchat.core.exceptions import UnauthorizedAccessException
from ..schemas import events
from ..schemas.message import MarkReadRequest, MessageEditRequest, MessageResponse, ReactionRequest
from ..services.message_service import MessageService, build_message_response
from ..services.room_service import RoomService
from ..utils.websocket_manager import WebsocketManager

router = APIRouter(prefix="/api/messages", tags=["messages"])


async def _require_membership(room_service: RoomService, room_id: UUID, user_id: UUID):
    if not await room_service.is_member(room_id, user_id):
        raise UnauthorizedAccessException(detail="You are not a member of this room")


@router.patch("/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: UUID,
    request: MessageEditRequest,
    current_user: User = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service),
    ws_manager: WebsocketManager = Depends(get_websocket_manager),
):
    """
    Edit the content of one of your own messages.

    Args:
        message_id: ID of the message
        request: New content
        current_user: Authenticated user details
        message_service: Message service instance

    Returns:
        The updated MessageResponse, also broadcast to the room
    """
    message = await message_service.edit(message_id, current_user.id, request.content)
    response = build_message_response(message)
    await ws_manager.to_room(message.room_id, events.MESSAGE_UPDATED, response.model_dump())
    return response


@router.post("/{message_id}/reactions", response_model=MessageResponse)
async def react_to_message(
    message_id: UUID,
    request: ReactionRequest,
    current_user: User = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service),
    message_service: MessageService = Depends(get_message_service),
    ws_manager: WebsocketManager = Depends(get_websocket_manager),
):
    """
    React to a message in a room you belong to.
    """
    message = await message_service.get_message(message_id)
    await _require_membership(room_service, message.room_id, current_user.id)

    message = await message_service.add_reaction(message_id, current_user.id, request.emoji)
    response = build_message_response(message)
    await ws_manager.to_room(message.room_id, events.MESSAGE_UPDATED, response.model_dump())
    return response


@router.post("/read", response_model=List[MessageResponse])
async def mark_messages_read(
    request: MarkReadRequest,
    current_user: User = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service),
    message_service: MessageService = Depends(get_message_service),
):
    """
    Record read receipts for a batch of messages.
    """
    for room_id in await message_service.room_ids_of(request.message_ids):
        await _require_membership(room_service, room_id, current_user.id)
    messages = await message_service.mark_read(request.message_ids, current_user.id)
    return [build_message_response(m) for m in messages]
