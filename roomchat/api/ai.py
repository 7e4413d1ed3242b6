from fastapi import APIRouter, Depends

from roomchat.core.config import settings
from roomchat.core.exceptions import UnauthorizedAccessException
from roomchat.dependencies.auth_dependencies import get_current_user
from roomchat.dependencies.service_dependencies import get_message_service, get_room_service
from roomchat.models.user import User
from ..schemas.message import SuggestionRequest, SuggestionResponse
from ..services.message_service import MessageService
from ..services.room_service import RoomService
from ..services.suggestion_service import generate_suggestions

router = APIRouter(prefix="/api/ai", tags=["ai"])

@router.post("/recommendations", response_model=SuggestionResponse)
async def get_recommendations(
    request: SuggestionRequest,
    current_user: User = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service),
    message_service: MessageService = Depends(get_message_service),
):
    """
    Suggest up to three replies based on the room's latest messages.
    """
    await room_service.get_room(request.room_id)
    if not await room_service.is_member(request.room_id, current_user.id):
        raise UnauthorizedAccessException(detail="You are not a member of this room")

    messages = await message_service.recent(request.room_id, settings.suggestion_context_size)
    return SuggestionResponse(recommendations=generate_suggestions(messages, current_user.id))
