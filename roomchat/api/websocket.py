from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from roomchat.dependencies.auth_dependencies import get_current_user_from_websocket
from roomchat.dependencies.service_dependencies import (
    get_chat_service,
    get_user_service,
    get_websocket_manager,
)
from roomchat.models.user import User
from roomchat.core.log_config import logger
from roomchat.services.chat_service import ChatService
from roomchat.services.user_service import UserService
from roomchat.utils.websocket_manager import WebsocketManager

router = APIRouter(prefix="/ws", tags=["websocket"])


@router.websocket("")
async def websocket_endpoint(
    websocket: WebSocket,
    user: User = Depends(get_current_user_from_websocket),
    manager: WebsocketManager = Depends(get_websocket_manager),
    chat_service: ChatService = Depends(get_chat_service),
    user_service: UserService = Depends(get_user_service),
):
    if user is None:
        logger.warning("WebSocket connection rejected: invalid token provided.")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return

    # Plain values survive a rollback that would expire the ORM instance.
    user_id, username = user.id, user.username

    connection_id = await manager.connect(websocket)

    try:
        chat_service.connect(connection_id, user_id, username)
        await user_service.set_online(user_id, True)
        logger.info(f"User {username} ({user_id}) connected via WebSocket as {connection_id}.")

        while True:
            data = await websocket.receive_text()
            logger.debug(f"Data received from {username} on {connection_id}: {data}")
            await chat_service.handle_event(connection_id, data)

    except WebSocketDisconnect as e:
        logger.info(f"User {username} disconnected. Code: {e.code}, Reason: {e.reason}")

    except Exception as e:
        logger.error(f"An unhandled error occurred in websocket for {username} ({user_id}): {e}", exc_info=True)
        try:
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        except Exception as close_error:
            logger.debug(f"Closing connection {connection_id} failed: {close_error}")

    finally:
        await chat_service.disconnect(connection_id)
        if not chat_service.is_user_connected(user_id):
            try:
                await user_service.set_online(user_id, False)
            except Exception as e:
                logger.error(f"Failed to mark {username} offline: {e}")
