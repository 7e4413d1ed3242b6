from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter


class JoinRoomEvent(BaseModel):
    type: Literal["join-room"]
    room_id: UUID
    access_key: Optional[str] = None

class LeaveRoomEvent(BaseModel):
    type: Literal["leave-room"]

class SendMessageEvent(BaseModel):
    type: Literal["send-message"]
    content: str
    reply_to: Optional[UUID] = None

class TypingEvent(BaseModel):
    type: Literal["typing"]
    is_typing: bool = True

InboundEvent = Annotated[
    Union[JoinRoomEvent, LeaveRoomEvent, SendMessageEvent, TypingEvent],
    Field(discriminator="type"),
]

inbound_event_adapter = TypeAdapter(InboundEvent)

# Server-originated event names
ROOM_JOINED = "room-joined"
NEW_MESSAGE = "new-message"
MESSAGE_UPDATED = "message-updated"
USER_JOINED = "user-joined"
USER_LEFT = "user-left"
USER_TYPING = "user-typing"
ERROR = "error"
