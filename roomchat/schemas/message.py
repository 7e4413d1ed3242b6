from enum import Enum
from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import datetime
from typing import List, Optional

from .room import Pagination

MAX_MESSAGE_LENGTH = 1000

class MessageType(str, Enum):
    TEXT = "text"
    SYSTEM = "system"
    FILE = "file"

class MessageEditRequest(BaseModel):
    content: str = Field(..., description="New message content")

class ReactionRequest(BaseModel):
    emoji: str = Field(..., max_length=16, description="Short reaction label")

    @field_validator("emoji")
    @classmethod
    def strip_emoji(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Reaction label cannot be empty")
        return value

class MarkReadRequest(BaseModel):
    message_ids: List[UUID] = Field(..., min_length=1, max_length=100)

class ReactionResponse(BaseModel):
    user_id: UUID
    emoji: str

    class Config:
        from_attributes = True

class ReadReceiptResponse(BaseModel):
    user_id: UUID
    read_at: datetime

    class Config:
        from_attributes = True

class MessageResponse(BaseModel):
    id: UUID
    room_id: UUID
    sender_id: UUID
    sender_username: str
    sender_display_name: str
    content: str
    message_type: MessageType
    timestamp: datetime
    is_edited: bool
    edited_at: Optional[datetime] = None
    reply_to_id: Optional[UUID] = None
    reactions: List[ReactionResponse] = []
    read_by: List[ReadReceiptResponse] = []

class MessagePageResponse(BaseModel):
    messages: List[MessageResponse]
    pagination: Pagination

class SuggestionRequest(BaseModel):
    room_id: UUID

class SuggestionResponse(BaseModel):
    recommendations: List[str]
