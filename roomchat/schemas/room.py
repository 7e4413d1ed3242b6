from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import datetime
from typing import List, Optional
import math

class CreateRoomRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9\s_-]+$", description="Room name")
    description: str = Field(default="", max_length=200)
    is_private: bool = False
    tags: List[str] = Field(default_factory=list, max_length=10)
    key_expiration: Optional[datetime] = Field(default=None, description="Access key expiry for private rooms")
    max_members: Optional[int] = Field(default=None, ge=1, le=1000)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 3:
            raise ValueError("Room name must be between 3 and 50 characters")
        return value

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: List[str]) -> List[str]:
        cleaned = []
        for tag in value:
            tag = tag.strip()[:30]
            if tag and tag not in cleaned:
                cleaned.append(tag)
        return cleaned

class JoinRoomRequest(BaseModel):
    access_key: Optional[str] = None

class JoinByKeyRequest(BaseModel):
    access_key: str = Field(..., min_length=1)

class RoomMemberResponse(BaseModel):
    user_id: UUID
    username: str
    avatar: Optional[str] = None
    is_online: bool = False
    joined_at: datetime

class RoomResponse(BaseModel):
    id: UUID
    name: str
    description: str
    created_by: UUID
    creator_username: Optional[str] = None
    is_private: bool
    tags: List[str] = []
    max_members: int
    member_count: int
    members: List[RoomMemberResponse] = []
    key_expires_at: Optional[datetime] = None
    last_activity: datetime
    created_at: datetime

class RoomCreatedResponse(BaseModel):
    room: RoomResponse
    access_key: Optional[str] = None

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)

class RoomListResponse(BaseModel):
    rooms: List[RoomResponse]
    pagination: Pagination
