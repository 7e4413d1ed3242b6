from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from roomchat.models.base import Base
from roomchat.utils.datetime_utils import utc_now

DEFAULT_MAX_MEMBERS = 100

class Room(Base):
    __tablename__ = "rooms"
    
    name = Column(String(50), nullable=False)
    # Lower-cased copy of the name; carries the case-insensitive unique constraint.
    name_key = Column(String(50), nullable=False, unique=True)
    description = Column(String(200), nullable=False, default="")
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)

    is_private = Column(Boolean, nullable=False, default=False)
    access_key = Column(String(8), nullable=True, unique=True)
    key_expires_at = Column(DateTime(timezone=True), nullable=True)
    max_members = Column(Integer, nullable=False, default=DEFAULT_MAX_MEMBERS)

    last_activity = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    
    creator = relationship("User", foreign_keys=[created_by], lazy="selectin")
    messages = relationship("Message", back_populates="room", passive_deletes=True)
    memberships = relationship(
        "RoomMembership",
        back_populates="room",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="RoomMembership.joined_at",
    )
    tag_entries = relationship(
        "RoomTag",
        back_populates="room",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def member_count(self) -> int:
        return len(self.memberships)

    @property
    def tags(self) -> list[str]:
        return [entry.name for entry in self.tag_entries]

    def has_member(self, user_id) -> bool:
        return any(m.user_id == user_id for m in self.memberships)
    
    def __repr__(self):
        return f"<Room(id={self.id}, name='{self.name}', private={self.is_private})>"


class RoomTag(Base):
    __tablename__ = "room_tags"

    room_id = Column(Uuid(as_uuid=True), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(30), nullable=False)

    room = relationship("Room", back_populates="tag_entries")
