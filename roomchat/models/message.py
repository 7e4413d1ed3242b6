from sqlalchemy.orm import relationship
from sqlalchemy import Column, ForeignKey, Text, DateTime, Enum, String, Boolean, UniqueConstraint, Uuid, Index

from .base import Base
from roomchat.schemas.message import MessageType
from roomchat.utils.datetime_utils import utc_now

class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_room_created", "room_id", "created_at"),
    )
    
    content = Column(Text, nullable=False)
    message_type = Column(Enum(MessageType), default=MessageType.TEXT, nullable=False)  # text, system, file
    
    # Sender information
    sender_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    sender = relationship("User", foreign_keys=[sender_id], back_populates="messages_sent", lazy="selectin")
    
    # Room information
    room_id = Column(Uuid(as_uuid=True), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    room = relationship("Room", back_populates="messages")

    reply_to_id = Column(Uuid(as_uuid=True), ForeignKey("messages.id"), nullable=True)
    
    # Metadata
    is_edited = Column(Boolean, default=False, nullable=False)
    edited_at = Column(DateTime(timezone=True), nullable=True)

    reactions = relationship(
        "MessageReaction", back_populates="message", lazy="selectin", cascade="all, delete-orphan"
    )
    read_by = relationship(
        "MessageReadReceipt", back_populates="message", lazy="selectin", cascade="all, delete-orphan"
    )
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    
    def __repr__(self):
        return f"<Message(id={self.id}, sender_id={self.sender_id}, content='{self.content[:50]}...')>"


class MessageReaction(Base):
    __tablename__ = "message_reactions"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", "emoji", name="uq_message_reactions_message_user_emoji"),
    )

    message_id = Column(Uuid(as_uuid=True), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    emoji = Column(String(16), nullable=False)

    message = relationship("Message", back_populates="reactions")


class MessageReadReceipt(Base):
    __tablename__ = "message_read_receipts"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_message_read_receipts_message_user"),
    )

    message_id = Column(Uuid(as_uuid=True), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    read_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    message = relationship("Message", back_populates="read_by")
