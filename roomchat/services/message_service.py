from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, func
from typing import Iterable, List, Optional, Set, Tuple

from ..core.log_config import get_logger
from ..models.message import Message, MessageReaction, MessageReadReceipt
from ..schemas.message import (
    MAX_MESSAGE_LENGTH,
    MessageResponse,
    MessageType,
    ReactionResponse,
    ReadReceiptResponse,
)
from ..utils.datetime_utils import utc_now
from ..core.exceptions import (
    InvalidMessageContentException,
    MessageNotFoundException,
    MessageNotSentException,
    UnauthorizedAccessException,
)

logger = get_logger("messages")


def normalize_content(content: Optional[str]) -> str:
    """
    Trims message content and enforces the 1-1000 character window.

    Raises:
        InvalidMessageContentException: If the trimmed content is empty or too long
    """
    content = (content or "").strip()
    if not content:
        raise InvalidMessageContentException(detail="Message content is required")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise InvalidMessageContentException(
            detail=f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters"
        )
    return content


def build_message_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        room_id=message.room_id,
        sender_id=message.sender_id,
        sender_username=message.sender.username,
        sender_display_name=message.sender.display_name,
        content=message.content,
        message_type=message.message_type,
        timestamp=message.created_at,
        is_edited=message.is_edited,
        edited_at=message.edited_at,
        reply_to_id=message.reply_to_id,
        reactions=[ReactionResponse.model_validate(r) for r in message.reactions],
        read_by=[ReadReceiptResponse.model_validate(r) for r in message.read_by],
    )


class MessageService:
    """Ordered, persisted messages per room."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        room_id: UUID,
        sender_id: UUID,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        reply_to_id: Optional[UUID] = None,
    ) -> Message:
        """
        Validates and stores a new message.

        Raises:
            InvalidMessageContentException: If content is empty or longer than 1000 characters
            MessageNotFoundException: If reply_to_id is not a message of the same room
            MessageNotSentException: If the message could not be persisted
        """
        content = normalize_content(content)
        if reply_to_id is not None:
            original = await self.get_message(reply_to_id)
            if original.room_id != room_id:
                raise MessageNotFoundException(detail="Replied-to message is not in this room")

        message = Message(
            room_id=room_id,
            sender_id=sender_id,
            content=content,
            message_type=message_type,
            reply_to_id=reply_to_id,
            created_at=utc_now(),
        )
        self.db.add(message)
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to store message in room {room_id}: {e}")
            raise MessageNotSentException() from e

        return await self.get_message(message.id)

    async def get_message(self, message_id: UUID) -> Message:
        result = await self.db.execute(
            select(Message)
            .filter(Message.id == message_id)
            .execution_options(populate_existing=True)
        )
        message = result.scalar_one_or_none()
        if message is None:
            raise MessageNotFoundException()
        return message

    async def recent(self, room_id: UUID, limit: int = 50) -> List[Message]:
        """The newest ``limit`` messages of a room, returned oldest-first."""
        result = await self.db.execute(
            select(Message)
            .filter(Message.room_id == room_id)
            .order_by(Message.created_at.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(reversed(result.scalars().all()))

    async def page(self, room_id: UUID, page: int = 1, page_size: int = 50) -> Tuple[List[Message], int]:
        """
        One page of history counted back from the newest message; the page
        itself is ordered oldest-first.
        """
        result = await self.db.execute(
            select(Message)
            .filter(Message.room_id == room_id)
            .order_by(Message.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        )
        messages = list(reversed(result.scalars().all()))
        return messages, await self.count(room_id)

    async def count(self, room_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Message.id)).filter(Message.room_id == room_id)
        )
        return result.scalar_one()

    async def edit(self, message_id: UUID, editor_id: UUID, content: str) -> Message:
        """Replaces the content of a message. Only its sender may edit it."""
        message = await self.get_message(message_id)
        if message.sender_id != editor_id:
            raise UnauthorizedAccessException(detail="Only the sender can edit this message")

        message.content = normalize_content(content)
        message.is_edited = True
        message.edited_at = utc_now()
        await self.db.commit()
        return await self.get_message(message_id)

    async def add_reaction(self, message_id: UUID, user_id: UUID, emoji: str) -> Message:
        """Adds a reaction; repeating the same reaction by the same user changes nothing."""
        message = await self.get_message(message_id)
        if any(r.user_id == user_id and r.emoji == emoji for r in message.reactions):
            return message

        message.reactions.append(MessageReaction(user_id=user_id, emoji=emoji))
        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent request stored the same reaction first.
            await self.db.rollback()
        return await self.get_message(message_id)

    async def mark_read(self, message_ids: Iterable[UUID], user_id: UUID) -> List[Message]:
        """
        Records a read receipt per message for ``user_id``; messages already
        read by the user keep their original receipt.
        """
        result = await self.db.execute(
            select(Message)
            .filter(Message.id.in_(list(message_ids)))
            .execution_options(populate_existing=True)
        )
        messages = result.scalars().all()
        if not messages:
            raise MessageNotFoundException()

        found_ids = [message.id for message in messages]
        changed = False
        for message in messages:
            if any(r.user_id == user_id for r in message.read_by):
                continue
            message.read_by.append(MessageReadReceipt(user_id=user_id, read_at=utc_now()))
            changed = True

        if changed:
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
        return [await self.get_message(message_id) for message_id in found_ids]

    async def room_ids_of(self, message_ids: Iterable[UUID]) -> Set[UUID]:
        result = await self.db.execute(
            select(Message.room_id).filter(Message.id.in_(list(message_ids))).distinct()
        )
        return set(result.scalars().all())
