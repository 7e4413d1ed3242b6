from datetime import datetime
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update

from ..core.log_config import get_logger
from ..models.user import User
from ..utils.datetime_utils import utc_now

logger = get_logger("presence")


class UserService:
    """Presence bookkeeping for identities: online flag and last-seen time."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def set_online(self, user_id: UUID, online: bool) -> None:
        """Flips the online flag and stamps last_seen with the current time."""
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(is_online=online, last_seen=utc_now())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.debug(f"User {user_id} is now {'online' if online else 'offline'}")

    async def record_last_seen(self, user_id: UUID, timestamp: datetime = None) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(last_seen=timestamp or utc_now())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
