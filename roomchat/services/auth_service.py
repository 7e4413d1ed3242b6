from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from roomchat.core.exceptions import (
    InvalidCredentialsException,
    InvalidTokenException,
    UnauthorizedAccessException,
    UserAlreadyExistsException,
)
from roomchat.models.user import User
from roomchat.core.security import hash_password, verify_password, create_access_token, verify_token
from roomchat.schemas.auth import RegisterRequest, LoginRequest


class AuthService:
    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def register_user(self, request: RegisterRequest):
        """
        Handles the logic for registering a user.
        
        Args:
            request: Registration data
            
        Returns:
            A tuple (user, access_token)
        """
        existing_user = await self.db_session.execute(
            select(User).filter(
                (User.username == request.username) | (User.email == request.email)
            )
        )
        if existing_user.scalar():
            raise UserAlreadyExistsException()
        
        user = User(
            username=request.username,
            display_name=request.display_name,
            email=request.email,
            hashed_password=hash_password(request.password)
        )
        self.db_session.add(user)
        await self.db_session.commit()
        await self.db_session.refresh(user)

        return user, self._issue_token(user)

    async def login_user(self, request: LoginRequest):
        """
        Handles the logic for logging in a user.
        
        Args:
            request: Login credentials
            
        Returns:
            A tuple (user, access_token)
        """
        user = await self.db_session.execute(
            select(User).filter(User.username == request.username)
        )
        user = user.scalar_one_or_none()
        
        if not user or not verify_password(request.password, user.hashed_password):
            raise InvalidCredentialsException()
        if not user.is_active:
            raise UnauthorizedAccessException(detail="Account is disabled")

        return user, self._issue_token(user)

    async def authenticate(self, token: str) -> User:
        """
        Resolves a bearer token to its user. Shared by HTTP and WebSocket auth.

        Raises:
            InvalidTokenException: If the token is missing, malformed or names no user id
            TokenExpiredException: If the token has expired
            UnauthorizedAccessException: If the user no longer exists or is disabled
        """
        if not token:
            raise InvalidTokenException(detail="Token not provided")

        payload = verify_token(token)
        user_id = payload.get("user_id")
        if user_id is None:
            raise InvalidTokenException()
        try:
            user_id = UUID(user_id)
        except (TypeError, ValueError):
            raise InvalidTokenException()

        result = await self.db_session.execute(select(User).filter(User.id == user_id))
        user = result.scalar_one_or_none()

        if user is None:
            raise UnauthorizedAccessException(detail="User not found")
        if not user.is_active:
            raise UnauthorizedAccessException(detail="Account is disabled")
        return user

    @staticmethod
    def _issue_token(user: User) -> str:
        return create_access_token(
            data={
                "user_id": str(user.id),
                "username": user.username,
                "display_name": user.display_name
            }
        )
