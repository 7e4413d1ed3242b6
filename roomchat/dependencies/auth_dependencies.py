from typing import Optional

from fastapi import Depends, Query, WebSocket
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from roomchat.models.user import User
from roomchat.core.exceptions import AuthException, InvalidTokenException, UnauthorizedAccessException
from roomchat.dependencies.service_dependencies import get_auth_service
from roomchat.services.auth_service import AuthService

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Dependency for standard HTTP routes to get the current user from a Bearer token.
    """
    if credentials is None:
        raise InvalidTokenException(detail="Token not provided")
    return await auth_service.authenticate(credentials.credentials)


async def get_current_user_from_websocket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    auth_service: AuthService = Depends(get_auth_service),
) -> User | None:
    """
    Dependency for WebSocket routes to get the current user from a token
    in the query parameters. Returns None on failure to allow the endpoint
    to close the connection gracefully.
    """
    try:
        return await auth_service.authenticate(token)
    except (AuthException, UnauthorizedAccessException):
        return None
