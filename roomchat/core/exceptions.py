# roomchat/core/exceptions.py

from enum import Enum

from fastapi import HTTPException, status

# Base Exception
class BaseAPIException(HTTPException):
    """Base class for all custom API exceptions.

    ``code`` is the stable, machine-readable error category sent to HTTP and
    WebSocket clients alongside the human-readable detail.
    """
    code = "error"

    def __init__(self, status_code: int, detail: str, headers: dict = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


# Authentication & Authorization Exceptions
class AuthException(BaseAPIException):
    code = "auth_error"

class InvalidCredentialsException(AuthException):
    """Exception raised when credentials are invalid."""
    def __init__(self, detail="Invalid username or password"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)

class TokenExpiredException(AuthException):
    """Exception raised when a token has expired."""
    def __init__(self, detail="Token has expired"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class InvalidTokenException(AuthException):
    """Exception raised when a token is invalid or missing."""
    def __init__(self, detail="Invalid token"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class UnauthorizedAccessException(BaseAPIException):
    """Exception raised for unauthorized access attempts."""
    code = "denied"

    def __init__(self, detail="Access denied"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class DenialReason(str, Enum):
    MISSING_KEY = "missing_key"
    EXPIRED = "expired"
    MISMATCH = "mismatch"

_DENIAL_DETAILS = {
    DenialReason.MISSING_KEY: "Access key required for private room",
    DenialReason.EXPIRED: "Access key has expired",
    DenialReason.MISMATCH: "Invalid access key",
}

class AccessDeniedException(UnauthorizedAccessException):
    """Exception raised when a private room refuses a join."""
    def __init__(self, reason: DenialReason, detail: str = None):
        self.reason = reason
        super().__init__(detail=detail or _DENIAL_DETAILS[reason])


# Conflict Exceptions
class ConflictException(BaseAPIException):
    code = "conflict"

    def __init__(self, detail="Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

class UserAlreadyExistsException(ConflictException):
    """Exception raised when a user already exists."""
    def __init__(self, detail="Username or email already exists"):
        super().__init__(detail=detail)

class RoomAlreadyExistsException(ConflictException):
    """Exception raised when a room with the same name already exists."""
    def __init__(self, detail="Room name already exists"):
        super().__init__(detail=detail)

class AlreadyMemberException(ConflictException):
    """Exception raised when joining a room the user already belongs to."""
    def __init__(self, detail="You are already a member of this room"):
        super().__init__(detail=detail)


# Not Found Exceptions
class NotFoundException(BaseAPIException):
    code = "not_found"

    def __init__(self, detail="Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class UserNotFoundException(NotFoundException):
    """Exception raised when a user is not found."""
    def __init__(self, detail="User not found"):
        super().__init__(detail=detail)

class RoomNotFoundException(NotFoundException):
    """Exception raised when a room is not found."""
    def __init__(self, detail="Room not found"):
        super().__init__(detail=detail)

class MessageNotFoundException(NotFoundException):
    """Exception raised when a message is not found."""
    def __init__(self, detail="Message not found"):
        super().__init__(detail=detail)


# Room & Chat Exceptions
class RoomFullException(BaseAPIException):
    """Exception raised when a room has reached its maximum capacity."""
    code = "capacity_exceeded"

    def __init__(self, detail="Room is at maximum capacity"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

class InvalidMessageContentException(BaseAPIException):
    """Exception raised when message content fails validation."""
    code = "invalid_content"

    def __init__(self, detail="Message must be between 1 and 1000 characters"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)

class NotInRoomException(BaseAPIException):
    """Exception raised when an action needs an active room session."""
    code = "not_in_room"

    def __init__(self, detail="User not in any room"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


# Validation & Input Exceptions
class InvalidInputException(BaseAPIException):
    """Exception raised when input data is invalid."""
    code = "invalid_input"

    def __init__(self, detail="Invalid input data"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


# Database & System Exceptions
class InternalServerErrorException(BaseAPIException):
    """Exception raised for internal server errors."""
    code = "internal_error"

    def __init__(self, detail="Internal server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)

class MessageNotSentException(InternalServerErrorException):
    """Exception raised when a message fails to persist."""
    def __init__(self, detail="Failed to send message"):
        super().__init__(detail=detail)
