from fastapi import APIRouter, Depends, status
from roomchat.models.user import User
from roomchat.schemas.auth import RegisterRequest, LoginRequest, TokenResponse, CurrentUserResponse
from roomchat.dependencies.auth_dependencies import get_current_user
from roomchat.dependencies.service_dependencies import get_auth_service, get_user_service
from roomchat.services.auth_service import AuthService
from roomchat.services.user_service import UserService

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Register a new user.
    """
    user, access_token = await auth_service.register_user(request)
    return TokenResponse(
        access_token=access_token,
        user_id=user.id,
        username=user.username,
        display_name=user.display_name
    )

@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Authenticate a user and return a JWT.
    """
    user, access_token = await auth_service.login_user(request)
    return TokenResponse(
        access_token=access_token,
        user_id=user.id,
        username=user.username,
        display_name=user.display_name
    )

@router.get("/me", response_model=CurrentUserResponse)
async def me(current_user: User = Depends(get_current_user)):
    """
    Get the current authenticated user's details.
    """
    return CurrentUserResponse(
        user_id=current_user.id,
        username=current_user.username,
        display_name=current_user.display_name,
        email=current_user.email,
        avatar=current_user.avatar,
        is_online=current_user.is_online,
        last_seen=current_user.last_seen,
    )

@router.post("/logout")
async def logout(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """
    Mark the user offline. Tokens are stateless and stay valid until they expire.
    """
    await user_service.set_online(current_user.id, False)
    return {"message": "Logout successful"}
