"""
Authentication routes
"""
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ...schemas import (
    MessageResponse, SessionResponse, UserLogin, UserRegister, UserResponse,
)
from ...application.services import UserService
from ..dependencies import get_client_id, get_user_service, set_session_cookie


router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    request: Request,
    response: Response,
    client_id: str = Depends(get_client_id),
    user_service: UserService = Depends(get_user_service)
):
    """
    Register a new user and open a session

    - **name**: Display name
    - **email**: Unique email address (case-insensitive)
    - **password**: At least 6 characters
    - **remember**: Keep the session across restarts
    """
    result = await user_service.register(
        name=user_data.name,
        email=user_data.email,
        password=user_data.password,
        remember=user_data.remember
    )

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.error
        )

    set_session_cookie(request, response, client_id, user_data.remember)
    return UserResponse.model_validate(result.data)


@router.post("/login", response_model=UserResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    response: Response,
    client_id: str = Depends(get_client_id),
    user_service: UserService = Depends(get_user_service)
):
    """
    Login with email and password

    - **email**: Email address
    - **password**: User password
    - **remember**: Keep the session across restarts
    """
    user = await user_service.login(credentials.email, credentials.password, credentials.remember)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    set_session_cookie(request, response, client_id, credentials.remember)
    return UserResponse.model_validate(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(user_service: UserService = Depends(get_user_service)):
    """End the current session"""
    user_service.logout()
    return MessageResponse(message="Successfully logged out")


@router.get("/session", response_model=SessionResponse)
async def get_session(user_service: UserService = Depends(get_user_service)):
    """Current session, or an anonymous one"""
    session = user_service.get_session()
    if session is None:
        return SessionResponse(authenticated=False)

    return SessionResponse(
        authenticated=True,
        remembered=session.remembered,
        user=UserResponse.model_validate(session.user)
    )
