import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response, status
from sqlalchemy.orm import Session

from ...config import settings
from ...database import get_db
from ...schemas.user import UserCreate, UserResponse, LoginRequest
from ...schemas.auth import CsrfTokenResponse, TokenValidity
from ...schemas.result import Result
from ...services.authService import AuthService
from ...services.token_service import SessionTokenManager
from ...security import generate_csrf_token
from ...core.cookies import clear_session_cookies, set_csrf_cookie, set_session_cookies
from ...dependencies import get_current_user, get_optional_user, get_token_manager
from ...models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/register",
    response_model=Result[UserResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    user_data: UserCreate,
    response: Response,
    db: Session = Depends(get_db),
    token_manager: SessionTokenManager = Depends(get_token_manager),
):
    """
    Register a new user and start a session.

    - **email**: Valid email address (unique, case-insensitive)
    - **name**: Display name
    - **password**: Password (8-72 chars)

    Returns:
        Result[UserResponse]: Success result with created user data
    """
    session = AuthService(db, token_manager).register(user_data)
    set_session_cookies(response, session.tokens, session.csrf_token)
    return Result.successful(data=session.user, message="Registration successful")


@router.post("/login", response_model=Result[UserResponse])
async def login(
    credentials: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    token_manager: SessionTokenManager = Depends(get_token_manager),
):
    """
    Login with email and password.

    The token pair and a fresh anti-forgery token are set as cookies.

    Returns:
        Result[UserResponse]: Success result with the signed-in user
    """
    session = AuthService(db, token_manager).login(credentials.email, credentials.password)
    set_session_cookies(response, session.tokens, session.csrf_token)
    return Result.successful(data=session.user, message="Login successful")


@router.post("/logout", response_model=Result[dict])
async def logout(
    response: Response,
    token: Optional[str] = Cookie(None, alias=settings.JWT_COOKIE_NAME),
):
    """
    Logout. Clears every session cookie; succeeds even without a session.
    """
    if token:
        logger.info("Logout")
        clear_session_cookies(response)
    return Result.successful(message="Logout successful")


@router.post("/refresh", response_model=Result[dict])
async def refresh(
    response: Response,
    access_token: Optional[str] = Cookie(None, alias=settings.JWT_COOKIE_NAME),
    refresh_token: Optional[str] = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
    db: Session = Depends(get_db),
    token_manager: SessionTokenManager = Depends(get_token_manager),
):
    """
    Swap an expired access token for a new pair.

    - 400 when either cookie is missing
    - 406 when the access token has not expired yet
    - 205 with all session cookies cleared when the refresh token is bad
    """
    session = AuthService(db, token_manager).refresh(access_token, refresh_token)
    set_session_cookies(response, session.tokens, session.csrf_token)
    return Result.successful(message="Token refreshed")


@router.get("/whoami", response_model=Result[Optional[UserResponse]])
async def whoami(current_user: Optional[User] = Depends(get_optional_user)):
    """The signed-in user, or null for anonymous callers."""
    return Result.successful(data=current_user)


@router.get("/validate", response_model=Result[TokenValidity])
async def validate(current_user: User = Depends(get_current_user)):
    """200 while the access token is valid, 401 otherwise."""
    return Result.successful(data=TokenValidity(valid=True))


@router.get("/csrf-token", response_model=CsrfTokenResponse)
async def csrf_token(response: Response):
    """Issue an anti-forgery token as a cookie and in the body."""
    token = generate_csrf_token()
    set_csrf_cookie(response, token)
    return CsrfTokenResponse(csrfToken=token)
