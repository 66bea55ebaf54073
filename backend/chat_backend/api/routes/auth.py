"""
Authentication API endpoints.
"""
import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from chat_backend.core.config import settings
from chat_backend.core.deps import get_db
from chat_backend.core.exceptions import (
    BadRequestError,
    InvalidCredentialsError,
    UnauthorizedError,
)
from chat_backend.models.user import User
from chat_backend.schemas.auth import TokenOut, UserLogin, UserRegister
from chat_backend.services.auth import (
    authenticate_user,
    create_user,
    get_user_by_username,
    issue_session_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def set_session_cookie(response: Response, token: str) -> None:
    """Relay the session token as an HTTP-only cookie."""
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def start_session(response: Response, user: User) -> TokenOut:
    token = issue_session_token(str(user.id), user.username)
    set_session_cookie(response, token)
    return TokenOut(token=token)


@router.post("/login", response_model=TokenOut)
def login(
    data: UserLogin,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Authenticate user and return a session token.

    The token is returned in the body and also set as the `jwt` cookie.
    Unknown usernames and wrong passwords get the same 400 response.
    """
    user = authenticate_user(db, data.username, data.password)
    if not user:
        logger.info(f"Failed login attempt for {data.username}")
        raise InvalidCredentialsError()

    logger.info(f"User logged in: {user.username}")
    return start_session(response, user)


@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
def register(
    data: UserRegister,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Register a new user and start a session.

    - **username**: Unique username (3-50 characters)
    - **password**: Password (8+ characters)
    """
    if get_user_by_username(db, data.username):
        raise BadRequestError("Username is already taken")

    user = create_user(db=db, username=data.username, password=data.password)
    logger.info(f"User registered: {user.username}")
    return start_session(response, user)


@router.delete("/logout")
def logout(response: Response):
    """
    Clear the session cookie.

    Tokens are bearer credentials and stay valid until they expire.
    """
    response.delete_cookie(key=settings.AUTH_COOKIE_NAME, path="/")
    return {"message": "Logged out"}


@router.get("/socket-token", response_model=TokenOut)
def socket_token(request: Request):
    """Hand the cookie-held session token to a browser client for the WebSocket handshake."""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        raise UnauthorizedError("No JWT token found in cookies")
    return TokenOut(token=token)
