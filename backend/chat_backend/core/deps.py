"""
Common dependencies for FastAPI endpoints.
"""
from typing import Generator, Optional
from uuid import UUID

from fastapi import Depends, Request, WebSocket
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from chat_backend.core.config import settings
from chat_backend.core.exceptions import InvalidTokenError, UnauthorizedError
from chat_backend.db.session import SessionLocal
from chat_backend.models.user import User
from chat_backend.services.auth import get_user_by_id, verify_session_token
from chat_backend.services.gateway import ConnectionGateway

# Bearer header is optional: browsers send the session cookie instead
security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_request_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Session token from the Authorization header, else from the session cookie."""
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


async def get_current_user(
    token: Optional[str] = Depends(get_request_token),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from the session token.

    Args:
        token: Bearer token or `jwt` cookie value
        db: Database session

    Returns:
        Authenticated User object

    Raises:
        UnauthorizedError: If the token is missing, invalid, expired or the user is gone
    """
    if not token:
        raise UnauthorizedError()

    try:
        token_data = verify_session_token(token)
        user_id = UUID(token_data.user_id)
    except (InvalidTokenError, ValueError):
        raise UnauthorizedError("Invalid credentials")

    user = get_user_by_id(db, user_id)
    if user is None:
        raise UnauthorizedError("Invalid credentials")

    return user


async def get_current_user_optional(
    token: Optional[str] = Depends(get_request_token),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """
    Optionally get the current authenticated user.

    Returns None if no valid token is provided instead of raising an exception.
    """
    if not token:
        return None
    try:
        token_data = verify_session_token(token)
        user_id = UUID(token_data.user_id)
    except (InvalidTokenError, ValueError):
        return None
    return get_user_by_id(db, user_id)


async def get_history_reader(
    token: Optional[str] = Depends(get_request_token),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Caller of the message history endpoints; required unless history is public."""
    if settings.MESSAGE_HISTORY_REQUIRES_AUTH:
        return await get_current_user(token=token, db=db)
    return await get_current_user_optional(token=token, db=db)


def get_gateway(websocket: WebSocket) -> ConnectionGateway:
    """Connection gateway created at application startup."""
    return websocket.app.state.gateway
