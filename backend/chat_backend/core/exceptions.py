"""
Custom exceptions and global exception handlers.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = None,
    ):
        self.message = message
        self.status_code = status_code
        self.detail = detail or message
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class UnauthorizedError(AppException):
    """Authentication required."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class BadRequestError(AppException):
    """Invalid request."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class InvalidCredentialsError(BadRequestError):
    """
    Unknown username or wrong password.

    Both cases share one message so the response does not reveal which
    usernames exist.
    """

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class InvalidReferenceError(BadRequestError):
    """A message points at a channel or parent message that does not exist."""

    def __init__(self, message: str = "Invalid message reference"):
        super().__init__(message)


class PersistenceError(AppException):
    """Storage backend failed or is unavailable."""

    def __init__(self, message: str = "Server error"):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)


class InvalidTokenError(AppException):
    """Session token failed verification."""

    def __init__(self, message: str = "Authentication error: Invalid token"):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class TokenExpiredError(InvalidTokenError):
    """Session token signature is valid but the token has expired."""

    def __init__(self, message: str = "Authentication error: Token expired"):
        super().__init__(message)


class MissingTokenError(InvalidTokenError):
    """No session token was presented."""

    def __init__(self, message: str = "Authentication error: No token provided"):
        super().__init__(message)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "message": exc.message},
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle validation errors with user-friendly messages."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        msg = error["msg"]
        errors.append(f"{field}: {msg}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Request body is invalid",
            "errors": errors,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Server error",
            "message": "Server error",
        },
    )
