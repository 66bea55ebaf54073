from typing import Optional

from pydantic import BaseModel, Field, field_validator

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


class UserRegister(BaseModel):
    """User registration request"""

    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_-]+$")
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH
    )

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: str) -> str:
        return v.strip()


class UserLogin(BaseModel):
    """Login request"""

    username: str
    password: str


class TokenOut(BaseModel):
    """Session token response"""

    token: str


class TokenData(BaseModel):
    """Verified session token payload"""

    user_id: str
    username: Optional[str] = None
