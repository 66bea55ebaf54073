import secrets
import warnings
from typing import List, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings


# Insecure default values that should never be used in production
INSECURE_JWT_SECRETS = {
    "CHANGE_ME_TO_RANDOM_SECRET_KEY",
    "secret",
    "your-secret-key",
    "changeme",
    "password",
    "",
}


class Settings(BaseSettings):
    PROJECT_NAME: str = "Channel Chat Backend"
    API_PREFIX: str = "/api"

    # ===========================================
    # Environment Mode
    # ===========================================
    ENV: Literal["development", "production"] = "development"

    # ===========================================
    # Database
    # ===========================================
    DATABASE_URL: str = "sqlite:///./chat.db"

    # ===========================================
    # Authentication
    # ===========================================
    JWT_SECRET_KEY: str = "CHANGE_ME_TO_RANDOM_SECRET_KEY"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60  # 1 hour

    # Session token is also relayed as an HTTP-only cookie
    AUTH_COOKIE_NAME: str = "jwt"
    AUTH_COOKIE_SECURE: bool = False

    # Comma separated list of allowed origins
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # ===========================================
    # Real-time Gateway
    # ===========================================
    # Room every authenticated connection belongs to
    GLOBAL_ROOM: str = "global"
    # Reject joinChannel for channels that are not in the directory
    VALIDATE_CHANNEL_EXISTENCE: bool = False
    # Require a session token for message history endpoints
    MESSAGE_HISTORY_REQUIRES_AUTH: bool = True

    # ===========================================
    # Bootstrap Data
    # ===========================================
    SEED_INITIAL_DATA: bool = True
    SEED_USERNAME: str = "testuser"
    SEED_PASSWORD: str = "password"
    SEED_CHANNELS: List[str] = ["general", "random"]

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Validate JWT secret key for security."""
        if v in INSECURE_JWT_SECRETS:
            import os
            if os.getenv("ENV", "development") == "production":
                raise ValueError(
                    "JWT_SECRET_KEY must be set to a secure random value in production. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
            # Development mode: generate temporary key with warning
            warnings.warn(
                "Using auto-generated JWT_SECRET_KEY. Set JWT_SECRET_KEY in .env for production.",
                UserWarning,
            )
            return secrets.token_hex(32)

        if len(v) < 32:
            raise ValueError(
                "JWT_SECRET_KEY must be at least 32 characters long for security. "
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )
        return v

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"


settings = Settings()
