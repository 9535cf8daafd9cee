"""Application configuration settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "carechat"

    # Application
    APP_NAME: str = "CareChat API"
    API_V1_PREFIX: str = "/api/v1"
    PORT: int = 8000

    # CORS - frontends allowed to call the API and open sockets
    BACKEND_CORS_ORIGINS: str = '["http://localhost:5173", "http://localhost:8080"]'

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

    # JWT - tokens are issued by the auth service, verified here
    JWT_SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Shared secret for collaborator services (booking -> chat events)
    INTERNAL_API_KEY: Optional[str] = None

    # Chat attachments
    CHAT_MAX_ATTACHMENTS: int = 5
    CHAT_MAX_ATTACHMENT_BYTES: int = 10 * 1024 * 1024  # 10MB per file
    CHAT_MAX_MESSAGE_BYTES: int = 15 * 1024 * 1024  # MongoDB documents are capped at 16MB
    CHAT_ALLOWED_CONTENT_TYPES: str = '["image/jpeg", "image/png", "image/webp", "application/pdf"]'

    # Web push (optional)
    VAPID_PUBLIC_KEY: Optional[str] = None
    VAPID_PRIVATE_KEY: Optional[str] = None
    VAPID_CLAIMS_EMAIL: str = "support@carechat.local"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from JSON string."""
        try:
            return json.loads(self.BACKEND_CORS_ORIGINS)
        except ValueError:
            return ["http://localhost:5173"]

    @property
    def chat_allowed_content_types(self) -> List[str]:
        """Parse allowed attachment content types from JSON string."""
        return json.loads(self.CHAT_ALLOWED_CONTENT_TYPES)


settings = Settings()
