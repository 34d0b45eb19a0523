"""
Configuration management using Pydantic Settings.
Loads configuration from environment variables and .env file.
"""
from typing import Dict, List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_NAME: str = "postgres"
    DATABASE_USER: str = "lessonguard_user"
    DATABASE_PASSWORD: str  # Required - no default for security
    DB_SCHEMA: str = "lessonguard"  # Schema name for all tables
    DB_CREATE_TABLES: bool = False  # Create missing tables on startup (local development)

    # Application Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # CORS Configuration
    CORS_ORIGINS: str = "*"

    # Database Pool Configuration
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # Development/Debug
    DEBUG: bool = False
    RELOAD: bool = False

    # Session (identity provider) JWT Configuration
    JWT_SECRET_KEY: str  # Required - no default for security
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 30

    # Content Encryption Configuration
    CONTENT_MASTER_KEY: str  # Required - wraps every per-lesson content key
    CONTENT_KEY_VERSION: str = "v1"  # Version tag stored with each wrapped key
    CONTENT_RETIRED_MASTER_KEYS: Optional[str] = None  # "v0:old-secret,..." - decrypt only
    ENCRYPTION_PROVIDER: str = "local"  # Options: local (future: aws-kms, gcp-kms)

    # Playback Token Configuration
    PLAYBACK_TOKEN_TTL_MINUTES: int = Field(default=15, ge=5, le=30)
    PLAYBACK_BIND_DEVICE: bool = True  # Bind tokens to the requesting device fingerprint
    MAX_DEVICES_PER_USER: int = 2
    MEDIA_STORAGE_PATH: str = "/app/data/media"
    MEDIA_BASE_URL: str = "http://localhost:8000"

    # Suspicious Activity Audit
    SUSPICIOUS_ACTIVITY_ALERT_THRESHOLD: int = 3  # Events per window before review flag
    SUSPICIOUS_ACTIVITY_WINDOW_HOURS: int = 24

    # Logging Configuration (Optional - per-module log levels)
    APP_LOG_LEVEL: Optional[str] = None
    SQLALCHEMY_LOG_LEVEL: Optional[str] = None
    UVICORN_LOG_LEVEL: Optional[str] = None
    HTTPX_LOG_LEVEL: Optional[str] = None
    ASYNCPG_LOG_LEVEL: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @property
    def database_url(self) -> str:
        """Construct async database URL."""
        return (
            f"postgresql+asyncpg://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def content_master_keys(self) -> Dict[str, str]:
        """
        Master secrets by key version.

        The current CONTENT_MASTER_KEY is registered under CONTENT_KEY_VERSION.
        Retired secrets stay available for unwrapping content keys that were
        written before a rotation.
        """
        keys: Dict[str, str] = {}
        if self.CONTENT_RETIRED_MASTER_KEYS:
            for item in self.CONTENT_RETIRED_MASTER_KEYS.split(","):
                version, _, secret = item.strip().partition(":")
                if version and secret:
                    keys[version] = secret
        keys[self.CONTENT_KEY_VERSION] = self.CONTENT_MASTER_KEY
        return keys


# Global settings instance
settings = Settings()
