from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    DATABASE_URL: str = Field(
        "sqlite+aiosqlite:///./quiz_app.db",
        description="Async SQLAlchemy URL (sqlite+aiosqlite:// for dev, postgresql+asyncpg:// for prod)",
    )

    # Environment
    ENV: str = "development"  # development, staging, production
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # API
    API_PREFIX: str = "/api"
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])
    REQUEST_TIMEOUT_SECONDS: float = 15.0

    # Quiz Settings
    QUIZ_RETENTION_DAYS: int = 7
    MAX_QUESTIONS_PER_QUIZ: int = 5
    MAX_OPTIONS_PER_QUESTION: int = 10

    # Identifiers
    ACCESS_CODE_LENGTH: int = 8
    SLUG_SUFFIX_LENGTH: int = 8
    DASHBOARD_TOKEN_BYTES: int = 32
    IDENTIFIER_MAX_ATTEMPTS: int = 5

    # Cleanup Settings
    CLEANUP_ENABLED: bool = True
    CLEANUP_INITIAL_DELAY_SECONDS: float = 60.0
    CLEANUP_INTERVAL_HOURS: int = 24
    CLEANUP_JOB_ID: str = "expired_quiz_cleanup"

    # Media
    MEDIA_BACKEND: str = Field("local", description="local or cloudinary")
    MEDIA_ROOT: str = "uploads"
    MEDIA_URL_PREFIX: str = "/media"
    MEDIA_TIMEOUT_SECONDS: float = 20.0
    MEDIA_CLEANUP_TIMEOUT_SECONDS: float = 60.0
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    CLOUDINARY_FOLDER: str = "quiz_images"

    # Uploads
    UPLOAD_MAX_BYTES: int = 10 * 1024 * 1024
    ALLOWED_IMAGE_EXTENSIONS: List[str] = Field(default_factory=lambda: ["jpg", "jpeg", "png", "gif"])

settings = Settings()
