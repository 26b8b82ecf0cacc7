"""
Application configuration settings.
"""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Optional, Self

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "ADHD Screening API"
    APP_VERSION: str = "0.1.0"
    ENV: Literal["development", "test", "production"] = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Request bodies above this size are rejected (telemetry for five tasks is
    # a few hundred numbers, so 1 MB is generous)
    MAX_REQUEST_BODY_BYTES: int = Field(default=1024 * 1024, gt=0)

    # Scoring
    # Optional JSON file with threshold overrides; see
    # adhd_screen.core.diagnostics.thresholds for the document layout.
    SCORING_THRESHOLDS_PATH: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def validate_production_config(self) -> Self:
        """Debug mode must be off in production."""
        if self.ENV == "production" and self.DEBUG:
            raise ValueError("DEBUG must be False when ENV is 'production'")
        return self


settings = Settings()
