"""
API configuration settings.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class APIConfig(BaseSettings):
    """API configuration settings, read once at startup and never mutated."""

    # API Settings
    api_title: str = "Book Directory API"
    api_version: str = "1.0.0"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Database Settings
    mongodb_url: str = Field(
        default="mongodb://localhost:27017",
        validation_alias=AliasChoices("MONGODB_URL", "MONGO_URL"),
    )
    mongodb_database: str = Field(
        default="book_directory",
        validation_alias=AliasChoices("MONGODB_DATABASE"),
    )

    # Session Settings
    session_secret: str = Field(
        default="change-me-in-production",
        validation_alias=AliasChoices("SESSION_SECRET", "SESSION_KEY"),
    )
    session_cookie_name: str = "book_directory_sid"
    session_ttl_seconds: int = 24 * 60 * 60  # 1 day
    session_cookie_secure: bool = False

    # Password hashing
    bcrypt_rounds: int = 10

    # CORS Settings
    cors_origins: List[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @field_validator("session_ttl_seconds")
    @classmethod
    def validate_session_ttl(cls, v):
        """Ensure sessions live for a positive amount of time."""
        if v <= 0:
            raise ValueError("session_ttl_seconds must be positive")
        return v

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v):
        """bcrypt accepts cost factors between 4 and 31."""
        if v < 4 or v > 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()


@lru_cache()
def get_config() -> APIConfig:
    """Build the process-wide configuration from the environment."""
    return APIConfig()
