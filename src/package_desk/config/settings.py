"""
Configuration management for the Package Desk application.

This module handles all configuration settings including the Supabase
connection, API server, logging and desk defaults using Pydantic settings.
"""

from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import field_validator, Field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class SupabaseConfig(BaseSettings):
    """Supabase-specific configuration settings."""

    url: str = "https://placeholder.supabase.co"
    key: str = "placeholder_key"
    timeout: int = 30
    schema_name: str = Field("public", description="Postgres schema holding the desk tables")

    class Config:
        env_prefix = "SUPABASE_"
        case_sensitive = False
        extra = "ignore"

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate Supabase URL format."""
        if not v.startswith(("https://", "http://")):
            raise ValueError("Invalid Supabase URL format")
        return v.rstrip("/")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Validate request timeout."""
        if v < 1 or v > 300:
            raise ValueError("Timeout must be between 1 and 300 seconds")
        return v


class APIConfig(BaseSettings):
    """API server configuration."""

    host: str = "localhost"
    port: int = 8000
    environment: str = "development"
    debug: bool = True
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    class Config:
        env_prefix = "API_"
        case_sensitive = False
        extra = "ignore"


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_prefix = "LOG_"
        case_sensitive = False
        extra = "ignore"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class DeskConfig(BaseSettings):
    """Package desk behaviour settings."""

    default_operator: str = Field("Staff", description="Operator label used when none is entered")
    recent_checkouts_limit: int = Field(5, description="Number of entries in the recent check-outs view")
    realtime_channel: str = Field("packages-changes", description="Prefix for realtime channel names")

    class Config:
        env_prefix = "DESK_"
        case_sensitive = False
        extra = "ignore"

    @field_validator("default_operator")
    @classmethod
    def validate_default_operator(cls, v: str) -> str:
        """Default operator must be a non-empty label."""
        if not v.strip():
            raise ValueError("Default operator cannot be empty")
        return v.strip()

    @field_validator("recent_checkouts_limit")
    @classmethod
    def validate_recent_limit(cls, v: int) -> int:
        """Validate recent check-outs cap."""
        if v < 1 or v > 100:
            raise ValueError("Recent check-outs limit must be between 1 and 100")
        return v


class AppConfig(BaseSettings):
    """Main application configuration."""

    environment: str = "development"
    debug: bool = True

    # Sub-configurations
    supabase: SupabaseConfig
    api: APIConfig
    logging: LoggingConfig
    desk: DeskConfig

    def __init__(self, **kwargs):
        # Initialize sub-configurations
        kwargs.setdefault("supabase", SupabaseConfig())
        kwargs.setdefault("api", APIConfig())
        kwargs.setdefault("logging", LoggingConfig())
        kwargs.setdefault("desk", DeskConfig())
        super().__init__(**kwargs)

    class Config:
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra environment variables


# Global configuration instance
config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the global configuration instance.

    Returns:
        AppConfig: The application configuration instance.
    """
    global config
    if config is None:
        config = AppConfig()
    return config


def reload_config() -> AppConfig:
    """
    Reload the configuration from environment variables.

    Returns:
        AppConfig: The reloaded application configuration instance.
    """
    global config
    config = AppConfig()
    return config
