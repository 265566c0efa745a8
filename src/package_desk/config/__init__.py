"""
Configuration management package for Package Desk.

This package handles all configuration settings, validation, and management
for the package desk backend.
"""

from .settings import (
    get_config,
    reload_config,
    AppConfig,
    SupabaseConfig,
    APIConfig,
    LoggingConfig,
    DeskConfig,
)

__all__ = [
    "get_config",
    "reload_config",
    "AppConfig",
    "SupabaseConfig",
    "APIConfig",
    "LoggingConfig",
    "DeskConfig",
]
