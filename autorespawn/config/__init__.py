"""
Configuration module for the autorespawn subsystem.

This module provides type-safe, validated configuration using Pydantic BaseSettings.

Usage:
    from autorespawn.config import get_config

    config = get_config()
    logger.info("Auto-respawn configuration", enabled=config.auto_respawn.enabled)

Configuration is reloadable: reset_config() drops the cached snapshot and the
next get_config() call reads the environment again.
"""

import sys
import threading
from functools import lru_cache
from os import getenv

from .models import AppConfig, AutoRespawnConfig, ClassifierSettings, DatabaseConfig, LoggingConfig

__all__ = [
    "AppConfig",
    "AutoRespawnConfig",
    "ClassifierSettings",
    "DatabaseConfig",
    "LoggingConfig",
    "get_config",
    "get_auto_respawn_config",
    "reset_config",
]

_config_instance: AppConfig | None = None
_config_lock = threading.Lock()


def _is_test_mode() -> bool:
    """
    Detect if running in test environment.

    Returns:
        bool: True if running under pytest
    """
    if "pytest" in sys.modules:
        return True
    return bool(getenv("PYTEST_CURRENT_TEST"))


@lru_cache(maxsize=1)
def _get_config_cached() -> AppConfig:
    """
    Production config loader with caching.

    Returns:
        AppConfig: Cached application configuration
    """
    global _config_instance  # pylint: disable=global-statement  # Reason: Singleton pattern for configuration
    with _config_lock:
        if _config_instance is None:
            _config_instance = AppConfig()
    return _config_instance


def get_config() -> AppConfig:
    """
    Get application configuration (singleton in production, fresh in tests).

    Returns:
        AppConfig: The application configuration

    Raises:
        pydantic.ValidationError: If configuration is invalid or required fields are missing
    """
    if _is_test_mode():
        return AppConfig()
    return _get_config_cached()


def get_auto_respawn_config() -> AutoRespawnConfig:
    """Configuration provider used by the orchestrator: the current auto-respawn snapshot."""
    return get_config().auto_respawn


def reset_config() -> None:
    """
    Reset the configuration cache so the next read reloads from the environment.
    """
    global _config_instance  # pylint: disable=global-statement  # Reason: Singleton pattern for configuration
    with _config_lock:
        _get_config_cached.cache_clear()
        _config_instance = None
