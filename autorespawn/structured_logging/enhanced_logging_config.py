"""
Enhanced structlog-based logging configuration for the autorespawn subsystem.

This module provides structured logging with MDC (Mapped Diagnostic Context)
via contextvars, correlation IDs and credential sanitization.

All modules obtain loggers through get_logger() and log with keyword context:

    logger = get_logger(__name__)
    logger.info("Respawn scheduled", entity_id=entity_id, delay=5.0)
"""

import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, get_contextvars, merge_contextvars
from structlog.stdlib import BoundLogger, LoggerFactory

from .logging_processors import add_correlation_id, sanitize_sensitive_data

# NOTE: Infrastructure code may use structlog.get_logger() directly; everything
# else goes through get_logger() below.
logger = structlog.get_logger(__name__)

LOG_FILE_NAME = "autorespawn.log"


class _LoggingState:
    """State container for logging initialization to avoid global statements."""

    initialized: bool = False
    signature: str | None = None


_logging_state = _LoggingState()


def detect_environment() -> str:
    """
    Detect the current logging environment.

    Returns:
        "unit_test" under pytest, otherwise LOGGING_ENVIRONMENT or "local"
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return "unit_test"
    return os.getenv("LOGGING_ENVIRONMENT", "local")


def resolve_log_base(log_base: str) -> Path:
    """
    Resolve log_base path to an absolute path relative to the project root.

    Args:
        log_base: Relative or absolute path to log directory

    Returns:
        Absolute path to log directory
    """
    log_path = Path(log_base)
    if log_path.is_absolute():
        return log_path

    current_dir = Path.cwd()
    for parent in [current_dir] + list(current_dir.parents):
        if (parent / "pyproject.toml").exists():
            return parent / log_path
    return current_dir / log_path


def _setup_file_logging(environment: str, log_config: dict[str, Any], log_level: str) -> None:
    """Attach a rotating file handler for the environment's log directory."""
    env_log_dir = resolve_log_base(log_config.get("log_base", "logs")) / environment
    try:
        env_log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Failed to create log directory", directory=str(env_log_dir), error=str(e))
        return

    handler = RotatingFileHandler(
        env_log_dir / LOG_FILE_NAME,
        maxBytes=int(log_config.get("max_bytes", 10 * 1024 * 1024)),
        backupCount=int(log_config.get("backup_count", 5)),
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing, RotatingFileHandler) and existing.baseFilename == handler.baseFilename:
            root_logger.removeHandler(existing)
            existing.close()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def configure_enhanced_structlog(
    environment: str | None = None,
    log_level: str = "INFO",
    log_config: dict[str, Any] | None = None,
) -> None:
    """
    Configure structlog with MDC, sanitization and correlation IDs.

    Args:
        environment: Environment name (auto-detected if None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_config: Logging configuration dictionary
    """
    if environment is None:
        environment = detect_environment()

    base_processors = [
        # Security first - sanitize sensitive data
        sanitize_sensitive_data,
        add_correlation_id,
        merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_config and not log_config.get("disable_logging", False):
        _setup_file_logging(environment, log_config, log_level)

    structlog.configure(
        processors=base_processors + [structlog.processors.KeyValueRenderer(sort_keys=True)],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=False,
    )


def setup_enhanced_logging(config: dict[str, Any], *, force_reconfigure: bool = False) -> None:
    """
    Set up logging from the application configuration.

    Repeated calls with the same configuration are ignored unless
    force_reconfigure is set.

    Args:
        config: Configuration dictionary with a "logging" section
        force_reconfigure: When True, reconfigure even if already initialized
    """
    config_signature = json.dumps(config, sort_keys=True, default=str)

    if _logging_state.initialized and not force_reconfigure:
        get_logger("autorespawn.structured_logging.setup").debug(
            "setup_enhanced_logging skipped; logging system already initialized",
            config_signature=_logging_state.signature,
        )
        return

    logging_config = config.get("logging", {})
    environment = logging_config.get("environment") or detect_environment()
    log_level = str(logging_config.get("level", "INFO")).upper()

    if logging_config.get("disable_logging", False):
        configure_enhanced_structlog(environment, log_level, {"disable_logging": True})
    else:
        configure_enhanced_structlog(environment, log_level, logging_config)

    get_logger("autorespawn.structured_logging.enhanced").info(
        "Enhanced logging system initialized",
        environment=environment,
        log_level=log_level,
        log_base=logging_config.get("log_base", "logs"),
    )

    _logging_state.initialized = True
    _logging_state.signature = config_signature


def bind_entity_context(entity_id: str, entity_name: str | None = None, **kwargs: Any) -> None:
    """
    Bind entity identity to every log line emitted in the current context.

    Args:
        entity_id: Managed entity identifier
        entity_name: Optional display name
        **kwargs: Extra context values
    """
    context: dict[str, Any] = {"entity_id": entity_id}
    if entity_name is not None:
        context["entity_name"] = entity_name
    context.update(kwargs)
    bind_contextvars(**context)


def clear_entity_context() -> None:
    """Clear all context variables bound for the current context."""
    clear_contextvars()


def get_current_context() -> dict[str, Any]:
    """Return the context variables currently bound."""
    return dict(get_contextvars())


def get_logger(name: str) -> Any:  # Returns BoundLogger but typed as Any for flexibility
    """
    Get a structlog logger with the specified name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)
