"""
Error logging utilities for the autorespawn subsystem.

Standardized helpers so every failure is logged with the entity, the reason
and the attempted action before it propagates.
"""

from typing import Any

from ..exceptions import AutoRespawnError, ErrorContext, create_error_context
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


def log_and_raise(
    exception_class: type[AutoRespawnError],
    message: str,
    context: ErrorContext | None = None,
    details: dict[str, Any] | None = None,
    user_friendly: str | None = None,
    logger_name: str | None = None,
) -> None:
    """
    Log an error and raise an autorespawn exception.

    Args:
        exception_class: The AutoRespawnError subclass to raise
        message: Technical error message
        context: Error context information
        details: Additional error details
        user_friendly: Operator-facing error message
        logger_name: Specific logger name to use (defaults to current module)

    Raises:
        The specified AutoRespawnError subclass
    """
    error_logger = get_logger(logger_name) if logger_name else logger

    if context is None:
        context = create_error_context()

    error_logger.error(
        f"Error logged and exception raised: {message}",
        error_type=exception_class.__name__,
        entity_id=context.entity_id,
        action=context.action,
        details=details or {},
        user_friendly=user_friendly,
    )

    raise exception_class(
        message=message,
        context=context,
        details=details,
        user_friendly=user_friendly,
    )


def log_error_with_context(
    error: Exception,
    context: ErrorContext | None = None,
    level: str = "error",
    logger_name: str | None = None,
) -> None:
    """
    Log an exception that is handled locally rather than re-raised.

    Args:
        error: The exception to log
        context: Error context information
        level: Log level name (error, warning, info)
        logger_name: Specific logger name to use (defaults to current module)
    """
    error_logger = get_logger(logger_name) if logger_name else logger

    if context is None:
        context = create_error_context()

    log_method = getattr(error_logger, level, error_logger.error)
    log_method(
        "Error handled",
        error_type=type(error).__name__,
        error_message=str(error),
        context=context.to_dict(),
    )
