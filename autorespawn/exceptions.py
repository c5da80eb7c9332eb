"""
Exception hierarchy for the autorespawn subsystem.

Every failure raised inside the subsystem derives from AutoRespawnError and
carries an ErrorContext so that log lines and operator notifications can name
the entity and the action that was being attempted.
"""

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ErrorContext:
    """
    Contextual information for error handling.

    Provides structured context for error reporting and debugging.
    """

    entity_id: str | None = None
    entity_name: str | None = None
    action: str | None = None
    death_reason: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging."""
        return {
            "entity_id": self.entity_id,
            "entity_name": self.entity_name,
            "action": self.action,
            "death_reason": self.death_reason,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class AutoRespawnError(Exception):
    """
    Base exception for all autorespawn errors.

    Provides structured error handling with context and metadata
    for proper error categorization and debugging.
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        details: dict[str, Any] | None = None,
        user_friendly: str | None = None,
    ):
        """
        Initialize the error.

        Args:
            message: Technical error message
            context: Error context information
            details: Additional error details
            user_friendly: Operator-facing error message
        """
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.details = details or {}
        self.user_friendly = user_friendly or message
        self.timestamp = datetime.now(UTC)

        self._log_error()

    def _log_error(self):
        """Log the error with structured context."""
        logger.error(
            "AutoRespawn error occurred",
            error_type=self.__class__.__name__,
            message=self.message,
            context=self.context.to_dict(),
            details=self.details,
            timestamp=self.timestamp.isoformat(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for notifications and diagnostics."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "user_friendly": self.user_friendly,
            "context": self.context.to_dict(),
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class DatabaseError(AutoRespawnError):
    """Profile store operation errors."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        operation: str = "unknown",
        table: str | None = None,
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.operation = operation
        self.table = table
        self.details["operation"] = operation
        if table:
            self.details["table"] = table


class ValidationError(AutoRespawnError):
    """Data validation errors."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        field: str | None = None,
        value: Any | None = None,
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.field = field
        self.value = value
        if field:
            self.details["field"] = field
        if value is not None:
            self.details["value"] = str(value)


class ConfigurationError(AutoRespawnError):
    """Configuration and setup errors."""

    def __init__(self, message: str, context: ErrorContext | None = None, config_key: str | None = None, **kwargs):
        super().__init__(message, context, **kwargs)
        self.config_key = config_key
        if config_key:
            self.details["config_key"] = config_key


class SpawnError(AutoRespawnError):
    """The entity lifecycle collaborator could not create the entity."""

    def __init__(self, message: str, context: ErrorContext | None = None, entity_name: str | None = None, **kwargs):
        super().__init__(message, context, **kwargs)
        self.entity_name = entity_name
        if entity_name:
            self.details["entity_name"] = entity_name


class WorldUnavailableError(SpawnError):
    """The target world is not loaded; retryable at the next recovery scan."""

    def __init__(self, message: str, context: ErrorContext | None = None, world: str | None = None, **kwargs):
        super().__init__(message, context, **kwargs)
        self.world = world
        if world:
            self.details["world"] = world


def create_error_context(**kwargs) -> ErrorContext:
    """
    Create an error context with the given parameters.

    Args:
        **kwargs: Context parameters

    Returns:
        ErrorContext object
    """
    return ErrorContext(**kwargs)


def handle_exception(exc: Exception, context: ErrorContext | None = None) -> AutoRespawnError:
    """
    Convert a generic exception to an AutoRespawnError.

    Args:
        exc: The original exception
        context: Error context

    Returns:
        AutoRespawnError instance
    """
    if isinstance(exc, AutoRespawnError):
        return exc

    if isinstance(exc, ValueError | TypeError):
        return ValidationError(str(exc), context, details={"original_type": type(exc).__name__})
    elif isinstance(exc, ConnectionError | TimeoutError):
        return SpawnError(str(exc), context, details={"original_type": type(exc).__name__})
    else:
        return AutoRespawnError(
            str(exc), context, details={"original_type": type(exc).__name__, "traceback": traceback.format_exc()}
        )
