"""
Retry utilities for transient database errors.

This module provides a retry decorator for profile store coroutines that
retries transient driver errors with exponential backoff.
"""

import asyncio
import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


# Transient database errors that should be retried
TRANSIENT_ERRORS = (
    "PoolAcquireTimeoutError",
    "PostgresConnectionError",
    "ConnectionDoesNotExistError",
    "InterfaceError",
    "OperationalError",
)

TRANSIENT_MESSAGE_MARKERS = ("connection", "timeout", "database is locked", "temporary")


def is_transient_error(error: Exception) -> bool:
    """
    Check if an error is a transient database error that should be retried.

    Args:
        error: The exception to check

    Returns:
        bool: True if the error is transient and should be retried
    """
    error_type = type(error).__name__
    error_module = type(error).__module__

    if error_type in TRANSIENT_ERRORS:
        return True

    if "asyncpg" in error_module:
        if "PoolAcquireTimeoutError" in error_type or "PostgresConnectionError" in error_type:
            return True

    # SQLAlchemy wraps driver errors; look at the original where one is attached
    original = getattr(error, "orig", None)
    if original is not None and original is not error:
        if type(original).__name__ in TRANSIENT_ERRORS:
            return True
        error_msg = str(original).lower()
        if any(marker in error_msg for marker in TRANSIENT_MESSAGE_MARKERS):
            return True

    return False


def retry_with_backoff(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    retry_on: tuple[type[Exception], ...] | None = None,
) -> Callable[[F], F]:
    """
    Decorator to retry a coroutine function with exponential backoff on transient errors.

    Sleeps with asyncio.sleep() so the event loop is never blocked between attempts.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        initial_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 10.0)
        exponential_base: Base for exponential backoff (default: 2.0)
        retry_on: Specific exception types to retry on (default: None, uses is_transient_error)

    Returns:
        Decorated coroutine function with retry logic

    Example:
        @retry_with_backoff(max_attempts=3, initial_delay=1.0)
        async def _fetch_record(self, entity_id: str):
            ...
    """

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"retry_with_backoff requires a coroutine function, got {func.__name__}")

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            last_error: Exception | None = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    last_error = e

                    if retry_on:
                        should_retry = isinstance(e, retry_on)
                    else:
                        should_retry = is_transient_error(e)

                    if not should_retry or attempt >= max_attempts:
                        logger.error(
                            "Function failed after retries",
                            function=func.__name__,
                            attempt=attempt,
                            max_attempts=max_attempts,
                            error=str(e),
                            error_type=type(e).__name__,
                            should_retry=should_retry,
                        )
                        raise

                    delay = min(initial_delay * (exponential_base ** (attempt - 1)), max_delay)

                    logger.warning(
                        "Transient error detected, retrying",
                        function=func.__name__,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        delay=delay,
                        error=str(e),
                        error_type=type(e).__name__,
                    )

                    await asyncio.sleep(delay)

            # Unreachable while max_attempts >= 1
            if last_error:
                raise last_error
            raise RuntimeError("Retry logic failed unexpectedly")

        return async_wrapper  # type: ignore[return-value]

    return decorator
