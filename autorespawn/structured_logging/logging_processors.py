"""
Logging processors for structlog event processing.

This module provides processors for sanitizing sensitive data and adding
correlation IDs to every event.
"""

import re
import uuid
from typing import Any

# Database URLs and credentials occasionally end up in error details
_SENSITIVE_PATTERNS = [
    r"\bpassword\b",
    r"\btoken\b",
    r"\bsecret\b",
    r"_key\b",
    r"^key$",
    r"\bcredential\b",
    r"\bdsn\b",
]

_SAFE_FIELDS = {
    "entity_key",
    "world_key",
}

_URL_PASSWORD = re.compile(r"(?P<prefix>[a-z0-9+]+://[^:/@]+:)(?P<password>[^@]+)(?P<suffix>@)")


def _redact_url(value: Any) -> Any:
    """Mask the password part of a database URL embedded in a string value."""
    if isinstance(value, str) and "://" in value:
        return _URL_PASSWORD.sub(r"\g<prefix>***\g<suffix>", value)
    return value


def sanitize_sensitive_data(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Remove sensitive data from log entries.

    Redacts values whose keys look like credentials and masks passwords in
    connection URLs.

    Args:
        _logger: Logger instance (unused)
        _name: Logger name (unused)
        event_dict: Event dictionary to sanitize

    Returns:
        Sanitized event dictionary
    """

    def sanitize_dict(d: dict[str, Any]) -> dict[str, Any]:
        """Recursively sanitize dictionary values."""
        sanitized: dict[str, Any] = {}
        for key, value in d.items():
            if isinstance(value, dict):
                sanitized[key] = sanitize_dict(value)
                continue
            key_lower = str(key).lower()
            if key_lower in _SAFE_FIELDS:
                sanitized[key] = value
            elif any(re.search(pattern, key_lower) for pattern in _SENSITIVE_PATTERNS):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = _redact_url(value)
        return sanitized

    return sanitize_dict(event_dict)


def add_correlation_id(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Add correlation ID to log entries if not already present.

    Args:
        _logger: Logger instance (unused)
        _name: Logger name (unused)
        event_dict: Event dictionary to enhance

    Returns:
        Enhanced event dictionary with correlation ID
    """
    if "correlation_id" not in event_dict:
        event_dict["correlation_id"] = str(uuid.uuid4())

    return event_dict
