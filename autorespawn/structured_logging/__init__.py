"""Structured logging for the autorespawn subsystem."""

from .enhanced_logging_config import (
    bind_entity_context,
    clear_entity_context,
    get_logger,
    setup_enhanced_logging,
)

__all__ = ["bind_entity_context", "clear_entity_context", "get_logger", "setup_enhanced_logging"]
