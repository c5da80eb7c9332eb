"""Persistence layer for the autorespawn subsystem."""

from .protocols import ProfileStoreProtocol

__all__ = ["ProfileStoreProtocol"]
