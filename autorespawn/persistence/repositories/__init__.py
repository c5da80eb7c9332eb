"""Concrete repositories backed by SQLAlchemy async sessions."""

from .respawn_repository import RespawnRepository

__all__ = ["RespawnRepository"]
