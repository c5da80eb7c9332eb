"""SQLAlchemy models for the autorespawn subsystem."""

from .base import Base
from .respawn import RespawnRecordRow

__all__ = ["Base", "RespawnRecordRow"]
