"""Pydantic schemas for the autorespawn subsystem."""

from .respawn import (
    DamageCause,
    DeathReason,
    DeathSignal,
    EntityId,
    Location,
    NotificationKind,
    OperatorNotification,
    RespawnRecord,
)

__all__ = [
    "DamageCause",
    "DeathReason",
    "DeathSignal",
    "EntityId",
    "Location",
    "NotificationKind",
    "OperatorNotification",
    "RespawnRecord",
]
