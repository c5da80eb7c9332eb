"""
Pydantic schemas for the death-classification and auto-respawn subsystem.

These models describe the values that move between the classifier, the
eligibility policy, the profile store and the orchestrator. None of them
carry behaviour beyond light parsing helpers.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

EntityId = str


class DeathReason(str, Enum):
    """Why a managed entity died, as derived by the death classifier."""

    HOSTILE_MOB = "HOSTILE_MOB"
    ENVIRONMENT = "ENVIRONMENT"
    COMMAND = "COMMAND"
    PLAYER = "PLAYER"
    UNKNOWN = "UNKNOWN"


class DamageCause(str, Enum):
    """Structured damage/death cause codes reported by the host world."""

    FALL = "FALL"
    FIRE = "FIRE"
    FIRE_TICK = "FIRE_TICK"
    LAVA = "LAVA"
    DROWNING = "DROWNING"
    SUFFOCATION = "SUFFOCATION"
    STARVATION = "STARVATION"
    VOID = "VOID"
    LIGHTNING = "LIGHTNING"
    FREEZE = "FREEZE"
    FALLING_BLOCK = "FALLING_BLOCK"
    FLY_INTO_WALL = "FLY_INTO_WALL"
    HOT_FLOOR = "HOT_FLOOR"
    CRAMMING = "CRAMMING"
    DRYOUT = "DRYOUT"
    ENTITY_ATTACK = "ENTITY_ATTACK"
    ENTITY_EXPLOSION = "ENTITY_EXPLOSION"
    ENTITY_SWEEP_ATTACK = "ENTITY_SWEEP_ATTACK"
    PROJECTILE = "PROJECTILE"
    MAGIC = "MAGIC"
    CONTACT = "CONTACT"
    KILL = "KILL"
    CUSTOM = "CUSTOM"

    @classmethod
    def parse(cls, raw: Any) -> "DamageCause | None":
        """
        Parse a raw host cause code, returning None for anything unrecognized.

        Args:
            raw: Cause code as reported by the host (enum member, name or None)

        Returns:
            DamageCause member, or None when the code is absent or unknown
        """
        if raw is None:
            return None
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return None


class Location(BaseModel):
    """A position in a named world, with orientation."""

    model_config = ConfigDict(frozen=True)

    world: str = Field(..., min_length=1, description="World identifier")
    x: float
    y: float
    z: float
    yaw: float = 0.0
    pitch: float = 0.0

    def describe(self) -> str:
        """Short human-readable form used in log lines."""
        return f"{self.world} at ({self.x:.1f}, {self.y:.1f}, {self.z:.1f})"


class DeathSignal(BaseModel):
    """Raw signals describing one death, produced once and consumed immediately."""

    entity_id: EntityId
    display_name: str
    cause_code: str | None = None
    message: str | None = None
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("cause_code", mode="before")
    @classmethod
    def normalize_cause_code(cls, v: Any) -> str | None:
        """Accept enum members as well as plain strings."""
        if v is None:
            return None
        if isinstance(v, Enum):
            return str(v.value)
        return str(v)

    @property
    def damage_cause(self) -> DamageCause | None:
        """The structured cause, or None if absent or unrecognized."""
        return DamageCause.parse(self.cause_code)


class RespawnRecord(BaseModel):
    """Durable per-entity respawn state owned by the profile store."""

    model_config = ConfigDict(from_attributes=True)

    entity_id: EntityId
    entity_name: str
    last_location: Location | None = None
    death_reason: DeathReason | None = None
    eligible: bool = False
    last_respawn_at: datetime | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class NotificationKind(str, Enum):
    """Operator notification categories."""

    RESPAWN_SCHEDULED = "respawn_scheduled"
    RESPAWN_SUCCEEDED = "respawn_succeeded"
    RESPAWN_FAILED = "respawn_failed"
    COOLDOWN_BLOCKED = "cooldown_blocked"
    DIED = "died"


class OperatorNotification(BaseModel):
    """A best-effort message to the operator controlling an entity."""

    kind: NotificationKind
    entity_id: EntityId
    entity_name: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
