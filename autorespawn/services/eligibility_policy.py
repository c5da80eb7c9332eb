"""
Respawn eligibility policy.

Decides whether a classified death should be respawned automatically, and
keeps the per-entity cooldown stamps that space respawns apart.
"""

from datetime import datetime, timedelta
from typing import assert_never

from ..config.models import AutoRespawnConfig
from ..schemas.respawn import DeathReason, EntityId
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class CooldownTracker:
    """In-memory map of entity id to the time of its last approved respawn."""

    def __init__(self) -> None:
        self._stamps: dict[EntityId, datetime] = {}

    def get(self, entity_id: EntityId) -> datetime | None:
        return self._stamps.get(entity_id)

    def stamp(self, entity_id: EntityId, at: datetime) -> None:
        self._stamps[entity_id] = at

    def clear(self, entity_id: EntityId) -> None:
        self._stamps.pop(entity_id, None)

    def __len__(self) -> int:
        return len(self._stamps)


def is_throttled(entity_id: EntityId, now: datetime, cooldowns: CooldownTracker, window_seconds: float) -> bool:
    """True when the entity's last respawn stamp lies inside the cooldown window."""
    last = cooldowns.get(entity_id)
    if last is None:
        return False
    return now - last < timedelta(seconds=window_seconds)


def reason_allows_respawn(reason: DeathReason, settings: AutoRespawnConfig) -> bool:
    """Map a death reason onto its configuration toggle."""
    match reason:
        case DeathReason.HOSTILE_MOB:
            return settings.respawn_on_hostile_death
        case DeathReason.ENVIRONMENT:
            return settings.respawn_on_environment_death
        case DeathReason.COMMAND:
            return settings.respawn_on_command_kill
        case DeathReason.PLAYER:
            return False
        case DeathReason.UNKNOWN:
            return False
        case _:
            assert_never(reason)


def evaluate(
    entity_id: EntityId,
    reason: DeathReason,
    now: datetime,
    cooldowns: CooldownTracker,
    settings: AutoRespawnConfig,
) -> bool:
    """
    Decide whether an entity that died for the given reason should be respawned.

    On a True decision the cooldown is stamped with ``now`` before returning,
    so two deaths evaluated back to back cannot both pass. The function does
    not await and must be called without an await between it and the
    classification it depends on.

    Args:
        entity_id: Managed entity identifier
        reason: Classified death reason
        now: Evaluation time
        cooldowns: Per-entity respawn stamps (mutated on True)
        settings: Current auto-respawn configuration snapshot

    Returns:
        bool: True if a respawn should be scheduled
    """
    if not settings.enabled:
        return False

    if is_throttled(entity_id, now, cooldowns, settings.respawn_cooldown_seconds):
        logger.info(
            "Entity is on respawn cooldown",
            entity_id=entity_id,
            reason=reason.value,
            last_respawn_at=cooldowns.get(entity_id),
            cooldown_seconds=settings.respawn_cooldown_seconds,
        )
        return False

    allowed = reason_allows_respawn(reason, settings)
    if allowed:
        cooldowns.stamp(entity_id, now)
    return allowed
