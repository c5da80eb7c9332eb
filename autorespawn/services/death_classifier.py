"""
Death classification for managed entities.

Derives a DeathReason from the partial signals the host reports about a
death: a structured damage cause, a free-text death message, and whether an
operator removed the entity by command moments before.

classify() is a pure function of its inputs and never raises; anything it
cannot make sense of is UNKNOWN.
"""

import re
from datetime import UTC, datetime
from functools import lru_cache

from ..config.models import ClassifierSettings
from ..schemas.respawn import DeathReason, DeathSignal, EntityId
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

HOSTILE_VERBS = ("slain", "shot", "fireballed", "killed")

_GENERIC_SLAIN = re.compile(r"was slain by\s+\S", re.IGNORECASE)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@lru_cache(maxsize=16)
def _hostile_pattern(names: tuple[str, ...]) -> re.Pattern[str] | None:
    """Compile 'was <verb> by <name>' for the configured hostile names."""
    if not names:
        return None
    # Longest first so "Cave Spider" wins over "Spider"
    alternatives = "|".join(re.escape(name) for name in sorted(names, key=len, reverse=True))
    verbs = "|".join(HOSTILE_VERBS)
    return re.compile(rf"was (?:{verbs}) by (?:{alternatives})\b", re.IGNORECASE)


def is_hostile_mob_death(message: str | None, settings: ClassifierSettings) -> bool:
    """True when the death message names a configured hostile actor."""
    if not message:
        return False
    pattern = _hostile_pattern(tuple(settings.hostile_mob_names))
    return pattern is not None and pattern.search(message) is not None


def is_environmental_death(message: str | None, settings: ClassifierSettings) -> bool:
    """True when the death message contains an environmental phrase marker."""
    if not message:
        return False
    lowered = message.lower()
    return any(phrase.lower() in lowered for phrase in settings.environmental_phrases)


def is_within_debounce(observed_at: datetime, command_mark: datetime | None, window_ms: int) -> bool:
    """True when a command mark lies within window_ms of the death, in either direction."""
    if command_mark is None:
        return False
    delta_ms = abs((_as_utc(observed_at) - _as_utc(command_mark)).total_seconds()) * 1000.0
    return delta_ms <= window_ms


def classify(
    signal: DeathSignal,
    command_mark: datetime | None,
    settings: ClassifierSettings,
) -> DeathReason:
    """
    Classify a death, first matching rule wins.

    1. A command mark inside the de-bounce window gives COMMAND.
    2. An environmental structured cause gives ENVIRONMENT.
    3. An attack cause gives HOSTILE_MOB when the text names a hostile actor,
       PLAYER when the text is a generic "was slain by".
    4. Text fallback: hostile actor, then environmental phrases.
    5. Otherwise UNKNOWN.

    Args:
        signal: The observed death signals
        command_mark: When the entity was last removed by command, if ever
        settings: Word lists, cause sets and de-bounce window

    Returns:
        DeathReason for the death
    """
    if is_within_debounce(signal.observed_at, command_mark, settings.command_kill_debounce_ms):
        return DeathReason.COMMAND

    message = signal.message or ""
    cause = signal.damage_cause

    if cause is not None:
        if cause in settings.environmental_causes:
            return DeathReason.ENVIRONMENT

        if cause in settings.attack_causes:
            if is_hostile_mob_death(message, settings):
                return DeathReason.HOSTILE_MOB
            if _GENERIC_SLAIN.search(message):
                return DeathReason.PLAYER

    if is_hostile_mob_death(message, settings):
        return DeathReason.HOSTILE_MOB

    if is_environmental_death(message, settings):
        return DeathReason.ENVIRONMENT

    return DeathReason.UNKNOWN


class CommandKillRegistry:
    """
    In-memory record of entities an operator removed by command.

    A mark is consulted by classify() and cleared on successful respawn.
    Marks do not survive a restart.
    """

    def __init__(self) -> None:
        self._marks: dict[EntityId, datetime] = {}

    def mark(self, entity_id: EntityId, at: datetime | None = None) -> datetime:
        stamp = _as_utc(at) if at is not None else datetime.now(UTC)
        self._marks[entity_id] = stamp
        logger.info("Marked entity as removed by command", entity_id=entity_id, marked_at=stamp.isoformat())
        return stamp

    def get(self, entity_id: EntityId) -> datetime | None:
        return self._marks.get(entity_id)

    def clear(self, entity_id: EntityId) -> None:
        self._marks.pop(entity_id, None)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._marks
