"""
Tests for death classification.

Covers the priority order of the classification rules, the command-kill
de-bounce window and the text fallbacks.
"""

from datetime import UTC, datetime, timedelta

import pytest

from autorespawn.config.models import DEFAULT_ENVIRONMENTAL_CAUSES, ClassifierSettings
from autorespawn.schemas.respawn import DamageCause, DeathReason, DeathSignal
from autorespawn.services.death_classifier import (
    CommandKillRegistry,
    classify,
    is_environmental_death,
    is_hostile_mob_death,
    is_within_debounce,
)

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)

MESSAGES = [
    None,
    "",
    "Bob was slain by Zombie",
    "Bob was slain by Alice",
    "Bob was shot by Skeleton",
    "Bob blew up",
    "completely unrelated text",
]


def _signal(cause: DamageCause | str | None = None, message: str | None = None, at: datetime = T0) -> DeathSignal:
    return DeathSignal(entity_id="bob-id", display_name="Bob", cause_code=cause, message=message, observed_at=at)


@pytest.fixture
def settings() -> ClassifierSettings:
    return ClassifierSettings()


class TestEnvironmentalCauses:
    """Structured environmental causes always win over text."""

    @pytest.mark.parametrize("cause", DEFAULT_ENVIRONMENTAL_CAUSES)
    @pytest.mark.parametrize("message", MESSAGES)
    def test_environmental_cause_ignores_message(self, settings, cause, message):
        """Every environmental cause classifies as ENVIRONMENT whatever the message says."""
        assert classify(_signal(cause, message), None, settings) == DeathReason.ENVIRONMENT

    def test_cause_code_accepted_as_plain_string(self, settings):
        """Host cause codes arrive as strings and are parsed case-insensitively."""
        assert classify(_signal("lava", "Bob was slain by Zombie"), None, settings) == DeathReason.ENVIRONMENT


class TestAttackCauses:
    """Attack causes consult the hostile list, then the generic slain form."""

    def test_hostile_mob_named(self, settings):
        """ENTITY_ATTACK with a hostile name is HOSTILE_MOB."""
        signal = _signal(DamageCause.ENTITY_ATTACK, "Bob was slain by Zombie")
        assert classify(signal, None, settings) == DeathReason.HOSTILE_MOB

    @pytest.mark.parametrize(
        "message",
        [
            "Bob was shot by Skeleton",
            "Bob was fireballed by Blaze",
            "Bob was killed by Witch using magic",
            "Bob was slain by Cave Spider",
            "Bob was slain by Wither Skeleton",
        ],
    )
    def test_hostile_verb_forms(self, settings, message):
        """All four verb forms match the hostile list."""
        assert classify(_signal(DamageCause.ENTITY_EXPLOSION, message), None, settings) == DeathReason.HOSTILE_MOB

    def test_generic_slain_is_player(self, settings):
        """A non-hostile killer in the slain form is PLAYER."""
        signal = _signal(DamageCause.ENTITY_ATTACK, "Bob was slain by Alice")
        assert classify(signal, None, settings) == DeathReason.PLAYER

    def test_attack_without_matching_text_falls_through(self, settings):
        """An attack cause with unhelpful text falls back to the phrase markers."""
        signal = _signal(DamageCause.ENTITY_SWEEP_ATTACK, "Bob fell from a high place")
        assert classify(signal, None, settings) == DeathReason.ENVIRONMENT

    def test_attack_without_text_is_unknown(self, settings):
        """An attack cause with no text at all is UNKNOWN."""
        assert classify(_signal(DamageCause.ENTITY_ATTACK, None), None, settings) == DeathReason.UNKNOWN

    def test_hostile_match_is_case_insensitive(self, settings):
        """Matching ignores case in both verb and name."""
        signal = _signal(DamageCause.ENTITY_ATTACK, "Bob WAS SLAIN BY zombie")
        assert classify(signal, None, settings) == DeathReason.HOSTILE_MOB


class TestTextFallback:
    """Without a usable structured cause the message decides."""

    def test_hostile_text_without_cause(self, settings):
        assert classify(_signal(None, "Bob was shot by Pillager"), None, settings) == DeathReason.HOSTILE_MOB

    @pytest.mark.parametrize(
        "message",
        [
            "Bob drowned",
            "Bob hit the ground too hard",
            "Bob fell out of the world",
            "Bob burned to death",
            "Bob tried to swim in lava",
            "Bob was struck by lightning",
            "Bob discovered the floor was lava",
        ],
    )
    def test_environmental_phrases(self, settings, message):
        assert classify(_signal(None, message), None, settings) == DeathReason.ENVIRONMENT

    @pytest.mark.parametrize(
        "message",
        ["Bob froze to death", "Bob withered away", "Bob was pricked to death"],
    )
    def test_full_phrase_markers_match(self, settings, message):
        assert classify(_signal(None, message), None, settings) == DeathReason.ENVIRONMENT

    @pytest.mark.parametrize(
        "message",
        ["Bob froze the pond", "Bob burned the logs", "Bob withered", "Bob pricked a finger"],
    )
    def test_bare_verbs_are_not_markers(self, settings, message):
        """Only the full death phrases mark an environmental death."""
        assert classify(_signal(None, message), None, settings) == DeathReason.UNKNOWN

    def test_unknown_cause_code_treated_as_absent(self, settings):
        """A cause code the host invented later is ignored, text still applies."""
        assert classify(_signal("SONIC_BOOM", "Bob was slain by Warden"), None, settings) == DeathReason.HOSTILE_MOB

    def test_magic_cause_uses_text(self, settings):
        """Causes outside both sets go straight to the text fallback."""
        assert classify(_signal(DamageCause.MAGIC, "Bob starved to death"), None, settings) == DeathReason.ENVIRONMENT

    def test_missing_signals_are_unknown(self, settings):
        assert classify(_signal(None, None), None, settings) == DeathReason.UNKNOWN

    def test_generic_slain_without_attack_cause_is_unknown(self, settings):
        """The PLAYER rule only applies under an attack cause."""
        assert classify(_signal(None, "Bob was slain by Alice"), None, settings) == DeathReason.UNKNOWN

    def test_custom_hostile_list(self):
        """The hostile list comes from configuration."""
        custom = ClassifierSettings(hostile_mob_names=["Alice"])
        signal = _signal(DamageCause.ENTITY_ATTACK, "Bob was slain by Alice")
        assert classify(signal, None, custom) == DeathReason.HOSTILE_MOB


class TestCommandDebounce:
    """A recent command mark overrides every other signal."""

    @pytest.mark.parametrize("offset_ms", [0, 1, 500, 999, 1000, -500])
    @pytest.mark.parametrize(
        "cause,message",
        [
            (DamageCause.LAVA, "Bob tried to swim in lava"),
            (DamageCause.ENTITY_ATTACK, "Bob was slain by Zombie"),
            (DamageCause.KILL, None),
            (None, None),
        ],
    )
    def test_mark_within_window_is_command(self, settings, offset_ms, cause, message):
        signal = _signal(cause, message, at=T0 + timedelta(milliseconds=offset_ms))
        assert classify(signal, T0, settings) == DeathReason.COMMAND

    def test_mark_outside_window_is_ignored(self, settings):
        signal = _signal(DamageCause.ENTITY_ATTACK, "Bob was slain by Zombie", at=T0 + timedelta(milliseconds=1500))
        assert classify(signal, T0, settings) == DeathReason.HOSTILE_MOB

    def test_window_is_configurable(self):
        wide = ClassifierSettings(command_kill_debounce_ms=5000)
        signal = _signal(None, None, at=T0 + timedelta(seconds=3))
        assert classify(signal, T0, wide) == DeathReason.COMMAND

    def test_naive_timestamps_are_treated_as_utc(self):
        naive_mark = T0.replace(tzinfo=None)
        assert is_within_debounce(T0 + timedelta(milliseconds=200), naive_mark, 1000)

    def test_no_mark(self):
        assert not is_within_debounce(T0, None, 1000)


class TestHelpers:
    """Direct tests for the text helpers."""

    def test_hostile_helper_empty_message(self, settings):
        assert not is_hostile_mob_death(None, settings)
        assert not is_hostile_mob_death("", settings)

    def test_hostile_helper_empty_list(self):
        assert not is_hostile_mob_death("Bob was slain by Zombie", ClassifierSettings(hostile_mob_names=[]))

    def test_environmental_helper(self, settings):
        assert is_environmental_death("Bob SUFFOCATED in a wall", settings)
        assert not is_environmental_death("Bob left the game", settings)


class TestCommandKillRegistry:
    """Command-kill marks."""

    def test_mark_get_clear(self):
        registry = CommandKillRegistry()
        stamp = registry.mark("bob-id", T0)
        assert stamp == T0
        assert registry.get("bob-id") == T0
        assert "bob-id" in registry
        registry.clear("bob-id")
        assert registry.get("bob-id") is None
        assert "bob-id" not in registry

    def test_mark_defaults_to_now(self):
        registry = CommandKillRegistry()
        before = datetime.now(UTC)
        stamp = registry.mark("bob-id")
        assert stamp >= before

    def test_clear_unknown_is_noop(self):
        CommandKillRegistry().clear("nobody")
