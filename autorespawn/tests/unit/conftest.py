"""
Unit test fixtures: fake collaborators and a factory for wired orchestrators.
"""

from collections.abc import Callable
from typing import Any

import pytest

from autorespawn.app.tracked_task_manager import TrackedTaskManager
from autorespawn.config.models import AutoRespawnConfig
from autorespawn.schemas.respawn import DeathSignal, Location
from autorespawn.services.notification_dispatcher import NotificationDispatcher
from autorespawn.services.respawn_orchestrator import RespawnOrchestrator
from autorespawn.services.respawn_scheduler import RespawnScheduler
from autorespawn.tests.fixtures.unit.fakes import FakeLifecycle, FakeProfileStore, FakeWorlds, RecordingSink


@pytest.fixture
def overworld_location() -> Location:
    return Location(world="world", x=10.5, y=64.0, z=-20.25, yaw=90.0, pitch=0.0)


@pytest.fixture
def make_signal() -> Callable[..., DeathSignal]:
    """Build a DeathSignal for entity 'bob-id' named Bob."""

    def _make(**kwargs: Any) -> DeathSignal:
        kwargs.setdefault("entity_id", "bob-id")
        kwargs.setdefault("display_name", "Bob")
        return DeathSignal(**kwargs)

    return _make


@pytest.fixture
def task_manager() -> TrackedTaskManager:
    return TrackedTaskManager()


@pytest.fixture
def fake_store() -> FakeProfileStore:
    return FakeProfileStore()


@pytest.fixture
def fake_lifecycle() -> FakeLifecycle:
    return FakeLifecycle()


@pytest.fixture
def fake_worlds() -> FakeWorlds:
    return FakeWorlds("world", "world_nether")


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def respawn_settings() -> dict[str, Any]:
    """Mutable settings used by make_orchestrator's config provider."""
    return {
        "enabled": True,
        "respawn_delay_seconds": 0.05,
        "respawn_cooldown_seconds": 60.0,
        "recovery_stagger_seconds": 2.0,
        "recovery_startup_delay_seconds": 0.0,
    }


@pytest.fixture
def make_orchestrator(
    fake_store: FakeProfileStore,
    fake_lifecycle: FakeLifecycle,
    fake_worlds: FakeWorlds,
    recording_sink: RecordingSink,
    task_manager: TrackedTaskManager,
    respawn_settings: dict[str, Any],
) -> Callable[..., RespawnOrchestrator]:
    """
    Factory for an orchestrator wired to the fakes.

    The config provider rebuilds AutoRespawnConfig from respawn_settings on
    every call, so tests can change settings between operations.
    """

    def _make(**overrides: Any) -> RespawnOrchestrator:
        respawn_settings.update(overrides)
        scheduler = RespawnScheduler(task_manager=task_manager)
        return RespawnOrchestrator(
            store=fake_store,
            scheduler=scheduler,
            lifecycle=fake_lifecycle,
            worlds=fake_worlds,
            notifier=NotificationDispatcher(recording_sink, task_manager),
            config_provider=lambda: AutoRespawnConfig(**respawn_settings),
        )

    return _make
