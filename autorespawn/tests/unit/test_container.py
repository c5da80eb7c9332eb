"""
Unit tests for AutoRespawnContainer.

Tests initialization order, startup recovery wiring and shutdown.
"""

import asyncio

import pytest

from autorespawn.config.models import AppConfig, AutoRespawnConfig
from autorespawn.container import AutoRespawnContainer
from autorespawn.persistence.repositories.respawn_repository import RespawnRepository
from autorespawn.services.respawn_orchestrator import RespawnState


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        auto_respawn=AutoRespawnConfig(
            enabled=True, respawn_delay_seconds=0.01, recovery_startup_delay_seconds=0
        )
    )


class TestInitialization:
    @pytest.mark.asyncio
    async def test_services_not_created_in_init(self, fake_lifecycle, fake_worlds):
        container = AutoRespawnContainer(fake_lifecycle, fake_worlds)

        assert container.orchestrator is None
        assert container.scheduler is None

    @pytest.mark.asyncio
    async def test_initialize_with_injected_store(
        self, fake_lifecycle, fake_worlds, fake_store, recording_sink, app_config, mocker
    ):
        init_db = mocker.patch("autorespawn.container.init_db", new=mocker.AsyncMock())
        container = AutoRespawnContainer(
            fake_lifecycle, fake_worlds, notification_sink=recording_sink, store=fake_store, config=app_config
        )

        await container.initialize()

        init_db.assert_not_awaited()
        assert container.store is fake_store
        assert container.orchestrator is not None
        assert container.startup_service is not None
        await container.shutdown()

    @pytest.mark.asyncio
    async def test_initialize_builds_repository(self, fake_lifecycle, fake_worlds, app_config):
        container = AutoRespawnContainer(fake_lifecycle, fake_worlds, config=app_config)

        await container.initialize()

        assert isinstance(container.store, RespawnRepository)
        assert await container.store.list_eligible() == []
        await container.shutdown()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, fake_lifecycle, fake_worlds, fake_store, app_config):
        container = AutoRespawnContainer(fake_lifecycle, fake_worlds, store=fake_store, config=app_config)

        await container.initialize()
        orchestrator = container.orchestrator
        await container.initialize()

        assert container.orchestrator is orchestrator
        await container.shutdown()

    def test_start_before_initialize_raises(self, fake_lifecycle, fake_worlds):
        container = AutoRespawnContainer(fake_lifecycle, fake_worlds)
        with pytest.raises(RuntimeError, match="initialize"):
            container.start()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_runs_recovery_after_host_ready(
        self, fake_lifecycle, fake_worlds, fake_store, overworld_location, app_config
    ):
        fake_store.seed("a-id", "Alpha", overworld_location)
        container = AutoRespawnContainer(fake_lifecycle, fake_worlds, store=fake_store, config=app_config)
        await container.initialize()
        host_ready = asyncio.Event()

        task = container.start(host_ready)
        host_ready.set()
        results = await asyncio.wait_for(task, timeout=1)
        await asyncio.sleep(0.05)

        assert results["scheduled"] == 1
        assert fake_lifecycle.created == [("Alpha", "world:world", overworld_location, None)]
        assert container.orchestrator.get_state("a-id") == RespawnState.ALIVE
        await container.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending_respawns(
        self, fake_lifecycle, fake_worlds, fake_store, overworld_location, make_signal, app_config
    ):
        slow_config = app_config.model_copy(
            update={"auto_respawn": app_config.auto_respawn.model_copy(update={"respawn_delay_seconds": 5})}
        )
        container = AutoRespawnContainer(fake_lifecycle, fake_worlds, store=fake_store, config=slow_config)
        await container.initialize()

        await container.orchestrator.handle_death(make_signal(cause_code="FALL"), overworld_location)
        assert len(container.scheduler) == 1

        await container.shutdown()

        assert len(container.scheduler) == 0
        assert fake_lifecycle.created == []
        assert fake_store.records["bob-id"].eligible is True

    @pytest.mark.asyncio
    async def test_shutdown_closes_owned_database_only(
        self, fake_lifecycle, fake_worlds, fake_store, app_config, mocker
    ):
        close_db = mocker.patch("autorespawn.container.close_db", new=mocker.AsyncMock())
        container = AutoRespawnContainer(fake_lifecycle, fake_worlds, store=fake_store, config=app_config)
        await container.initialize()

        await container.shutdown()

        close_db.assert_not_awaited()
