"""
AutoRespawnContainer - wires the auto-respawn subsystem together.

The host supplies its collaborators (entity lifecycle, world lookup and an
optional notification sink); everything else is built from configuration.
"""

# pylint: disable=too-many-instance-attributes  # Reason: DI container holds every service instance
import asyncio
from typing import Any

from anyio import Lock

from .app.tracked_task_manager import TrackedTaskManager, get_global_tracked_manager
from .config import get_config
from .config.models import AppConfig, AutoRespawnConfig
from .database import close_db, init_db
from .persistence.protocols import ProfileStoreProtocol
from .persistence.repositories.respawn_repository import RespawnRepository
from .services.collaborators import EntityLifecycleService, NotificationSink, WorldProvider
from .services.death_classifier import CommandKillRegistry
from .services.eligibility_policy import CooldownTracker
from .services.notification_dispatcher import NotificationDispatcher
from .services.respawn_orchestrator import RespawnOrchestrator
from .services.respawn_scheduler import RespawnScheduler
from .services.respawn_startup_service import RespawnStartupService
from .structured_logging.enhanced_logging_config import get_logger, setup_enhanced_logging

logger = get_logger(__name__)


class AutoRespawnContainer:
    """
    Dependency container for the auto-respawn subsystem.

    Services are NOT created in __init__ - call initialize() from the host's
    event loop.
    """

    def __init__(
        self,
        lifecycle: EntityLifecycleService,
        worlds: WorldProvider,
        notification_sink: NotificationSink | None = None,
        store: ProfileStoreProtocol | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.lifecycle = lifecycle
        self.worlds = worlds
        self.notification_sink = notification_sink
        self.config: AppConfig | None = config

        self.store: ProfileStoreProtocol | None = store
        self.tracked_task_manager: TrackedTaskManager | None = None
        self.scheduler: RespawnScheduler | None = None
        self.notifier: NotificationDispatcher | None = None
        self.orchestrator: RespawnOrchestrator | None = None
        self.startup_service: RespawnStartupService | None = None

        self._owns_database = store is None
        self._initialized = False
        self._initialization_lock = Lock()

        logger.info("AutoRespawnContainer created (not yet initialized)")

    def _current_auto_respawn_config(self) -> AutoRespawnConfig:
        # Injected configs are fixed; otherwise re-read so reset_config() takes effect
        if self.config is not None:
            return self.config.auto_respawn
        return get_config().auto_respawn

    async def initialize(self) -> None:
        """Build every service in dependency order."""
        async with self._initialization_lock:
            if self._initialized:
                logger.warning("Container already initialized - skipping re-initialization")
                return

            logger.info("Initializing AutoRespawnContainer...")
            app_config = self.config or get_config()
            setup_enhanced_logging({"logging": app_config.logging.to_legacy_dict()})

            if self.store is None:
                await init_db()
                self.store = RespawnRepository()

            self.tracked_task_manager = get_global_tracked_manager()
            self.scheduler = RespawnScheduler(asyncio.get_running_loop(), self.tracked_task_manager)
            self.notifier = NotificationDispatcher(self.notification_sink, self.tracked_task_manager)
            self.orchestrator = RespawnOrchestrator(
                store=self.store,
                scheduler=self.scheduler,
                lifecycle=self.lifecycle,
                worlds=self.worlds,
                notifier=self.notifier,
                config_provider=self._current_auto_respawn_config,
                cooldowns=CooldownTracker(),
                command_kills=CommandKillRegistry(),
            )
            self.startup_service = RespawnStartupService(
                self.orchestrator,
                config_provider=self._current_auto_respawn_config,
                task_manager=self.tracked_task_manager,
            )

            self._initialized = True
            logger.info(
                "AutoRespawnContainer initialized",
                enabled=app_config.auto_respawn.enabled,
                owns_database=self._owns_database,
            )

    def start(self, host_ready: asyncio.Event | None = None) -> asyncio.Task[Any] | None:
        """Kick off the one-time startup recovery scan."""
        if not self._initialized or self.startup_service is None:
            raise RuntimeError("AutoRespawnContainer.initialize() must be awaited before start()")
        return self.startup_service.start(host_ready)

    async def shutdown(self) -> None:
        """Cancel pending timers and background tasks, then close the database."""
        logger.info("Shutting down AutoRespawnContainer")
        if self.startup_service is not None:
            await self.startup_service.stop()
        if self.scheduler is not None:
            self.scheduler.shutdown()
        if self.tracked_task_manager is not None:
            await self.tracked_task_manager.cancel_all()
        if self._owns_database and self._initialized:
            await close_db()
        self._initialized = False
        logger.info("AutoRespawnContainer shut down")
