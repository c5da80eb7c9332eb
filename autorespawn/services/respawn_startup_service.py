"""
Startup recovery service.

Waits for the host to report ready, lets it stabilize, then asks the
orchestrator to resume every respawn left pending by the previous run. The
scan runs at most once per process.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from ..app.tracked_task_manager import TrackedTaskManager, get_global_tracked_manager
from ..config import get_auto_respawn_config
from ..config.models import AutoRespawnConfig
from ..structured_logging.enhanced_logging_config import get_logger
from .respawn_orchestrator import RespawnOrchestrator

logger = get_logger(__name__)


class RespawnStartupService:
    """Runs the startup recovery scan once, after the host is ready."""

    def __init__(
        self,
        orchestrator: RespawnOrchestrator,
        config_provider: Callable[[], AutoRespawnConfig] | None = None,
        task_manager: TrackedTaskManager | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._config_provider = config_provider or get_auto_respawn_config
        self._task_manager = task_manager
        self._task: asyncio.Task[Any] | None = None
        self._has_run = False
        self.last_results: dict[str, Any] | None = None

    @property
    def has_run(self) -> bool:
        return self._has_run

    def start(self, host_ready: asyncio.Event | None = None) -> asyncio.Task[Any] | None:
        """
        Start the recovery task in the background.

        Args:
            host_ready: Event set by the host once its worlds are loaded; None means ready now

        Returns:
            The recovery task, or None if the scan already ran
        """
        if self._has_run:
            logger.debug("Startup recovery already ran, ignoring start()")
            return None
        if self._task is not None and not self._task.done():
            return self._task

        manager = self._task_manager or get_global_tracked_manager()
        self._task = manager.create_tracked_task(
            self._run(host_ready), task_name="autorespawn_startup_recovery", task_type="startup"
        )
        logger.info("Startup recovery task started")
        return self._task

    async def _run(self, host_ready: asyncio.Event | None) -> dict[str, Any] | None:
        if host_ready is not None:
            await host_ready.wait()

        delay = self._config_provider().recovery_startup_delay_seconds
        logger.info("Host ready, waiting before startup recovery", delay=delay)
        await asyncio.sleep(delay)

        if self._has_run:
            return None
        self._has_run = True

        try:
            results = await self._orchestrator.recover_pending_respawns()
        except Exception as e:
            logger.error("Startup recovery failed", error=str(e), exc_info=True)
            raise
        self.last_results = results
        return results

    async def stop(self) -> None:
        """Cancel the recovery task if it has not finished."""
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.info("Startup recovery task cancelled")
