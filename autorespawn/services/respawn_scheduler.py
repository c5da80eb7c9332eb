"""
Delayed respawn scheduling on the asyncio event loop.

The scheduler keeps at most one pending task per entity. Timers are plain
loop.call_later handles; when one fires, its registry slot is released first
and the respawn coroutine then runs as a tracked task, so a failing or slow
respawn can never leave a stale entry behind.

All registry mutation happens on the owning loop. Other threads go through
schedule_threadsafe().
"""

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any

from ..app.tracked_task_manager import TrackedTaskManager, get_global_tracked_manager
from ..schemas.respawn import EntityId
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

RespawnTaskFactory = Callable[[], Coroutine[Any, Any, Any]]


@dataclass
class ScheduledTask:
    """A pending respawn: fire_at is in loop clock seconds."""

    entity_id: EntityId
    fire_at: float
    attempt: int
    delay: float
    handle: asyncio.TimerHandle | None = field(default=None, repr=False, compare=False)


class RespawnScheduler:
    """
    Registry of pending respawn timers, one per entity.

    Scheduling an entity that already has a pending task replaces it and
    bumps the attempt counter. Cancelling never interrupts a task that has
    already started firing.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        task_manager: TrackedTaskManager | None = None,
    ) -> None:
        self._loop = loop
        self._task_manager = task_manager
        self._pending: dict[EntityId, ScheduledTask] = {}
        self._closed = False

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _get_task_manager(self) -> TrackedTaskManager:
        if self._task_manager is None:
            self._task_manager = get_global_tracked_manager()
        return self._task_manager

    def schedule(self, entity_id: EntityId, delay: float, task: RespawnTaskFactory) -> ScheduledTask:
        """
        Schedule a respawn task to fire after delay seconds.

        Args:
            entity_id: Managed entity identifier
            delay: Seconds until the task fires (negative values fire immediately)
            task: Zero-argument callable returning the coroutine to run

        Returns:
            ScheduledTask: The registered task

        Raises:
            RuntimeError: If the scheduler has been shut down
        """
        if self._closed:
            raise RuntimeError("RespawnScheduler has been shut down")

        loop = self._get_loop()
        delay = max(0.0, float(delay))

        attempt = 1
        previous = self._pending.pop(entity_id, None)
        if previous is not None:
            if previous.handle is not None:
                previous.handle.cancel()
            attempt = previous.attempt + 1
            logger.info(
                "Replacing pending respawn task",
                entity_id=entity_id,
                previous_fire_at=previous.fire_at,
                attempt=attempt,
            )

        scheduled = ScheduledTask(entity_id=entity_id, fire_at=loop.time() + delay, attempt=attempt, delay=delay)
        scheduled.handle = loop.call_later(delay, self._fire, scheduled, task)
        self._pending[entity_id] = scheduled

        logger.debug("Respawn task scheduled", entity_id=entity_id, delay=delay, attempt=attempt)
        return scheduled

    def schedule_threadsafe(self, entity_id: EntityId, delay: float, task: RespawnTaskFactory) -> None:
        """
        Schedule from a thread other than the owning loop's.

        The scheduler must already be bound to a loop (constructed with one, or
        used once from it).
        """
        if self._loop is None:
            raise RuntimeError("RespawnScheduler is not bound to an event loop")
        self._loop.call_soon_threadsafe(self.schedule, entity_id, delay, task)

    def cancel(self, entity_id: EntityId) -> bool:
        """
        Cancel the pending task for an entity.

        Returns:
            bool: True if a pending task was cancelled, False if none existed
        """
        scheduled = self._pending.pop(entity_id, None)
        if scheduled is None:
            return False
        if scheduled.handle is not None:
            scheduled.handle.cancel()
        logger.debug("Respawn task cancelled", entity_id=entity_id, attempt=scheduled.attempt)
        return True

    def get(self, entity_id: EntityId) -> ScheduledTask | None:
        return self._pending.get(entity_id)

    def pending_entities(self) -> list[EntityId]:
        return list(self._pending)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def shutdown(self) -> int:
        """
        Cancel every pending timer and refuse new schedules.

        Returns:
            int: Number of pending tasks cancelled
        """
        count = 0
        for entity_id in list(self._pending):
            if self.cancel(entity_id):
                count += 1
        self._closed = True
        logger.info("Respawn scheduler shut down", cancelled=count)
        return count

    def _fire(self, scheduled: ScheduledTask, task: RespawnTaskFactory) -> None:
        entity_id = scheduled.entity_id
        if self._pending.get(entity_id) is not scheduled:
            # Replaced or cancelled after the timer was already queued
            return
        del self._pending[entity_id]

        try:
            coro = task()
            running = self._get_task_manager().create_tracked_task(
                coro, task_name=f"respawn:{entity_id}", task_type="respawn"
            )
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: a failing factory must not escape into the loop's timer callback
            logger.error(
                "Failed to start respawn task",
                entity_id=entity_id,
                attempt=scheduled.attempt,
                error=str(e),
                exc_info=True,
            )
            return

        running.add_done_callback(lambda t: self._log_outcome(scheduled, t))

    @staticmethod
    def _log_outcome(scheduled: ScheduledTask, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            logger.info("Respawn task cancelled while running", entity_id=scheduled.entity_id)
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Respawn task raised",
                entity_id=scheduled.entity_id,
                attempt=scheduled.attempt,
                error=str(error),
                error_type=type(error).__name__,
                exc_info=error,
            )
