"""
Tracked task management for fire-and-forget work.

Scheduler firings, operator notifications and the startup recovery scan all
run as background tasks. Creating them through TrackedTaskManager keeps a
strong reference until they finish and lets shutdown cancel whatever is left.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger("autorespawn.tracked_task_manager")


class TrackedTaskManager:
    """
    Central registry for background task lifecycles.

    Replaces bare asyncio.create_task() calls so no task is garbage collected
    mid-flight and none outlives shutdown.
    """

    def __init__(self) -> None:
        self._logger = logger
        self._tracked_tasks: set[asyncio.Task[Any]] = set()
        self._task_names: dict[asyncio.Task[Any], str] = {}

        self._logger.info("TrackedTaskManager initialized")

    def create_tracked_task(
        self,
        coro: Coroutine[Any, Any, Any],
        task_name: str,
        task_type: str = "tracked",
    ) -> asyncio.Task[Any]:
        """
        Create an asyncio.Task with lifecycle tracking.

        Args:
            coro: The coroutine to execute
            task_name: Human-readable name for this tracked task
            task_type: Type classification used in log lines

        Returns:
            The tracked asyncio.Task

        Raises:
            RuntimeError: If the task cannot be created (no running loop)
        """
        try:
            tracked_task: asyncio.Task[Any] = asyncio.create_task(coro, name=task_name)
        except RuntimeError as task_creation_error:
            coro.close()
            self._logger.error(
                "Fatal tracked task creation failed", task_name=task_name, error=str(task_creation_error)
            )
            raise RuntimeError(f"Tracked task creation denied for {task_name}") from task_creation_error

        self._tracked_tasks.add(tracked_task)
        self._task_names[tracked_task] = task_name

        def cleanup_tracked_lifecycle(task: asyncio.Task[Any]) -> None:
            self._tracked_tasks.discard(task)
            self._task_names.pop(task, None)
            self._logger.debug("Auto-cleanup processed tracked task", task_name=task_name, task_type=task_type)

        tracked_task.add_done_callback(cleanup_tracked_lifecycle)

        self._logger.debug("Created tracked task", task_name=task_name, task_type=task_type)
        return tracked_task

    def active_task_names(self) -> list[str]:
        """Names of tracked tasks that have not finished."""
        return sorted(name for task, name in self._task_names.items() if not task.done())

    def __len__(self) -> int:
        return sum(1 for task in self._tracked_tasks if not task.done())

    async def cancel_all(self, timeout: float = 5.0) -> int:
        """
        Cancel every tracked task that is still running and wait for them to finish.

        Args:
            timeout: Maximum seconds to wait for cancelled tasks

        Returns:
            int: Number of tasks cancelled
        """
        current = asyncio.current_task()
        pending = [task for task in self._tracked_tasks if not task.done() and task is not current]
        for task in pending:
            task.cancel()

        if pending:
            _, still_pending = await asyncio.wait(pending, timeout=timeout)
            if still_pending:
                self._logger.warning(
                    "Tracked tasks did not finish after cancellation",
                    remaining=len(still_pending),
                    timeout=timeout,
                )

        self._logger.info("Cancelled tracked tasks", count=len(pending))
        return len(pending)


_global_tracked_manager: TrackedTaskManager | None = None


def get_global_tracked_manager() -> TrackedTaskManager:
    """Get or create the process-wide TrackedTaskManager."""
    global _global_tracked_manager  # pylint: disable=global-statement  # Reason: Singleton pattern for task tracking
    if _global_tracked_manager is None:
        _global_tracked_manager = TrackedTaskManager()
    return _global_tracked_manager


def reset_global_tracked_manager() -> None:
    """Drop the process-wide manager (used by tests)."""
    global _global_tracked_manager  # pylint: disable=global-statement  # Reason: Singleton pattern for task tracking
    _global_tracked_manager = None
