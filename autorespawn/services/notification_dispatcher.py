"""
Best-effort operator notifications.

Notifications never block or fail a respawn decision: each one runs as a
tracked background task and delivery errors are only logged.
"""

import asyncio
from typing import Any

from ..app.tracked_task_manager import TrackedTaskManager, get_global_tracked_manager
from ..schemas.respawn import EntityId, NotificationKind, OperatorNotification
from ..structured_logging.enhanced_logging_config import get_logger
from .collaborators import NotificationSink

logger = get_logger(__name__)


class NotificationDispatcher:
    """Fire-and-forget wrapper around a NotificationSink."""

    def __init__(self, sink: NotificationSink | None, task_manager: TrackedTaskManager | None = None) -> None:
        self._sink = sink
        self._task_manager = task_manager

    def _get_task_manager(self) -> TrackedTaskManager:
        if self._task_manager is None:
            self._task_manager = get_global_tracked_manager()
        return self._task_manager

    def dispatch(
        self,
        kind: NotificationKind,
        entity_id: EntityId,
        entity_name: str,
        message: str,
        **details: Any,
    ) -> asyncio.Task[Any] | None:
        """
        Send a notification in the background.

        Returns:
            The delivery task, or None when no sink is configured
        """
        if self._sink is None:
            return None
        notification = OperatorNotification(
            kind=kind, entity_id=entity_id, entity_name=entity_name, message=message, details=details
        )
        return self._get_task_manager().create_tracked_task(
            self._deliver(notification),
            task_name=f"notify:{kind.value}:{entity_id}",
            task_type="notification",
        )

    async def _deliver(self, notification: OperatorNotification) -> None:
        assert self._sink is not None
        try:
            await self._sink.notify(notification)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: delivery is best-effort; sink errors must not reach the orchestrator
            logger.warning(
                "Operator notification failed",
                entity_id=notification.entity_id,
                kind=notification.kind.value,
                error=str(e),
                error_type=type(e).__name__,
            )
