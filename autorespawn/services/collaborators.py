"""
Contracts for the host-side collaborators the orchestrator talks to.

The host world, its entity spawning and operator messaging live outside this
package; they are reached only through these protocols.
"""

# pylint: disable=unnecessary-ellipsis  # Reason: Protocol method bodies use ... per typing.Protocol convention

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from autorespawn.schemas.respawn import EntityId, Location, OperatorNotification


class EntityLifecycleService(Protocol):
    """Creates and removes managed entities in the host world."""

    async def remove_entity(self, entity_id: EntityId, reason: str) -> bool:
        """Remove the entity from the world; False when it was not present."""
        ...

    async def create_entity(self, name: str, world: Any, location: Location, lifespan: float | None) -> Any | None:
        """
        Create an entity by name at the given location.

        A lifespan of None means unlimited. Returns a handle, or None on failure.
        """
        ...

    def is_entity_present(self, entity_id: EntityId) -> bool:
        """True when the entity is currently live in the world."""
        ...


class WorldProvider(Protocol):
    """Resolves world identifiers to loaded host worlds."""

    def get_world(self, world_id: str) -> Any | None:
        """Return the world, or None when it is not loaded."""
        ...


class NotificationSink(Protocol):
    """Delivers operator notifications (e.g. to whoever created the entity)."""

    async def notify(self, notification: OperatorNotification) -> None:
        """Deliver one notification."""
        ...
