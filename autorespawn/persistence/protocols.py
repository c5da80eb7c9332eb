"""
Repository protocols for the autorespawn persistence layer.

Explicit typing.Protocol definitions so the orchestrator depends on the
contract rather than the SQLAlchemy adapter.
"""

# pylint: disable=unnecessary-ellipsis  # Reason: Protocol method bodies use ... per typing.Protocol convention

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from autorespawn.schemas.respawn import DeathReason, EntityId, Location, RespawnRecord


class ProfileStoreProtocol(Protocol):
    """
    Protocol for durable per-entity respawn state.

    Implemented by autorespawn.persistence.repositories.respawn_repository.RespawnRepository.
    Every method raises DatabaseError on failure.
    """

    async def save_last_location(
        self,
        entity_id: EntityId,
        entity_name: str,
        location: Location,
        eligible: bool | None = None,
    ) -> None:
        """Upsert the last known location, optionally updating eligibility."""
        ...

    async def mark_death(
        self,
        entity_id: EntityId,
        entity_name: str,
        location: Location,
        reason: DeathReason,
        eligible: bool,
        last_respawn_at: datetime | None,
    ) -> None:
        """Persist location, reason, eligibility and respawn stamp in one write."""
        ...

    async def set_eligible(self, entity_id: EntityId, eligible: bool, reason: DeathReason | None = None) -> bool:
        """Update eligibility, and the death reason when given; returns False when no record exists."""
        ...

    async def get_record(self, entity_id: EntityId) -> RespawnRecord | None:
        """Read the record for one entity."""
        ...

    async def delete_record(self, entity_id: EntityId) -> bool:
        """Delete the record; returns False when none existed."""
        ...

    async def list_eligible(self) -> list[RespawnRecord]:
        """List every record with eligible=True."""
        ...
