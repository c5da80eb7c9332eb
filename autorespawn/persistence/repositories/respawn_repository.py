"""
Respawn record repository for async persistence operations.

This module stores the per-entity respawn state (last location, death reason,
eligibility, last respawn stamp) in the managed_entity_respawn table using
SQLAlchemy ORM.
"""

# pylint: disable=too-few-public-methods  # Reason: Repository class with focused responsibility

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from autorespawn.database import get_session_maker
from autorespawn.exceptions import DatabaseError, create_error_context
from autorespawn.models.respawn import RespawnRecordRow
from autorespawn.schemas.respawn import DeathReason, EntityId, Location, RespawnRecord
from autorespawn.structured_logging.enhanced_logging_config import get_logger
from autorespawn.utils.error_logging import log_and_raise
from autorespawn.utils.retry import retry_with_backoff

logger = get_logger(__name__)

TABLE_NAME = RespawnRecordRow.__tablename__


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite returns naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _row_to_record(row: RespawnRecordRow) -> RespawnRecord:
    location = None
    if row.last_world is not None:
        location = Location(
            world=row.last_world,
            x=row.last_x or 0.0,
            y=row.last_y or 0.0,
            z=row.last_z or 0.0,
            yaw=row.last_yaw or 0.0,
            pitch=row.last_pitch or 0.0,
        )
    return RespawnRecord(
        entity_id=row.entity_id,
        entity_name=row.entity_name,
        last_location=location,
        death_reason=DeathReason(row.death_reason) if row.death_reason else None,
        eligible=row.eligible,
        last_respawn_at=_as_utc(row.last_respawn_at),
        updated_at=_as_utc(row.updated_at) or datetime.now(UTC),
    )


def _apply_location(row: RespawnRecordRow, location: Location) -> None:
    row.last_world = location.world
    row.last_x = location.x
    row.last_y = location.y
    row.last_z = location.z
    row.last_yaw = location.yaw
    row.last_pitch = location.pitch


class RespawnRepository:
    """
    Repository for respawn record persistence.

    Each public operation opens its own session, so records are never cached
    between operations. Transient driver errors are retried with backoff;
    anything else surfaces as DatabaseError.
    """

    def __init__(self, session_maker: async_sessionmaker | None = None) -> None:
        """
        Initialize the respawn repository.

        Args:
            session_maker: Session factory to use; defaults to the shared one from database.py
        """
        self._session_maker = session_maker
        self._logger = get_logger(__name__)

    def _sessions(self) -> Callable:
        return self._session_maker if self._session_maker is not None else get_session_maker()

    async def save_last_location(
        self,
        entity_id: EntityId,
        entity_name: str,
        location: Location,
        eligible: bool | None = None,
    ) -> None:
        """
        Upsert the last known location for an entity.

        Args:
            entity_id: Managed entity identifier
            entity_name: Display name used to recreate the entity
            location: Location to store
            eligible: When not None, also set the eligibility flag

        Raises:
            DatabaseError: If database operation fails
        """
        context = create_error_context(entity_id=entity_id, entity_name=entity_name, action="save_last_location")
        context.metadata["operation"] = "save_last_location"
        try:
            await self._upsert_location(entity_id, entity_name, location, eligible)
        except SQLAlchemyError as e:
            log_and_raise(
                DatabaseError,
                f"Database error saving last location for '{entity_name}': {e}",
                context=context,
                details={"entity_id": entity_id, "table": TABLE_NAME, "error": str(e)},
                user_friendly="Failed to save entity location",
            )

    @retry_with_backoff(max_attempts=3, initial_delay=1.0, max_delay=10.0)
    async def _upsert_location(
        self, entity_id: EntityId, entity_name: str, location: Location, eligible: bool | None
    ) -> None:
        async with self._sessions()() as session:
            row = await session.get(RespawnRecordRow, entity_id)
            if row is None:
                row = RespawnRecordRow(entity_id=entity_id, entity_name=entity_name, eligible=bool(eligible))
                session.add(row)
            elif eligible is not None:
                row.eligible = eligible
            row.entity_name = entity_name
            _apply_location(row, location)
            row.updated_at = datetime.now(UTC)
            await session.commit()
        self._logger.debug(
            "Last location saved", entity_id=entity_id, location=location.describe(), eligible=eligible
        )

    async def mark_death(
        self,
        entity_id: EntityId,
        entity_name: str,
        location: Location,
        reason: DeathReason,
        eligible: bool,
        last_respawn_at: datetime | None,
    ) -> None:
        """
        Persist location, death reason, eligibility and respawn stamp in one write.

        Raises:
            DatabaseError: If database operation fails
        """
        context = create_error_context(
            entity_id=entity_id, entity_name=entity_name, action="mark_death", death_reason=reason.value
        )
        context.metadata["operation"] = "mark_death"
        try:
            await self._write_death(entity_id, entity_name, location, reason, eligible, last_respawn_at)
        except SQLAlchemyError as e:
            log_and_raise(
                DatabaseError,
                f"Database error recording death for '{entity_name}': {e}",
                context=context,
                details={"entity_id": entity_id, "table": TABLE_NAME, "error": str(e)},
                user_friendly="Failed to record entity death",
            )

    @retry_with_backoff(max_attempts=3, initial_delay=1.0, max_delay=10.0)
    async def _write_death(
        self,
        entity_id: EntityId,
        entity_name: str,
        location: Location,
        reason: DeathReason,
        eligible: bool,
        last_respawn_at: datetime | None,
    ) -> None:
        async with self._sessions()() as session:
            row = await session.get(RespawnRecordRow, entity_id)
            if row is None:
                row = RespawnRecordRow(entity_id=entity_id, entity_name=entity_name)
                session.add(row)
            row.entity_name = entity_name
            _apply_location(row, location)
            row.death_reason = reason.value
            row.eligible = eligible
            if last_respawn_at is not None:
                row.last_respawn_at = last_respawn_at
            row.updated_at = datetime.now(UTC)
            await session.commit()
        self._logger.debug("Death recorded", entity_id=entity_id, reason=reason.value, eligible=eligible)

    async def set_eligible(self, entity_id: EntityId, eligible: bool, reason: DeathReason | None = None) -> bool:
        """
        Update the eligibility flag of an existing record.

        When reason is given the stored death reason is overwritten too, so a
        record made ineligible by an operator command says why.

        Returns:
            bool: False when no record exists for the entity

        Raises:
            DatabaseError: If database operation fails
        """
        context = create_error_context(entity_id=entity_id, action="set_eligible")
        context.metadata["operation"] = "set_eligible"
        context.metadata["eligible"] = eligible
        if reason is not None:
            context.metadata["death_reason"] = reason.value
        try:
            return await self._update_eligible(entity_id, eligible, reason)
        except SQLAlchemyError as e:
            log_and_raise(
                DatabaseError,
                f"Database error updating eligibility for '{entity_id}': {e}",
                context=context,
                details={"entity_id": entity_id, "table": TABLE_NAME, "error": str(e)},
                user_friendly="Failed to update respawn eligibility",
            )
        return False

    @retry_with_backoff(max_attempts=3, initial_delay=1.0, max_delay=10.0)
    async def _update_eligible(self, entity_id: EntityId, eligible: bool, reason: DeathReason | None) -> bool:
        values: dict[str, Any] = {"eligible": eligible, "updated_at": datetime.now(UTC)}
        if reason is not None:
            values["death_reason"] = reason.value
        async with self._sessions()() as session:
            stmt = update(RespawnRecordRow).where(RespawnRecordRow.entity_id == entity_id).values(**values)
            result = await session.execute(stmt)
            await session.commit()
            return bool(result.rowcount)

    async def get_record(self, entity_id: EntityId) -> RespawnRecord | None:
        """
        Get the respawn record for an entity.

        Returns:
            RespawnRecord | None: The record, or None if not found

        Raises:
            DatabaseError: If database operation fails
        """
        context = create_error_context(entity_id=entity_id, action="get_record")
        context.metadata["operation"] = "get_record"
        try:
            return await self._fetch_record(entity_id)
        except SQLAlchemyError as e:
            log_and_raise(
                DatabaseError,
                f"Database error retrieving respawn record for '{entity_id}': {e}",
                context=context,
                details={"entity_id": entity_id, "table": TABLE_NAME, "error": str(e)},
                user_friendly="Failed to retrieve respawn record",
            )
        return None

    @retry_with_backoff(max_attempts=3, initial_delay=1.0, max_delay=10.0)
    async def _fetch_record(self, entity_id: EntityId) -> RespawnRecord | None:
        async with self._sessions()() as session:
            row = await session.get(RespawnRecordRow, entity_id)
            return _row_to_record(row) if row is not None else None

    async def delete_record(self, entity_id: EntityId) -> bool:
        """
        Delete the respawn record for an entity.

        Returns:
            bool: False when no record existed

        Raises:
            DatabaseError: If database operation fails
        """
        context = create_error_context(entity_id=entity_id, action="delete_record")
        context.metadata["operation"] = "delete_record"
        try:
            return await self._delete_row(entity_id)
        except SQLAlchemyError as e:
            log_and_raise(
                DatabaseError,
                f"Database error deleting respawn record for '{entity_id}': {e}",
                context=context,
                details={"entity_id": entity_id, "table": TABLE_NAME, "error": str(e)},
                user_friendly="Failed to delete respawn record",
            )
        return False

    @retry_with_backoff(max_attempts=3, initial_delay=1.0, max_delay=10.0)
    async def _delete_row(self, entity_id: EntityId) -> bool:
        async with self._sessions()() as session:
            result = await session.execute(delete(RespawnRecordRow).where(RespawnRecordRow.entity_id == entity_id))
            await session.commit()
            deleted = bool(result.rowcount)
        if deleted:
            self._logger.debug("Respawn record deleted", entity_id=entity_id)
        return deleted

    async def list_eligible(self) -> list[RespawnRecord]:
        """
        List every record marked eligible, oldest update first.

        Raises:
            DatabaseError: If database operation fails
        """
        context = create_error_context(action="list_eligible")
        context.metadata["operation"] = "list_eligible"
        try:
            return await self._fetch_eligible()
        except SQLAlchemyError as e:
            log_and_raise(
                DatabaseError,
                f"Database error listing eligible respawn records: {e}",
                context=context,
                details={"table": TABLE_NAME, "error": str(e)},
                user_friendly="Failed to list pending respawns",
            )
        return []

    @retry_with_backoff(max_attempts=3, initial_delay=1.0, max_delay=10.0)
    async def _fetch_eligible(self) -> list[RespawnRecord]:
        async with self._sessions()() as session:
            stmt = (
                select(RespawnRecordRow)
                .where(RespawnRecordRow.eligible.is_(True))
                .where(RespawnRecordRow.last_world.is_not(None))
                .order_by(RespawnRecordRow.updated_at, RespawnRecordRow.entity_id)
            )
            result = await session.execute(stmt)
            return [_row_to_record(row) for row in result.scalars().all()]
