"""
Respawn orchestration for managed entities.

The orchestrator owns the per-entity respawn state machine:

    ALIVE -> DYING -> (ELIGIBLE -> SCHEDULED -> RESPAWNING -> ALIVE | FAILED_RETAINED)
                   -> INELIGIBLE
    any -> CANCELLED

It runs entirely on the asyncio event loop. Classification, eligibility and
cooldown stamping for one death happen with no await in between; store and
spawn I/O are awaited and their results resume on the loop before any state
is touched. A second death signal for an entity whose death is still being
handled is dropped, which serializes death handling per entity without locks.

Failures never escape to the host: persistence errors degrade a death to
ineligible, spawn failures keep the record for the next startup scan.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from functools import partial
from typing import Any

from ..config import get_auto_respawn_config
from ..config.models import AutoRespawnConfig
from ..exceptions import (
    AutoRespawnError,
    DatabaseError,
    SpawnError,
    WorldUnavailableError,
    create_error_context,
    handle_exception,
)
from ..persistence.protocols import ProfileStoreProtocol
from ..schemas.respawn import DeathReason, DeathSignal, EntityId, Location, NotificationKind
from ..structured_logging.enhanced_logging_config import bind_entity_context, clear_entity_context, get_logger
from ..utils.error_logging import log_error_with_context
from .collaborators import EntityLifecycleService, WorldProvider
from .death_classifier import CommandKillRegistry, classify
from .eligibility_policy import CooldownTracker, evaluate, is_throttled
from .notification_dispatcher import NotificationDispatcher
from .respawn_scheduler import RespawnScheduler, ScheduledTask

logger = get_logger(__name__)

UNLIMITED_LIFESPAN = None


class RespawnState(str, Enum):
    """Per-entity respawn lifecycle states."""

    ALIVE = "alive"
    DYING = "dying"
    ELIGIBLE = "eligible"
    INELIGIBLE = "ineligible"
    SCHEDULED = "scheduled"
    RESPAWNING = "respawning"
    FAILED_RETAINED = "failed_retained"
    CANCELLED = "cancelled"


@dataclass
class DeathHandlingResult:
    """Outcome of handle_death for one signal."""

    entity_id: EntityId
    state: RespawnState
    reason: DeathReason | None = None
    eligible: bool = False
    cooldown_blocked: bool = False
    dropped: bool = False
    scheduled: ScheduledTask | None = None
    errors: list[str] = field(default_factory=list)


class RespawnOrchestrator:
    """
    Coordinates classification, eligibility, persistence, scheduling and spawning.

    The configuration provider is called once per operation, so a runtime
    reload takes effect on the next death or firing.
    """

    def __init__(
        self,
        store: ProfileStoreProtocol,
        scheduler: RespawnScheduler,
        lifecycle: EntityLifecycleService,
        worlds: WorldProvider,
        notifier: NotificationDispatcher | None = None,
        config_provider: Callable[[], AutoRespawnConfig] | None = None,
        cooldowns: CooldownTracker | None = None,
        command_kills: CommandKillRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._lifecycle = lifecycle
        self._worlds = worlds
        self._notifier = notifier or NotificationDispatcher(None)
        self._config_provider = config_provider or get_auto_respawn_config
        self._cooldowns = cooldowns or CooldownTracker()
        self._command_kills = command_kills or CommandKillRegistry()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._states: dict[EntityId, RespawnState] = {}
        self._in_flight: set[EntityId] = set()
        self._last_reasons: dict[EntityId, DeathReason] = {}

        logger.info("RespawnOrchestrator initialized")

    @property
    def scheduler(self) -> RespawnScheduler:
        return self._scheduler

    @property
    def cooldowns(self) -> CooldownTracker:
        return self._cooldowns

    @property
    def command_kills(self) -> CommandKillRegistry:
        return self._command_kills

    def get_state(self, entity_id: EntityId) -> RespawnState:
        """Current state; entities never seen are ALIVE."""
        return self._states.get(entity_id, RespawnState.ALIVE)

    def last_death_reason(self, entity_id: EntityId) -> DeathReason | None:
        return self._last_reasons.get(entity_id)

    # ------------------------------------------------------------------
    # Death handling
    # ------------------------------------------------------------------

    async def handle_death(self, signal: DeathSignal, location: Location) -> DeathHandlingResult:
        """
        Process one death signal.

        Args:
            signal: Observed death signals
            location: Where the entity died

        Returns:
            DeathHandlingResult describing the transition taken
        """
        entity_id = signal.entity_id
        if entity_id in self._in_flight:
            logger.info("Dropping duplicate death signal", entity_id=entity_id, entity_name=signal.display_name)
            return DeathHandlingResult(entity_id=entity_id, state=self.get_state(entity_id), dropped=True)

        self._in_flight.add(entity_id)
        self._states[entity_id] = RespawnState.DYING
        try:
            return await self._handle_death(signal, location)
        finally:
            self._in_flight.discard(entity_id)
            if self._states.get(entity_id) in (RespawnState.DYING, RespawnState.ELIGIBLE):
                # Unexpected error part-way; never leave the entity stuck
                self._states[entity_id] = RespawnState.INELIGIBLE

    async def _handle_death(self, signal: DeathSignal, location: Location) -> DeathHandlingResult:
        entity_id = signal.entity_id
        settings = self._config_provider()
        result = DeathHandlingResult(entity_id=entity_id, state=RespawnState.DYING)

        store_ok = True
        try:
            await self._store.save_last_location(entity_id, signal.display_name, location)
        except DatabaseError as e:
            store_ok = False
            result.errors.append(str(e))
            logger.warning(
                "Could not save last location; treating death as ineligible",
                entity_id=entity_id,
                action="save_last_location",
                error=str(e),
            )

        # Classification, cooldown check and evaluation must not be split by an await
        now = self._clock()
        reason = classify(signal, self._command_kills.get(entity_id), settings.classifier)
        result.reason = reason
        self._last_reasons[entity_id] = reason
        cooldown_blocked = settings.enabled and is_throttled(
            entity_id, now, self._cooldowns, settings.respawn_cooldown_seconds
        )
        eligible = store_ok and evaluate(entity_id, reason, now, self._cooldowns, settings)

        logger.info(
            "Death classified",
            entity_id=entity_id,
            entity_name=signal.display_name,
            reason=reason.value,
            cause_code=signal.cause_code,
            eligible=eligible,
            cooldown_blocked=cooldown_blocked,
            location=location.describe(),
        )

        if eligible:
            self._states[entity_id] = RespawnState.ELIGIBLE
            try:
                await self._store.mark_death(
                    entity_id, signal.display_name, location, reason, eligible=True, last_respawn_at=now
                )
            except DatabaseError as e:
                # No respawn was actually granted, so the window is not consumed
                self._cooldowns.clear(entity_id)
                result.errors.append(str(e))
                logger.warning(
                    "Could not persist eligible death; treating as ineligible",
                    entity_id=entity_id,
                    reason=reason.value,
                    action="mark_death",
                    error=str(e),
                )
                eligible = False

        if eligible:
            await self._remove_from_world(entity_id, f"auto-respawn pending ({reason.value})")
            scheduled = self._scheduler.schedule(
                entity_id, settings.respawn_delay_seconds, partial(self.respawn_now, entity_id)
            )
            self._states[entity_id] = RespawnState.SCHEDULED
            result.eligible = True
            result.scheduled = scheduled
            result.state = RespawnState.SCHEDULED
            logger.info(
                "Respawn scheduled",
                entity_id=entity_id,
                entity_name=signal.display_name,
                reason=reason.value,
                delay=settings.respawn_delay_seconds,
                attempt=scheduled.attempt,
            )
            if settings.notify_operator:
                self._notifier.dispatch(
                    NotificationKind.RESPAWN_SCHEDULED,
                    entity_id,
                    signal.display_name,
                    f"{signal.display_name} will respawn in {settings.respawn_delay_seconds:g}s",
                    reason=reason.value,
                    delay_seconds=settings.respawn_delay_seconds,
                )
            return result

        await self._mark_ineligible(signal, reason, settings, cooldown_blocked, now, store_ok)
        result.cooldown_blocked = cooldown_blocked
        result.state = RespawnState.INELIGIBLE
        return result

    async def _mark_ineligible(
        self,
        signal: DeathSignal,
        reason: DeathReason,
        settings: AutoRespawnConfig,
        cooldown_blocked: bool,
        now: datetime,
        store_ok: bool,
    ) -> None:
        entity_id = signal.entity_id
        self._scheduler.cancel(entity_id)
        self._states[entity_id] = RespawnState.INELIGIBLE

        if settings.kick_on_dead:
            await self._remove_from_world(entity_id, f"died ({reason.value})")

        if store_ok:
            try:
                await self._store.set_eligible(entity_id, False)
            except DatabaseError as e:
                logger.warning(
                    "Could not clear respawn eligibility",
                    entity_id=entity_id,
                    reason=reason.value,
                    action="set_eligible",
                    error=str(e),
                )

        if not settings.notify_operator:
            return

        if cooldown_blocked:
            last = self._cooldowns.get(entity_id)
            remaining = settings.respawn_cooldown_seconds
            if last is not None:
                remaining = max(0.0, settings.respawn_cooldown_seconds - (now - last).total_seconds())
            self._notifier.dispatch(
                NotificationKind.COOLDOWN_BLOCKED,
                entity_id,
                signal.display_name,
                f"{signal.display_name} died but is on respawn cooldown ({remaining:.0f}s left)",
                reason=reason.value,
                remaining_seconds=remaining,
            )
            return

        message = f"{signal.display_name} died ({reason.value.lower()}) and will not respawn automatically"
        if not settings.kick_on_dead:
            message += "; respawn it manually"
        self._notifier.dispatch(
            NotificationKind.DIED,
            entity_id,
            signal.display_name,
            message,
            reason=reason.value,
            death_message=signal.message,
        )

    async def _remove_from_world(self, entity_id: EntityId, reason: str) -> bool:
        try:
            return await self._lifecycle.remove_entity(entity_id, reason)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: collaborator failures must not abort death handling
            log_error_with_context(
                e,
                create_error_context(entity_id=entity_id, action="remove_entity", death_reason=reason),
                level="warning",
                logger_name=__name__,
            )
            return False

    # ------------------------------------------------------------------
    # Respawning
    # ------------------------------------------------------------------

    async def respawn_now(self, entity_id: EntityId) -> RespawnState:
        """
        Respawn an entity from its persisted record.

        Runs as the scheduled task body; safe to call directly. The record is
        re-read here so a cancellation or eligibility change made after
        scheduling is honored.

        Returns:
            RespawnState: ALIVE on success or when already present,
            CANCELLED when skipped, FAILED_RETAINED on failure
        """
        bind_entity_context(entity_id, action="respawn")
        try:
            return await self._respawn(entity_id)
        finally:
            clear_entity_context()

    async def _respawn(self, entity_id: EntityId) -> RespawnState:
        settings = self._config_provider()
        self._states[entity_id] = RespawnState.RESPAWNING

        try:
            record = await self._store.get_record(entity_id)
        except DatabaseError as e:
            logger.error("Could not read respawn record", entity_id=entity_id, action="get_record", error=str(e))
            self._states[entity_id] = RespawnState.FAILED_RETAINED
            return RespawnState.FAILED_RETAINED

        if record is None or not record.eligible or record.last_location is None:
            logger.info(
                "Skipping respawn; record gone or no longer eligible",
                entity_id=entity_id,
                has_record=record is not None,
            )
            self._states[entity_id] = RespawnState.CANCELLED
            return RespawnState.CANCELLED

        if self._lifecycle.is_entity_present(entity_id):
            logger.info("Entity already present, clearing respawn record", entity_id=entity_id)
            await self._delete_record_quietly(entity_id)
            self._states[entity_id] = RespawnState.ALIVE
            return RespawnState.ALIVE

        location = record.last_location
        context = create_error_context(
            entity_id=entity_id,
            entity_name=record.entity_name,
            action="create_entity",
            death_reason=record.death_reason.value if record.death_reason else None,
        )
        context.metadata["location"] = location.describe()

        try:
            world = self._worlds.get_world(location.world)
            if world is None:
                raise WorldUnavailableError(
                    f"World '{location.world}' is not loaded",
                    context=context,
                    world=location.world,
                    entity_name=record.entity_name,
                )
            handle = await self._lifecycle.create_entity(record.entity_name, world, location, UNLIMITED_LIFESPAN)
            if handle is None:
                raise SpawnError(
                    f"Entity lifecycle service did not create '{record.entity_name}'",
                    context=context,
                    entity_name=record.entity_name,
                )
        except SpawnError as e:
            return self._respawn_failed(entity_id, record.entity_name, e, settings)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: any collaborator error is a spawn failure
            error = handle_exception(e, context)
            return self._respawn_failed(entity_id, record.entity_name, error, settings)

        await self._delete_record_quietly(entity_id)
        self._command_kills.clear(entity_id)
        self._states[entity_id] = RespawnState.ALIVE
        logger.info(
            "Entity respawned",
            entity_id=entity_id,
            entity_name=record.entity_name,
            location=location.describe(),
        )
        if settings.notify_operator:
            self._notifier.dispatch(
                NotificationKind.RESPAWN_SUCCEEDED,
                entity_id,
                record.entity_name,
                f"{record.entity_name} respawned at {location.describe()}",
                world=location.world,
            )
        return RespawnState.ALIVE

    def _respawn_failed(
        self, entity_id: EntityId, entity_name: str, error: AutoRespawnError, settings: AutoRespawnConfig
    ) -> RespawnState:
        # Record stays eligible for the next startup scan; no immediate retry
        self._states[entity_id] = RespawnState.FAILED_RETAINED
        error_type = type(error).__name__
        logger.error(
            "Respawn failed; record retained for next startup",
            entity_id=entity_id,
            entity_name=entity_name,
            action="create_entity",
            error=error.message,
            error_type=error_type,
        )
        if settings.notify_operator:
            self._notifier.dispatch(
                NotificationKind.RESPAWN_FAILED,
                entity_id,
                entity_name,
                f"{entity_name} could not be respawned: {error.message}",
                error=error.message,
                error_type=error_type,
            )
        return RespawnState.FAILED_RETAINED

    async def _delete_record_quietly(self, entity_id: EntityId) -> None:
        try:
            await self._store.delete_record(entity_id)
        except DatabaseError as e:
            logger.warning("Could not delete respawn record", entity_id=entity_id, action="delete_record", error=str(e))

    # ------------------------------------------------------------------
    # Upstream signals
    # ------------------------------------------------------------------

    async def cancel_respawn(self, entity_id: EntityId) -> bool:
        """
        Cancel a pending respawn because the entity came back another way.

        A task already firing is allowed to finish.

        Returns:
            bool: True if a pending task was cancelled
        """
        cancelled = self._scheduler.cancel(entity_id)
        await self._delete_record_quietly(entity_id)
        self._states[entity_id] = RespawnState.CANCELLED
        logger.info("Respawn cancelled", entity_id=entity_id, had_pending_task=cancelled)
        return cancelled

    async def mark_command_kill(self, entity_id: EntityId, at: datetime | None = None) -> datetime:
        """
        Record that an operator is removing the entity by command.

        The mark makes a death observed within the de-bounce window classify as
        COMMAND. Any pending respawn is cancelled and the record made ineligible.

        Returns:
            datetime: The recorded mark
        """
        stamp = self._command_kills.mark(entity_id, at)
        self._scheduler.cancel(entity_id)
        try:
            await self._store.set_eligible(entity_id, False, reason=DeathReason.COMMAND)
        except DatabaseError as e:
            logger.warning(
                "Could not clear eligibility after command kill",
                entity_id=entity_id,
                action="set_eligible",
                error=str(e),
            )
        return stamp

    async def record_location(self, entity_id: EntityId, entity_name: str, location: Location) -> bool:
        """
        Persist a live entity's location so a restart restores it there.

        Ignored while the feature or location tracking is disabled, and while
        a death is being handled or a respawn is pending.

        Returns:
            bool: True if the location was stored
        """
        settings = self._config_provider()
        if not settings.enabled or not settings.track_location:
            return False
        if self.get_state(entity_id) in (RespawnState.DYING, RespawnState.ELIGIBLE, RespawnState.SCHEDULED):
            return False
        try:
            await self._store.save_last_location(entity_id, entity_name, location, eligible=True)
        except DatabaseError as e:
            logger.warning("Could not record entity location", entity_id=entity_id, error=str(e))
            return False
        return True

    # ------------------------------------------------------------------
    # Startup recovery
    # ------------------------------------------------------------------

    async def recover_pending_respawns(self) -> dict[str, Any]:
        """
        Schedule respawns for every eligible record left from a previous run.

        Entities already present are skipped, as are entities that already
        have a pending task. The rest are scheduled with a fixed stagger,
        the first one immediately.

        Returns:
            dict: Summary with total_found, scheduled, skipped_present,
            skipped_pending and errors
        """
        results: dict[str, Any] = {
            "enabled": True,
            "total_found": 0,
            "scheduled": 0,
            "skipped_present": 0,
            "skipped_pending": 0,
            "errors": [],
        }

        settings = self._config_provider()
        if not settings.enabled:
            results["enabled"] = False
            logger.info("Auto-respawn disabled, skipping startup recovery")
            return results

        try:
            records = await self._store.list_eligible()
        except DatabaseError as e:
            results["errors"].append(f"list_eligible: {e}")
            logger.error("Startup recovery could not list eligible records", error=str(e))
            return results

        results["total_found"] = len(records)
        logger.info("Startup recovery found eligible records", count=len(records))

        index = 0
        for record in records:
            entity_id = record.entity_id
            try:
                if self._lifecycle.is_entity_present(entity_id):
                    results["skipped_present"] += 1
                    logger.info("Entity already present, skipping recovery", entity_id=entity_id)
                    continue
                if entity_id in self._scheduler:
                    results["skipped_pending"] += 1
                    continue

                delay = index * settings.recovery_stagger_seconds
                self._scheduler.schedule(entity_id, delay, partial(self.respawn_now, entity_id))
                self._states[entity_id] = RespawnState.SCHEDULED
                results["scheduled"] += 1
                index += 1
                logger.info(
                    "Recovery respawn scheduled",
                    entity_id=entity_id,
                    entity_name=record.entity_name,
                    delay=delay,
                )
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: one bad record must not abort the scan
                error_msg = f"Failed to schedule recovery for {entity_id}: {e}"
                results["errors"].append(error_msg)
                logger.error(error_msg, entity_id=entity_id, error=str(e), exc_info=True)

        logger.info(
            "Startup recovery completed",
            total_found=results["total_found"],
            scheduled=results["scheduled"],
            skipped_present=results["skipped_present"],
            errors=len(results["errors"]),
        )
        return results
