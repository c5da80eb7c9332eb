"""Auto-respawn services: classification, policy, scheduling and orchestration."""

from .death_classifier import CommandKillRegistry, classify
from .eligibility_policy import CooldownTracker, evaluate, is_throttled
from .notification_dispatcher import NotificationDispatcher
from .respawn_orchestrator import DeathHandlingResult, RespawnOrchestrator, RespawnState
from .respawn_scheduler import RespawnScheduler, ScheduledTask
from .respawn_startup_service import RespawnStartupService

__all__ = [
    "CommandKillRegistry",
    "CooldownTracker",
    "DeathHandlingResult",
    "NotificationDispatcher",
    "RespawnOrchestrator",
    "RespawnScheduler",
    "RespawnStartupService",
    "RespawnState",
    "ScheduledTask",
    "classify",
    "evaluate",
    "is_throttled",
]
