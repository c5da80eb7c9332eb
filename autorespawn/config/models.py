"""
Pydantic-based configuration models for the autorespawn subsystem.

Every value is read from the environment (or a .env file) through
pydantic-settings. The classifier word lists live here rather than in module
globals so the classifier and the policy stay pure functions of their inputs.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from ..schemas.respawn import DamageCause
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_HOSTILE_MOB_NAMES: list[str] = [
    "Zombie",
    "Skeleton",
    "Spider",
    "Cave Spider",
    "Creeper",
    "Enderman",
    "Witch",
    "Pillager",
    "Vindicator",
    "Evoker",
    "Ravager",
    "Phantom",
    "Drowned",
    "Husk",
    "Stray",
    "Wither Skeleton",
    "Blaze",
    "Ghast",
    "Magma Cube",
    "Silverfish",
    "Endermite",
    "Guardian",
    "Elder Guardian",
    "Shulker",
    "Vex",
    "Piglin",
    "Piglin Brute",
    "Hoglin",
    "Zoglin",
    "Warden",
]

DEFAULT_ENVIRONMENTAL_CAUSES: list[DamageCause] = [
    DamageCause.FALL,
    DamageCause.FIRE,
    DamageCause.FIRE_TICK,
    DamageCause.LAVA,
    DamageCause.DROWNING,
    DamageCause.SUFFOCATION,
    DamageCause.STARVATION,
    DamageCause.VOID,
    DamageCause.LIGHTNING,
    DamageCause.FREEZE,
    DamageCause.FALLING_BLOCK,
    DamageCause.FLY_INTO_WALL,
    DamageCause.HOT_FLOOR,
    DamageCause.CRAMMING,
    DamageCause.DRYOUT,
]

DEFAULT_ATTACK_CAUSES: list[DamageCause] = [
    DamageCause.ENTITY_ATTACK,
    DamageCause.ENTITY_EXPLOSION,
    DamageCause.ENTITY_SWEEP_ATTACK,
]

DEFAULT_ENVIRONMENTAL_PHRASES: list[str] = [
    "drowned",
    "fell",
    "burned to death",
    "suffocated",
    "starved",
    "froze to death",
    "lava",
    "hit the ground",
    "fell out of the world",
    "withered away",
    "was pricked to death",
    "walked into fire",
    "was struck by lightning",
    "discovered the floor was lava",
]


class ClassifierSettings(BaseSettings):
    """Word lists and windows used by the death classifier."""

    hostile_mob_names: list[str] = Field(
        default_factory=lambda: list(DEFAULT_HOSTILE_MOB_NAMES),
        description="Display names of hostile actors recognized in death messages",
    )
    environmental_causes: list[DamageCause] = Field(
        default_factory=lambda: list(DEFAULT_ENVIRONMENTAL_CAUSES),
        description="Structured causes that always classify as ENVIRONMENT",
    )
    attack_causes: list[DamageCause] = Field(
        default_factory=lambda: list(DEFAULT_ATTACK_CAUSES),
        description="Structured causes that indicate an entity-inflicted attack",
    )
    environmental_phrases: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ENVIRONMENTAL_PHRASES),
        description="Free-text markers of an environmental death",
    )
    command_kill_debounce_ms: int = Field(
        default=1000, description="Window in which a command-kill mark overrides the reported cause"
    )

    @field_validator("command_kill_debounce_ms")
    @classmethod
    def validate_debounce(cls, v: int) -> int:
        """Validate the de-bounce window is not negative."""
        if v < 0:
            raise ValueError("command_kill_debounce_ms must not be negative")
        return v

    @field_validator("hostile_mob_names", "environmental_phrases")
    @classmethod
    def strip_blank_entries(cls, v: list[str]) -> list[str]:
        """Drop empty entries so they never match every message."""
        return [item.strip() for item in v if item and item.strip()]

    model_config = {"env_prefix": "CLASSIFIER_", "case_sensitive": False, "extra": "ignore"}


class AutoRespawnConfig(BaseSettings):
    """Toggles and durations for the auto-respawn policy."""

    enabled: bool = Field(default=False, description="Global auto-respawn switch")
    respawn_on_hostile_death: bool = Field(default=True, description="Respawn entities killed by hostile mobs")
    respawn_on_environment_death: bool = Field(default=True, description="Respawn entities killed by the world")
    respawn_on_command_kill: bool = Field(default=False, description="Respawn entities removed by command")
    respawn_delay_seconds: float = Field(default=5.0, description="Delay between death and respawn")
    respawn_cooldown_seconds: float = Field(default=60.0, description="Minimum spacing between two respawns")
    recovery_stagger_seconds: float = Field(default=2.0, description="Spacing between startup recovery respawns")
    recovery_startup_delay_seconds: float = Field(
        default=10.0, description="Stabilization delay before the startup recovery scan"
    )
    kick_on_dead: bool = Field(default=True, description="Remove ineligible dead entities from the world")
    notify_operator: bool = Field(default=True, description="Send operator notifications")
    track_location: bool = Field(default=True, description="Persist location updates for restart recovery")
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)

    @field_validator(
        "respawn_delay_seconds",
        "respawn_cooldown_seconds",
        "recovery_stagger_seconds",
        "recovery_startup_delay_seconds",
    )
    @classmethod
    def validate_duration(cls, v: float) -> float:
        """Validate durations are not negative."""
        if v < 0:
            logger.error("Invalid auto-respawn duration", value=v)
            raise ValueError("Durations must not be negative")
        return v

    model_config = {"env_prefix": "AUTO_RESPAWN_", "case_sensitive": False, "extra": "ignore"}


class DatabaseConfig(BaseSettings):
    """Profile store database configuration."""

    url: str = Field(..., description="Profile store database URL (required)")
    echo: bool = Field(default=False, description="Echo SQL statements")

    @field_validator("url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v:
            logger.error("Database URL validation failed - empty URL")
            raise ValueError("Database URL cannot be empty")
        if not v.startswith(("postgresql", "sqlite+aiosqlite")):
            logger.error("Database URL validation failed - invalid protocol", url_preview=v[:50])
            raise ValueError("Database URL must start with 'postgresql' or 'sqlite+aiosqlite'")
        return v

    model_config = {"env_prefix": "DATABASE_", "case_sensitive": False, "extra": "ignore"}


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    environment: str = Field(default="local", description="Logging environment")
    level: str = Field(default="INFO", description="Log level")
    log_base: str = Field(default="logs", description="Base log directory")
    max_bytes: int = Field(default=10 * 1024 * 1024, description="Rotate log files at this size")
    backup_count: int = Field(default=5, description="Number of backup log files")
    disable_logging: bool = Field(default=False, description="Disable file logging")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate logging environment."""
        valid_environments = ["local", "unit_test", "e2e_test", "production"]
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of {valid_environments}, got '{v}'")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}, got '{v}'")
        return v_upper

    model_config = {"env_prefix": "LOGGING_", "case_sensitive": False, "extra": "ignore"}

    def to_legacy_dict(self) -> dict:
        """Convert to the dict layout expected by setup_enhanced_logging."""
        return {
            "environment": self.environment,
            "level": self.level,
            "log_base": self.log_base,
            "max_bytes": self.max_bytes,
            "backup_count": self.backup_count,
            "disable_logging": self.disable_logging,
        }


class AppConfig(BaseSettings):
    """
    Composite application configuration.

    Access via get_config().
    """

    auto_respawn: AutoRespawnConfig = Field(default_factory=AutoRespawnConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)  # type: ignore[arg-type]
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "case_sensitive": False, "extra": "ignore"}
