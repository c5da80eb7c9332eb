"""
Database configuration for the autorespawn profile store.

This module provides the async engine, session management and table
initialization for the respawn records.

Database initialization is LAZY: nothing connects until the first call to
get_session_maker() or get_engine(), and it fails loudly if the configuration
is missing or invalid.
"""

import threading
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from .exceptions import ConfigurationError, create_error_context
from .structured_logging.enhanced_logging_config import get_logger
from .utils.error_logging import log_and_raise

logger = get_logger(__name__)

SUPPORTED_URL_PREFIXES = ("postgresql+asyncpg", "postgresql", "sqlite+aiosqlite")


class DatabaseManager:
    """
    Thread-safe singleton for database management.

    Manages the engine, session maker and URL with lazy initialization.
    """

    _instance: "DatabaseManager | None" = None
    _lock: threading.Lock = threading.Lock()

    def __init__(self) -> None:
        """Initialize the database manager."""
        if DatabaseManager._instance is not None:
            raise RuntimeError("Use DatabaseManager.get_instance()")

        self.engine: AsyncEngine | None = None
        self.session_maker: async_sessionmaker | None = None
        self.database_url: str | None = None
        self._initialized: bool = False

    @classmethod
    def get_instance(cls) -> "DatabaseManager":
        """Get the singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton for testing."""
        with cls._lock:
            cls._instance = None

    def _initialize_database(self) -> None:
        """
        Initialize database engine and session maker from configuration.

        Raises:
            ConfigurationError: If configuration is missing or invalid
        """
        if self._initialized:
            return

        context = create_error_context(action="database_initialization")

        from .config import get_config

        try:
            config = get_config()
            database_url = config.database.url
            echo = config.database.echo
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: pydantic raises several error types for bad settings
            log_and_raise(
                ConfigurationError,
                f"Failed to load configuration: {e}",
                context=context,
                details={"config_error": str(e)},
                user_friendly="Database cannot be initialized: configuration not loaded or invalid",
            )

        if not database_url.startswith(SUPPORTED_URL_PREFIXES):
            log_and_raise(
                ConfigurationError,
                f"Unsupported database URL: {database_url}",
                context=context,
                user_friendly="Database configuration error - PostgreSQL or SQLite (aiosqlite) required",
            )

        if database_url.startswith("postgresql://"):
            self.database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        else:
            self.database_url = database_url
        logger.info("Using profile store database URL from configuration", database_url=self.database_url)

        engine_kwargs: dict[str, Any] = {"echo": echo}
        if self.database_url.startswith("sqlite+aiosqlite") and ":memory:" in self.database_url:
            # In-memory SQLite exists per connection; share one across the pool
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_pre_ping"] = True

        self.engine = create_async_engine(self.database_url, **engine_kwargs)
        logger.info("Database engine created", dialect=self.engine.dialect.name)

        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        logger.info("Database session maker created")
        self._initialized = True

    def get_engine(self) -> AsyncEngine:
        """
        Get the database engine, initializing if necessary.

        Raises:
            ConfigurationError: If database cannot be initialized
        """
        if not self._initialized:
            self._initialize_database()
        assert self.engine is not None, "Database engine not initialized"
        return self.engine

    def get_session_maker(self) -> async_sessionmaker:
        """
        Get the async session maker, initializing if necessary.

        Raises:
            ConfigurationError: If database cannot be initialized
        """
        if not self._initialized:
            self._initialize_database()
        assert self.session_maker is not None, "Session maker not initialized"
        return self.session_maker

    async def close(self) -> None:
        """Dispose the engine and reset state."""
        if self.engine is not None:
            engine = self.engine
            try:
                await engine.dispose()
                logger.info("Database connections closed")
            finally:
                self.engine = None
                self.session_maker = None
                self._initialized = False
        else:
            self._initialized = False


def get_database_manager() -> DatabaseManager:
    """Get the database manager singleton."""
    return DatabaseManager.get_instance()


def get_engine() -> AsyncEngine:
    """Get the database engine, initializing if necessary."""
    return get_database_manager().get_engine()


def get_session_maker() -> async_sessionmaker:
    """
    Get the async session maker, initializing if necessary.

    Returns:
        async_sessionmaker: The session maker (never None)

    Raises:
        ConfigurationError: If database cannot be initialized
    """
    return get_database_manager().get_session_maker()


async def init_db() -> None:
    """
    Create the respawn tables if they do not exist.

    Schema migrations for production databases are managed outside this
    package; this only creates missing tables.
    """
    from .models.base import Base
    from .models.respawn import RespawnRecordRow  # noqa: F401  # pylint: disable=unused-import  # Reason: registers the table on Base.metadata

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Respawn tables initialized", tables=sorted(Base.metadata.tables))


async def close_db() -> None:
    """Close database connections and reset the manager."""
    await get_database_manager().close()
