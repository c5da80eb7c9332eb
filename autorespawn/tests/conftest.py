"""
Test configuration and fixtures for the autorespawn test suite.

Environment defaults are set before any autorespawn import so module-level
configuration reads never fail.
"""

import os
from collections.abc import Generator
from typing import Any

import pytest

os.environ.setdefault("LOGGING_ENVIRONMENT", "unit_test")
os.environ.setdefault("LOGGING_DISABLE_LOGGING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from autorespawn.app.tracked_task_manager import reset_global_tracked_manager  # noqa: E402
from autorespawn.config import reset_config  # noqa: E402
from autorespawn.database import DatabaseManager  # noqa: E402
from autorespawn.structured_logging.enhanced_logging_config import get_logger  # noqa: E402

logger = get_logger(__name__)


@pytest.fixture(autouse=True)
def reset_config_singleton() -> Generator[None, None, None]:
    """Reset config singleton before and after each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def reset_process_singletons() -> Generator[None, None, None]:
    """Drop the global task manager and database manager between tests."""
    reset_global_tracked_manager()
    DatabaseManager.reset_instance()
    yield
    reset_global_tracked_manager()
    DatabaseManager.reset_instance()


@pytest.fixture
def test_logger() -> Any:
    """Provide a logger for tests."""
    return get_logger(__name__)


def pytest_collection_modifyitems(config: Any, items: list[Any]) -> None:  # pylint: disable=unused-argument  # Reason: pytest hook signature
    """
    Auto-mark tests based on their file path.

    Tests in unit/ get @pytest.mark.unit
    Tests in integration/ get @pytest.mark.integration
    """
    for item in items:
        file_path = str(item.fspath)

        if "/unit/" in file_path or "\\unit\\" in file_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in file_path or "\\integration\\" in file_path:
            item.add_marker(pytest.mark.integration)
