"""Root test configuration."""

import logging

import pytest
import structlog
from keyseed.clients.memory import InMemoryDirectory
from keyseed.config import Settings
from keyseed.models import EntityKind


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def directory():
    """Directory with the pre-existing default domain and member role."""
    directory = InMemoryDirectory(latency=0.001)
    directory.seed(EntityKind.DOMAIN, {"name": "Default"}, entity_id="default")
    directory.seed(EntityKind.ROLE, {"name": "member"}, entity_id="role-member")
    return directory


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        barrier_timeout=5.0,
        admin_password="test-password",
    )
