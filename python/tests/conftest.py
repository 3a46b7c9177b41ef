"""Pytest configuration for servicehub tests.

Key Principles:
- No network: HTTP goes through httpx.MockTransport, sockets through fakes
- Every component receives its logger and settings by injection
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# tests directory (for fixtures.*)
tests_root = Path(__file__).parent
if str(tests_root) not in sys.path:
    sys.path.insert(0, str(tests_root))

from fixtures.fakes import FakeConnector, FakeDiscovery  # noqa: E402
from servicehub.settings import Settings, reset_settings  # noqa: E402


@pytest.fixture
def mock_logger():
    """Create a mock logger satisfying LoggerProtocol."""
    logger = MagicMock()
    logger.info = MagicMock()
    logger.debug = MagicMock()
    logger.warning = MagicMock()
    logger.error = MagicMock()
    logger.exception = MagicMock()
    logger.bind = MagicMock(return_value=logger)
    return logger


@pytest.fixture
def settings():
    """Settings with short timeouts so failing connects return quickly."""
    return Settings(http_timeout=1.0, channel_open_timeout=0.2)


@pytest.fixture(autouse=True)
def _reset_global_settings():
    yield
    reset_settings()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def discovery():
    return FakeDiscovery()


# =============================================================================
# PYTEST MARKERS
# =============================================================================

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated tests")
