"""Root test configuration."""

import logging
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

FIXTURES = Path(__file__).parent / "fixtures"


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
def yaml_fixture():
    """Read a YAML fixture file by name."""

    def _load(name: str) -> str:
        return (FIXTURES / name).read_text()

    return _load


@pytest.fixture
def prom_client():
    """A PrometheusClient stand-in with every API call as an AsyncMock."""
    client = MagicMock()
    client.base_url = "http://prometheus:9090"
    for name in (
        "tsdb_stats",
        "query",
        "delete_series",
        "clean_tombstones",
        "config",
        "reload",
        "health_check",
    ):
        setattr(client, name, AsyncMock())
    return client
