"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in sys.path for proper imports with pytest-xdist
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from noconflict.audit import MemorySink, reset_audit_logger  # noqa: E402
from noconflict.cluster import Cluster  # noqa: E402
from noconflict.config import reset_settings  # noqa: E402
from noconflict.metrics import RetentionMetrics, reset_metrics  # noqa: E402
from tests.helpers import FixedClock  # noqa: E402


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def cluster(clock: FixedClock) -> Cluster:
    return Cluster(clock=clock)


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def metrics() -> RetentionMetrics:
    return RetentionMetrics()


@pytest.fixture
def context(cluster: Cluster, sink: MemorySink, metrics: RetentionMetrics):
    return cluster.context(sink=sink, metrics=metrics)


@pytest.fixture(autouse=True)
def _reset_globals():
    yield
    reset_settings()
    reset_metrics()
    reset_audit_logger()
