"""
Pytest configuration and fixtures for sql-scalerctl tests.

This module provides instance configurations, scaling state objects and
in-memory collaborators shared by the unit tests, plus the connection URL
for the optional PostgreSQL integration tests.
"""

import os
from datetime import UTC, datetime
from uuid import uuid4

import pytest

from sql_scalerctl.log import setup_logging
from sql_scalerctl.models import InstanceConfig, MetricSample, ScalingState
from tests.fakes import (
    FakeExecutor,
    FakePublisher,
    FakeStateStore,
    FakeStatusProvider,
    RecordingCounters,
)

# 2024-01-01T12:00:00Z
LAST_SCALING_MS = int(datetime(2024, 1, 1, 12, 0, tzinfo=UTC).timestamp() * 1000)
MINUTE_MS = 60_000


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    setup_logging(verbose=2)


@pytest.fixture(scope="session")
def state_database_url() -> str:
    """Get the PostgreSQL connection URL for integration tests."""
    url = os.environ.get("STATE_DATABASE_URL_TEST")
    if not url:
        pytest.skip("STATE_DATABASE_URL_TEST environment variable not set")
    return url


@pytest.fixture
def test_instance_id() -> str:
    """Generate a unique instance ID for testing."""
    return f"test-instance-{uuid4().hex[:8]}"


@pytest.fixture
def instance_config() -> InstanceConfig:
    """An 8 vCPU instance with a single CPU metric sitting at its threshold."""
    return InstanceConfig(
        project_id="test-project",
        instance_id="test-instance",
        min_size=2,
        max_size=64,
        current_size=8,
        scale_out_cooling_minutes=5,
        scale_in_cooling_minutes=30,
        overload_step_size=2,
        metrics=[MetricSample(name="cpu", threshold=65, margin=5, value=65)],
    )


@pytest.fixture
def idle_state() -> ScalingState:
    """A state with no scaling history."""
    return ScalingState()


@pytest.fixture
def in_flight_state() -> ScalingState:
    """A state with a scale-out from 1 to 2 still in flight."""
    return ScalingState(
        last_scaling_timestamp=LAST_SCALING_MS,
        last_scaling_complete_timestamp=0,
        scaling_operation_id="OperationId",
        scaling_method="FIXED",
        scaling_previous_size=1,
        scaling_requested_size=2,
    )


@pytest.fixture
def store() -> FakeStateStore:
    return FakeStateStore(now=LAST_SCALING_MS)


@pytest.fixture
def status_provider() -> FakeStatusProvider:
    return FakeStatusProvider()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def counters() -> RecordingCounters:
    return RecordingCounters()
