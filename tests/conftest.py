# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""pytest configuration for replica_autoscaler tests."""

import logging
import sys
from pathlib import Path

import pytest

# Configure logging
logging.basicConfig(level=logging.INFO)

# Set up path for replica_autoscaler imports
root = Path(__file__).parent.parent
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from replica_autoscaler import (  # noqa: E402
    AutoscalerConfig,
    InMemoryMetricsSource,
    InMemoryScaleTarget,
    ManualClock,
    MetricSpec,
    PodInfo,
)


def _make_pods(
    count: int, cpu_request: float = 1.0, start_time: float = -3600.0
) -> list[PodInfo]:
    return [
        PodInfo(
            name=f"web-{i}",
            ready=True,
            start_time=start_time,
            requests={"cpu": cpu_request, "memory": 512.0},
        )
        for i in range(count)
    ]


@pytest.fixture
def make_pods():
    """Fixture providing a factory of ready pods old enough to pass any readiness delay."""
    return _make_pods


@pytest.fixture
def clock():
    """Fixture providing a manually advanced clock."""
    return ManualClock(start=1000.0)


@pytest.fixture
def metrics_source():
    """Fixture providing an in-memory metrics source."""
    return InMemoryMetricsSource()


@pytest.fixture
def scale_target():
    """Fixture providing an in-memory scale target with one workload at 2 replicas."""
    return InMemoryScaleTarget(replicas={"web": 2})


@pytest.fixture
def cpu_config():
    """Fixture providing a CPU-only configuration targeting 50% utilization."""
    return AutoscalerConfig(
        metrics=[MetricSpec(name="cpu", target_value=50.0)],
        min_replicas=1,
        max_replicas=10,
    )
