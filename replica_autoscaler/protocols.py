# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Interfaces of the autoscaler's external collaborators.

The autoscaler only needs three things from the outside world:

- MetricsSource: the workload's pods and their metric samples
- ScaleTarget: the workload controller owning the replica count
- Clock: a monotonic time source
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .types import MetricSample, PodInfo


@runtime_checkable
class MetricsSource(Protocol):
    """Supplies pods and per-pod metric samples for a workload.

    Implementations:
        - InMemoryMetricsSource: samples set explicitly, for tests and simulation
    """

    async def get_pods(self, workload_id: str) -> list[PodInfo]:
        """Return the workload's current pod set.

        Args:
            workload_id: Workload identifier.

        Returns:
            All pods of the workload, ready or not.
        """
        ...

    async def get_metric_samples(
        self, workload_id: str, metric_name: str
    ) -> list[MetricSample]:
        """Return the latest sample of one metric for each reporting pod.

        Pods without a usable value (too young, unready) may be omitted.
        Raising any exception marks the metric unavailable for this tick.
        """
        ...


@runtime_checkable
class ScaleTarget(Protocol):
    """The workload controller that owns the replica count.

    Implementations:
        - InMemoryScaleTarget: in-process replica counter
    """

    async def get_replicas(self, workload_id: str) -> int:
        """Return the workload's current replica count."""
        ...

    async def set_replicas(self, workload_id: str, replicas: int) -> None:
        """Request a new replica count.

        Raises:
            MutationRejectedError: If the change is refused (workload paused,
                conflicting mutation).
        """
        ...


@runtime_checkable
class Clock(Protocol):
    """Monotonic time source in seconds."""

    def now(self) -> float: ...


class MonotonicClock:
    """Clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()
