# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""
In-memory collaborators for tests, simulations and dry runs.

These keep all state in process: pods and samples are set explicitly on
the metrics source, and the scale target just stores replica counts.
"""

import logging
from collections import defaultdict
from typing import Optional

from .exceptions import MutationRejectedError
from .types import MetricSample, PodInfo

logger = logging.getLogger(__name__)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self._now = start

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += seconds
        return self._now


class InMemoryMetricsSource:
    """MetricsSource whose pods and samples are set by the caller."""

    def __init__(self):
        self._pods: dict[str, list[PodInfo]] = {}
        self._samples: dict[str, dict[str, list[MetricSample]]] = defaultdict(dict)
        self._failing: dict[str, set[str]] = defaultdict(set)

    def set_pods(self, workload_id: str, pods: list[PodInfo]) -> None:
        self._pods[workload_id] = list(pods)

    def set_samples(
        self, workload_id: str, metric_name: str, samples: list[MetricSample]
    ) -> None:
        self._samples[workload_id][metric_name] = list(samples)

    def set_pod_values(
        self,
        workload_id: str,
        metric_name: str,
        values: dict[str, float],
        timestamp: float = 0.0,
    ) -> None:
        """Set one sample per pod from a pod name -> value mapping."""
        self.set_samples(
            workload_id,
            metric_name,
            [
                MetricSample(
                    pod_name=pod_name,
                    metric_name=metric_name,
                    value=value,
                    timestamp=timestamp,
                )
                for pod_name, value in values.items()
            ],
        )

    def fail_metric(self, workload_id: str, metric_name: str, failing: bool = True) -> None:
        """Make sample retrieval for a metric raise until reset."""
        if failing:
            self._failing[workload_id].add(metric_name)
        else:
            self._failing[workload_id].discard(metric_name)

    async def get_pods(self, workload_id: str) -> list[PodInfo]:
        return list(self._pods.get(workload_id, []))

    async def get_metric_samples(
        self, workload_id: str, metric_name: str
    ) -> list[MetricSample]:
        if metric_name in self._failing[workload_id]:
            raise ConnectionError(f"metrics backend unreachable for {metric_name}")
        return list(self._samples[workload_id].get(metric_name, []))


class InMemoryScaleTarget:
    """ScaleTarget that stores replica counts in a dictionary."""

    def __init__(self, replicas: Optional[dict[str, int]] = None):
        self.replicas: dict[str, int] = dict(replicas or {})
        self.paused: set[str] = set()
        self.scale_requests: list[tuple[str, int]] = []

    async def get_replicas(self, workload_id: str) -> int:
        return self.replicas.get(workload_id, 0)

    async def set_replicas(self, workload_id: str, replicas: int) -> None:
        self.scale_requests.append((workload_id, replicas))
        if workload_id in self.paused:
            raise MutationRejectedError(workload_id, replicas, "workload is paused")
        logger.debug(f"Set {workload_id} replicas to {replicas}")
        self.replicas[workload_id] = replicas
