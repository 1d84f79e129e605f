# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""
Metric aggregation - turns per-pod samples into one snapshot per metric.

Pods that are unready, or younger than the readiness delay, do not
contribute to the ratio but still count toward the pod total, so a metric
only reported by a small minority of pods is rejected instead of driving a
scaling decision.
"""

import logging

from .exceptions import MetricUnavailableError
from .types import (
    MetricSample,
    MetricSpec,
    MetricTargetType,
    PodInfo,
    UtilizationSnapshot,
)

logger = logging.getLogger(__name__)


class MetricAggregator:
    """Aggregates raw metric samples into UtilizationSnapshots."""

    def __init__(
        self,
        readiness_delay_seconds: float = 30.0,
        min_sample_fraction: float = 0.5,
    ):
        """
        Initialize the aggregator.

        Args:
            readiness_delay_seconds: Minimum pod age before its samples count
            min_sample_fraction: A metric needs strictly more than this
                fraction of pods reporting to be trusted
        """
        self.readiness_delay_seconds = readiness_delay_seconds
        self.min_sample_fraction = min_sample_fraction

    def aggregate(
        self,
        spec: MetricSpec,
        pods: list[PodInfo],
        samples: list[MetricSample],
        now: float,
    ) -> UtilizationSnapshot:
        """
        Aggregate one metric across the workload's pods.

        Args:
            spec: Metric being aggregated
            pods: Current pod set of the workload
            samples: Samples reported for this metric
            now: Current clock time

        Returns:
            UtilizationSnapshot for the metric

        Raises:
            MetricUnavailableError: If no pods exist, too few pods report a
                usable sample, or a contributing pod has no resource request
                for a utilization metric
        """
        if not pods:
            raise MetricUnavailableError(spec.name, "no pods in workload")

        samples_by_pod = {
            sample.pod_name: sample
            for sample in samples
            if sample.metric_name == spec.name
        }

        contributing = []
        for pod in pods:
            sample = samples_by_pod.get(pod.name)
            if sample is None:
                continue
            if not self._is_usable(pod, sample, now):
                continue
            contributing.append((pod, sample))

        total = len(pods)
        if len(contributing) <= self.min_sample_fraction * total:
            raise MetricUnavailableError(
                spec.name,
                f"only {len(contributing)}/{total} pods reported usable samples",
            )

        observed = sum(sample.value for _, sample in contributing)

        if spec.target_type is MetricTargetType.UTILIZATION:
            requested = 0.0
            for pod, _ in contributing:
                request = pod.requests.get(spec.name, 0.0)
                if request <= 0:
                    raise MetricUnavailableError(
                        spec.name, f"missing request for {spec.name} on pod {pod.name}"
                    )
                requested += request
            value = 100.0 * observed / requested
        else:
            value = observed / len(contributing)

        logger.debug(
            f"Aggregated {spec.name}: value={value:.2f} "
            f"from {len(contributing)}/{total} pods"
        )

        return UtilizationSnapshot(
            metric_name=spec.name,
            value=value,
            contributing_pods=len(contributing),
            total_pods=total,
            timestamp=now,
        )

    def _is_usable(self, pod: PodInfo, sample: MetricSample, now: float) -> bool:
        if not pod.ready or not sample.ready:
            return False
        return now - pod.start_time >= self.readiness_delay_seconds
