# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""
Replica calculator - applies the scaling formula per metric.

    desired = ceil(current * current_value / target_value)

The ratio is rounded to RATIO_DECIMALS places before the tolerance check
and the ceiling, so an exact multiple is never pushed up a replica.

Each metric is evaluated independently and the largest desired count wins,
so the workload is sized for its most saturated resource.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from .types import RATIO_DECIMALS, MetricSpec, UtilizationSnapshot

logger = logging.getLogger(__name__)


@dataclass
class MetricResult:
    """Outcome of the scaling formula for one metric."""

    metric_name: str
    usage_ratio: float
    desired_replicas: int
    within_tolerance: bool


@dataclass
class ReplicaCalculation:
    """Result of reducing all metrics to one desired replica count.

    ``desired_replicas`` is None when every metric was unavailable.
    """

    current_replicas: int
    desired_replicas: Optional[int]
    metric_results: dict[str, MetricResult] = field(default_factory=dict)
    unavailable: dict[str, str] = field(default_factory=dict)

    @property
    def has_recommendation(self) -> bool:
        return self.desired_replicas is not None

    @property
    def metric_ratios(self) -> dict[str, float]:
        return {
            name: result.usage_ratio for name, result in self.metric_results.items()
        }


class ReplicaCalculator:
    """Computes desired replica counts from utilization snapshots."""

    def __init__(self, tolerance: float = 0.1):
        """
        Initialize the calculator.

        Args:
            tolerance: Dead-band around the target; usage ratios within
                1 +/- tolerance leave the replica count unchanged
        """
        self.tolerance = tolerance

    def desired_replicas(
        self,
        current_replicas: int,
        snapshot: UtilizationSnapshot,
        spec: MetricSpec,
    ) -> int:
        """Desired replica count for a single metric."""
        return self._evaluate(current_replicas, snapshot, spec).desired_replicas

    def calculate(
        self,
        current_replicas: int,
        metrics: list[MetricSpec],
        snapshots: dict[str, UtilizationSnapshot],
        unavailable: Optional[dict[str, str]] = None,
    ) -> ReplicaCalculation:
        """
        Reduce all available metrics to one desired replica count.

        Args:
            current_replicas: Replica count the ratios were observed at
            metrics: Configured metrics
            snapshots: Snapshot per available metric name
            unavailable: Reason per metric that produced no snapshot

        Returns:
            ReplicaCalculation with the max desired count across metrics,
            or no recommendation when no metric is available
        """
        calculation = ReplicaCalculation(
            current_replicas=current_replicas,
            desired_replicas=None,
            unavailable=dict(unavailable or {}),
        )

        for spec in metrics:
            snapshot = snapshots.get(spec.name)
            if snapshot is None:
                calculation.unavailable.setdefault(spec.name, "no snapshot")
                continue
            calculation.metric_results[spec.name] = self._evaluate(
                current_replicas, snapshot, spec
            )

        if not calculation.metric_results:
            logger.warning(
                f"No metrics available ({', '.join(sorted(calculation.unavailable))}), "
                f"no recommendation this tick"
            )
            return calculation

        calculation.desired_replicas = max(
            result.desired_replicas for result in calculation.metric_results.values()
        )
        return calculation

    def _evaluate(
        self,
        current_replicas: int,
        snapshot: UtilizationSnapshot,
        spec: MetricSpec,
    ) -> MetricResult:
        usage_ratio = snapshot.usage_ratio(spec)

        if round(abs(usage_ratio - 1.0), RATIO_DECIMALS) <= self.tolerance:
            desired = current_replicas
            within_tolerance = True
        else:
            desired = math.ceil(round(current_replicas * usage_ratio, RATIO_DECIMALS))
            within_tolerance = False

        logger.debug(
            f"Metric {spec.name}: value={snapshot.value:.2f} "
            f"target={spec.target_value:.2f} ratio={usage_ratio:.3f} "
            f"desired={desired} (current={current_replicas})"
        )

        return MetricResult(
            metric_name=spec.name,
            usage_ratio=usage_ratio,
            desired_replicas=max(0, desired),
            within_tolerance=within_tolerance,
        )
