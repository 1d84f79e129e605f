# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Common types and data structures for the replica autoscaler."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Decimal places kept in usage ratios; finer digits are float noise from
# dividing measured values by requests and targets.
RATIO_DECIMALS = 9


class MetricTargetType(Enum):
    """How a metric's target value is expressed.

    Attributes:
        UTILIZATION: Target is a percentage of the pod's resource request
            (e.g. 50 means 50% of requested CPU).
        AVERAGE_VALUE: Target is an absolute per-pod value
            (e.g. 200 requests/s per pod).
    """

    UTILIZATION = "Utilization"
    AVERAGE_VALUE = "AverageValue"


class PolicyKind(Enum):
    """Unit of a rate-limit policy."""

    PODS = "Pods"
    PERCENT = "Percent"


class SelectPolicy(Enum):
    """How several rate-limit policies of one direction are combined."""

    MAX = "Max"  # Least restrictive policy wins
    MIN = "Min"  # Most restrictive policy wins
    DISABLED = "Disabled"  # No scaling in this direction


class ScaleDirection(Enum):
    """Direction of a replica count change."""

    UP = "up"
    DOWN = "down"
    NONE = "none"

    @classmethod
    def of(cls, current: int, desired: int) -> "ScaleDirection":
        if desired > current:
            return cls.UP
        if desired < current:
            return cls.DOWN
        return cls.NONE


class AutoscalerCondition(Enum):
    """Outcome of the most recent evaluation of a workload."""

    PENDING = "pending"  # Not evaluated yet
    STABLE = "stable"
    SCALED = "scaled"
    LIMITED = "limited"  # Desired count held at min/max bounds
    RATE_LIMITED = "rate_limited"
    METRICS_UNAVAILABLE = "metrics_unavailable"
    SCALE_REJECTED = "scale_rejected"
    SCALING_DISABLED = "scaling_disabled"  # Target has zero replicas
    FAILED = "failed"


@dataclass
class MetricSpec:
    """A metric the autoscaler tracks and the value it aims for."""

    name: str
    target_value: float
    target_type: MetricTargetType = MetricTargetType.UTILIZATION

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "targetType": self.target_type.value,
            "target": self.target_value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetricSpec":
        return cls(
            name=data["name"],
            target_value=float(data["target"]),
            target_type=MetricTargetType(data.get("targetType", "Utilization")),
        )


@dataclass
class PodInfo:
    """A pod of the autoscaled workload as seen by the metrics source.

    Attributes:
        name: Pod identity.
        ready: Whether the pod currently passes its readiness checks.
        start_time: When the pod started, on the autoscaler's clock.
        requests: Requested quantity per resource name (e.g. {"cpu": 0.5}).
    """

    name: str
    ready: bool = True
    start_time: float = 0.0
    requests: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class MetricSample:
    """One pod's observed value for one metric."""

    pod_name: str
    metric_name: str
    value: float
    timestamp: float
    ready: bool = True


@dataclass(frozen=True)
class UtilizationSnapshot:
    """Aggregate of one metric across a workload's pods.

    ``value`` is a utilization percentage for UTILIZATION metrics and the
    mean per-pod value for AVERAGE_VALUE metrics.
    """

    metric_name: str
    value: float
    contributing_pods: int
    total_pods: int
    timestamp: float

    def usage_ratio(self, spec: MetricSpec) -> float:
        """Current value relative to the metric's target (1.0 == on target)."""
        return round(self.value / spec.target_value, RATIO_DECIMALS)


@dataclass(frozen=True)
class ScalingRecommendation:
    """A desired replica count computed at a given tick."""

    replicas: int
    timestamp: float


@dataclass
class ScalingPolicy:
    """Rate limit: at most ``value`` pods (or percent) per ``period_seconds``."""

    kind: PolicyKind
    value: int
    period_seconds: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "value": self.value,
            "periodWindowSeconds": self.period_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScalingPolicy":
        return cls(
            kind=PolicyKind(data["kind"]),
            value=int(data["value"]),
            period_seconds=float(data["periodWindowSeconds"]),
        )


@dataclass
class ScalingRules:
    """Rate-limit policies for one scaling direction."""

    policies: list[ScalingPolicy] = field(default_factory=list)
    select_policy: SelectPolicy = SelectPolicy.MAX


@dataclass
class PolicyLimits:
    """Bounds and rate limits applied to every recommendation."""

    min_replicas: int = 1
    max_replicas: int = 10
    scale_up: ScalingRules = field(default_factory=ScalingRules)
    scale_down: ScalingRules = field(default_factory=ScalingRules)

    def rules_for(self, direction: ScaleDirection) -> ScalingRules | None:
        if direction is ScaleDirection.UP:
            return self.scale_up
        if direction is ScaleDirection.DOWN:
            return self.scale_down
        return None


@dataclass
class AutoscalerStatus:
    """Point-in-time view of one autoscaled workload."""

    workload_id: str
    current_replicas: int
    desired_replicas: int | None
    metric_ratios: dict[str, float]
    last_scale_time: float | None
    condition: AutoscalerCondition
    message: str = ""
    last_evaluation_time: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "workload_id": self.workload_id,
            "current_replicas": self.current_replicas,
            "desired_replicas": self.desired_replicas,
            "metric_ratios": dict(self.metric_ratios),
            "last_scale_time": self.last_scale_time,
            "condition": self.condition.value,
            "message": self.message,
            "last_evaluation_time": self.last_evaluation_time,
        }
