# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Per-workload autoscaler configuration.

Option names in dictionaries and YAML files follow the camelCase form
operators write in manifests (``minReplicas``, ``scaleDownPolicy`` ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .exceptions import InvalidConfigurationError
from .types import (
    MetricSpec,
    PolicyLimits,
    ScalingPolicy,
    ScalingRules,
    SelectPolicy,
)


@dataclass
class AutoscalerConfig:
    """Configuration for one autoscaled workload.

    Attributes:
        metrics: Metrics to track; the most saturated one drives scaling.
        min_replicas: Lower bound on the replica count.
        max_replicas: Upper bound on the replica count.
        tolerance: Dead-band around the target ratio (0.1 == +/-10%).
        scale_up_stabilization_seconds: Window for scale-up smoothing.
        scale_down_stabilization_seconds: Window for scale-down smoothing.
        scale_up_policies: Rate limits applied when growing.
        scale_down_policies: Rate limits applied when shrinking.
        scale_up_select_policy: How scale-up policies are combined.
        scale_down_select_policy: How scale-down policies are combined.
        evaluation_interval_seconds: Control loop tick period.
        readiness_delay_seconds: Minimum pod age before it contributes samples.
        min_sample_fraction: Fraction of pods that must report; a metric
            needs strictly more than this to be trusted.
        metrics_timeout_seconds: Bound on each metrics source call.
    """

    metrics: list[MetricSpec] = field(default_factory=list)
    min_replicas: int = 1
    max_replicas: int = 10
    tolerance: float = 0.1
    scale_up_stabilization_seconds: float = 0.0
    scale_down_stabilization_seconds: float = 300.0
    scale_up_policies: list[ScalingPolicy] = field(default_factory=list)
    scale_down_policies: list[ScalingPolicy] = field(default_factory=list)
    scale_up_select_policy: SelectPolicy = SelectPolicy.MAX
    scale_down_select_policy: SelectPolicy = SelectPolicy.MAX
    evaluation_interval_seconds: float = 15.0
    readiness_delay_seconds: float = 30.0
    min_sample_fraction: float = 0.5
    metrics_timeout_seconds: float = 5.0

    @property
    def limits(self) -> PolicyLimits:
        """Bounds and rate limits as consumed by the policy engine."""
        return PolicyLimits(
            min_replicas=self.min_replicas,
            max_replicas=self.max_replicas,
            scale_up=ScalingRules(
                policies=list(self.scale_up_policies),
                select_policy=self.scale_up_select_policy,
            ),
            scale_down=ScalingRules(
                policies=list(self.scale_down_policies),
                select_policy=self.scale_down_select_policy,
            ),
        )

    def validate(self) -> None:
        """Check the configuration, raising InvalidConfigurationError on problems."""
        problems = []

        if not self.metrics:
            problems.append("at least one metric is required")
        names = [metric.name for metric in self.metrics]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            problems.append(f"duplicate metric names: {', '.join(duplicates)}")
        for metric in self.metrics:
            if not metric.target_value > 0:
                problems.append(
                    f"metric {metric.name!r} target must be > 0, got {metric.target_value}"
                )

        if self.min_replicas < 0:
            problems.append(f"minReplicas must be >= 0, got {self.min_replicas}")
        if self.max_replicas < 1:
            problems.append(f"maxReplicas must be >= 1, got {self.max_replicas}")
        if self.min_replicas > self.max_replicas:
            problems.append(
                f"minReplicas ({self.min_replicas}) exceeds maxReplicas ({self.max_replicas})"
            )

        if self.tolerance < 0:
            problems.append(f"toleranceRatio must be >= 0, got {self.tolerance}")
        if self.scale_up_stabilization_seconds < 0:
            problems.append("scaleUpStabilizationSeconds must be >= 0")
        if self.scale_down_stabilization_seconds < 0:
            problems.append("scaleDownStabilizationSeconds must be >= 0")
        if self.evaluation_interval_seconds <= 0:
            problems.append("evaluationIntervalSeconds must be > 0")
        if self.readiness_delay_seconds < 0:
            problems.append("readinessDelaySeconds must be >= 0")
        if self.metrics_timeout_seconds <= 0:
            problems.append("metricsTimeoutSeconds must be > 0")
        if not 0 <= self.min_sample_fraction < 1:
            problems.append(
                f"minSampleFraction must be in [0, 1), got {self.min_sample_fraction}"
            )

        for label, policies in (
            ("scaleUpPolicy", self.scale_up_policies),
            ("scaleDownPolicy", self.scale_down_policies),
        ):
            for policy in policies:
                if policy.value <= 0:
                    problems.append(f"{label} value must be > 0, got {policy.value}")
                if policy.period_seconds <= 0:
                    problems.append(
                        f"{label} periodWindowSeconds must be > 0, got {policy.period_seconds}"
                    )

        if problems:
            raise InvalidConfigurationError(problems)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase option dictionary."""
        return {
            "minReplicas": self.min_replicas,
            "maxReplicas": self.max_replicas,
            "metrics": [metric.to_dict() for metric in self.metrics],
            "toleranceRatio": self.tolerance,
            "scaleUpStabilizationSeconds": self.scale_up_stabilization_seconds,
            "scaleDownStabilizationSeconds": self.scale_down_stabilization_seconds,
            "scaleUpPolicy": [policy.to_dict() for policy in self.scale_up_policies],
            "scaleDownPolicy": [policy.to_dict() for policy in self.scale_down_policies],
            "scaleUpSelectPolicy": self.scale_up_select_policy.value,
            "scaleDownSelectPolicy": self.scale_down_select_policy.value,
            "evaluationIntervalSeconds": self.evaluation_interval_seconds,
            "readinessDelaySeconds": self.readiness_delay_seconds,
            "minSampleFraction": self.min_sample_fraction,
            "metricsTimeoutSeconds": self.metrics_timeout_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AutoscalerConfig:
        """Deserialize from the camelCase option dictionary.

        Raises:
            InvalidConfigurationError: If an entry is malformed. Value checks
                are left to ``validate()``.
        """
        defaults = cls()
        try:
            return cls(
                metrics=[MetricSpec.from_dict(m) for m in data.get("metrics", [])],
                min_replicas=int(data.get("minReplicas", defaults.min_replicas)),
                max_replicas=int(data.get("maxReplicas", defaults.max_replicas)),
                tolerance=float(data.get("toleranceRatio", defaults.tolerance)),
                scale_up_stabilization_seconds=float(
                    data.get(
                        "scaleUpStabilizationSeconds",
                        defaults.scale_up_stabilization_seconds,
                    )
                ),
                scale_down_stabilization_seconds=float(
                    data.get(
                        "scaleDownStabilizationSeconds",
                        defaults.scale_down_stabilization_seconds,
                    )
                ),
                scale_up_policies=[
                    ScalingPolicy.from_dict(p) for p in data.get("scaleUpPolicy", [])
                ],
                scale_down_policies=[
                    ScalingPolicy.from_dict(p) for p in data.get("scaleDownPolicy", [])
                ],
                scale_up_select_policy=SelectPolicy(
                    data.get("scaleUpSelectPolicy", defaults.scale_up_select_policy.value)
                ),
                scale_down_select_policy=SelectPolicy(
                    data.get(
                        "scaleDownSelectPolicy", defaults.scale_down_select_policy.value
                    )
                ),
                evaluation_interval_seconds=float(
                    data.get(
                        "evaluationIntervalSeconds", defaults.evaluation_interval_seconds
                    )
                ),
                readiness_delay_seconds=float(
                    data.get("readinessDelaySeconds", defaults.readiness_delay_seconds)
                ),
                min_sample_fraction=float(
                    data.get("minSampleFraction", defaults.min_sample_fraction)
                ),
                metrics_timeout_seconds=float(
                    data.get("metricsTimeoutSeconds", defaults.metrics_timeout_seconds)
                ),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidConfigurationError([f"malformed configuration: {e!r}"]) from e

    @classmethod
    def from_yaml(cls, path: str) -> AutoscalerConfig:
        """Load configuration from a YAML file."""
        import yaml

        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise InvalidConfigurationError(
                [f"{path} must contain a mapping, got {type(data).__name__}"]
            )
        return cls.from_dict(data)
