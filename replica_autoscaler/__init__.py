# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""
Replica Autoscaler - utilization-driven horizontal scaling decisions.

Given per-pod resource metrics for a workload, the autoscaler decides how
many replicas it should run and moves toward that count safely:
- Metric aggregation with readiness and missing-data handling
- Per-metric replica calculation with a tolerance dead-band
- Stabilization windows that suppress flapping
- Per-direction rate-limit policies and min/max bounds
- A periodic, per-workload asyncio control loop and workload registry
"""

from .aggregator import MetricAggregator
from .config import AutoscalerConfig
from .controller import AutoscalerCoordinator, WorkloadAutoscaler
from .exceptions import (
    AutoscalerError,
    InvalidConfigurationError,
    MetricUnavailableError,
    MutationRejectedError,
)
from .memory import InMemoryMetricsSource, InMemoryScaleTarget, ManualClock
from .policy_engine import LimitReason, PolicyDecision, ScalePolicyEngine
from .protocols import Clock, MetricsSource, MonotonicClock, ScaleTarget
from .replica_calculator import MetricResult, ReplicaCalculation, ReplicaCalculator
from .stabilization import StabilizationWindow
from .state import AutoscalerState
from .types import (
    AutoscalerCondition,
    AutoscalerStatus,
    MetricSample,
    MetricSpec,
    MetricTargetType,
    PodInfo,
    PolicyKind,
    PolicyLimits,
    ScaleDirection,
    ScalingPolicy,
    ScalingRecommendation,
    ScalingRules,
    SelectPolicy,
    UtilizationSnapshot,
)

__all__ = [
    # Configuration
    "AutoscalerConfig",
    # Components
    "MetricAggregator",
    "ReplicaCalculator",
    "ReplicaCalculation",
    "MetricResult",
    "StabilizationWindow",
    "ScalePolicyEngine",
    "PolicyDecision",
    "LimitReason",
    # Control loop
    "WorkloadAutoscaler",
    "AutoscalerCoordinator",
    "AutoscalerState",
    # Collaborators
    "MetricsSource",
    "ScaleTarget",
    "Clock",
    "MonotonicClock",
    "ManualClock",
    "InMemoryMetricsSource",
    "InMemoryScaleTarget",
    # Types
    "AutoscalerCondition",
    "AutoscalerStatus",
    "MetricSample",
    "MetricSpec",
    "MetricTargetType",
    "PodInfo",
    "PolicyKind",
    "PolicyLimits",
    "ScaleDirection",
    "ScalingPolicy",
    "ScalingRecommendation",
    "ScalingRules",
    "SelectPolicy",
    "UtilizationSnapshot",
    # Exceptions
    "AutoscalerError",
    "InvalidConfigurationError",
    "MetricUnavailableError",
    "MutationRejectedError",
]

__version__ = "0.1.0"
