# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Mutable per-workload autoscaler state."""

from dataclasses import dataclass, field
from typing import Optional

from .stabilization import StabilizationWindow
from .types import AutoscalerCondition, ScaleDirection


@dataclass
class AutoscalerState:
    """State owned by one workload's evaluation task.

    Attributes:
        current_replicas: Mirrors the scale target, refreshed every tick.
        desired_replicas: Last successfully computed recommendation.
        last_scale_up_time: Clock time of the last actual scale-up.
        last_scale_down_time: Clock time of the last actual scale-down.
        metric_ratios: Usage ratio per metric from the last computation.
        condition: Outcome of the most recent tick.
        message: Human-readable detail for the condition.
        last_evaluation_time: Clock time of the most recent tick.
        window: Stabilization history of this workload.
    """

    current_replicas: int = 0
    desired_replicas: Optional[int] = None
    last_scale_up_time: Optional[float] = None
    last_scale_down_time: Optional[float] = None
    metric_ratios: dict[str, float] = field(default_factory=dict)
    condition: AutoscalerCondition = AutoscalerCondition.PENDING
    message: str = ""
    last_evaluation_time: Optional[float] = None
    window: StabilizationWindow = field(default_factory=StabilizationWindow)

    @property
    def last_scale_time(self) -> Optional[float]:
        times = [t for t in (self.last_scale_up_time, self.last_scale_down_time) if t is not None]
        return max(times) if times else None

    def last_scale_time_for(self, direction: ScaleDirection) -> Optional[float]:
        if direction is ScaleDirection.UP:
            return self.last_scale_up_time
        if direction is ScaleDirection.DOWN:
            return self.last_scale_down_time
        return None

    def record_scale(self, direction: ScaleDirection, replicas: int, now: float) -> None:
        """Record an applied replica change; no-op changes are not recorded."""
        if direction is ScaleDirection.UP:
            self.last_scale_up_time = now
        elif direction is ScaleDirection.DOWN:
            self.last_scale_down_time = now
        else:
            return
        self.current_replicas = replicas

    def set_condition(self, condition: AutoscalerCondition, message: str = "") -> None:
        self.condition = condition
        self.message = message
