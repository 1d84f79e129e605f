# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""
Stabilization window - dampens oscillating replica recommendations.

Every calculated recommendation is recorded. A scale-down only goes as low
as the highest recommendation seen within the scale-down window, and a
scale-up only goes as high as the lowest recommendation within the scale-up
window. With the default windows (0s up, 300s down) growth is immediate and
shrinking waits until low load has been sustained.
"""

import logging
from collections import deque

from .types import ScaleDirection, ScalingRecommendation

logger = logging.getLogger(__name__)


class StabilizationWindow:
    """Time-bounded history of recommendations for one workload."""

    def __init__(
        self,
        scale_up_seconds: float = 0.0,
        scale_down_seconds: float = 300.0,
    ):
        """
        Initialize the window.

        Args:
            scale_up_seconds: Look-back for scale-up smoothing (0 = immediate)
            scale_down_seconds: Look-back for scale-down smoothing
        """
        self.scale_up_seconds = scale_up_seconds
        self.scale_down_seconds = scale_down_seconds
        self._history: deque[ScalingRecommendation] = deque()

    @property
    def history(self) -> tuple[ScalingRecommendation, ...]:
        """Retained recommendations, oldest first."""
        return tuple(self._history)

    def __len__(self) -> int:
        return len(self._history)

    def record(self, recommendation: ScalingRecommendation) -> None:
        """Append a recommendation to the history."""
        if self._history and recommendation.timestamp < self._history[-1].timestamp:
            raise ValueError(
                f"Recommendation at {recommendation.timestamp} is older than "
                f"the newest entry at {self._history[-1].timestamp}"
            )
        self._history.append(recommendation)

    def stabilize(self, current_replicas: int, desired_replicas: int, now: float) -> int:
        """
        Derive the dampened recommendation for a raw desired count.

        Args:
            current_replicas: Replica count of the workload
            desired_replicas: Raw desired count from the calculator
            now: Current clock time

        Returns:
            Stabilized replica count
        """
        direction = ScaleDirection.of(current_replicas, desired_replicas)

        if direction is ScaleDirection.DOWN:
            window = self._within(now, self.scale_down_seconds)
            if window:
                stabilized = min(current_replicas, max(r.replicas for r in window))
            else:
                stabilized = desired_replicas
        elif direction is ScaleDirection.UP:
            window = self._within(now, self.scale_up_seconds)
            if window:
                stabilized = max(current_replicas, min(r.replicas for r in window))
            else:
                stabilized = desired_replicas
        else:
            stabilized = desired_replicas

        self._evict(now)

        if stabilized != desired_replicas:
            logger.debug(
                f"Stabilized {direction.value} recommendation {desired_replicas} -> "
                f"{stabilized} over {len(self._history)} entries"
            )
        return stabilized

    def copy(self) -> "StabilizationWindow":
        """Independent window with the same settings and history."""
        window = StabilizationWindow(self.scale_up_seconds, self.scale_down_seconds)
        window._history = deque(self._history)
        return window

    def clear(self) -> None:
        self._history.clear()

    def _within(self, now: float, seconds: float) -> list[ScalingRecommendation]:
        cutoff = now - seconds
        return [r for r in self._history if r.timestamp >= cutoff]

    def _evict(self, now: float) -> None:
        cutoff = now - max(self.scale_up_seconds, self.scale_down_seconds)
        while self._history and self._history[0].timestamp < cutoff:
            self._history.popleft()
