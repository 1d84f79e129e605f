# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""
Scale policy engine - bounds and rate limits for replica changes.

Rate limits are configured per direction as a list of policies, each
allowing a number of pods (or a percentage of the current count) per
period. Policies of one direction are combined with ``select_policy``:

- MAX (default): the policy allowing the largest change wins. Configuring
  several policies therefore widens what is allowed ("policy OR"); at small
  replica counts where Pods and Percent policies disagree, the larger
  absolute delta is used.
- MIN: the policy allowing the smallest change wins.
- DISABLED: no change in that direction at all.

Within a period the allowance accrues linearly from the last change in
that direction, so repeated ticks cannot exceed one allowance per period.
The result is clamped to [min_replicas, max_replicas] last.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .state import AutoscalerState
from .types import (
    PolicyKind,
    PolicyLimits,
    ScaleDirection,
    ScalingPolicy,
    ScalingRules,
    SelectPolicy,
)

logger = logging.getLogger(__name__)


class LimitReason(Enum):
    """Why the policy engine changed a recommendation."""

    NONE = "none"
    RATE_LIMITED = "rate_limited"
    MIN_REPLICAS = "min_replicas"
    MAX_REPLICAS = "max_replicas"
    AT_ZERO = "at_zero"


@dataclass
class PolicyDecision:
    """Replica count allowed by the policy engine and what limited it."""

    replicas: int
    reason: LimitReason = LimitReason.NONE

    @property
    def limited(self) -> bool:
        return self.reason is not LimitReason.NONE


class ScalePolicyEngine:
    """Applies bounds and per-direction rate limits to a recommendation."""

    def clamp(
        self,
        current_replicas: int,
        stabilized_replicas: int,
        limits: PolicyLimits,
        state: AutoscalerState,
        now: float,
    ) -> int:
        """Replica count permitted for the stabilized recommendation."""
        return self.apply(current_replicas, stabilized_replicas, limits, state, now).replicas

    def apply(
        self,
        current_replicas: int,
        stabilized_replicas: int,
        limits: PolicyLimits,
        state: AutoscalerState,
        now: float,
    ) -> PolicyDecision:
        """
        Apply rate limits and bounds to a stabilized recommendation.

        Args:
            current_replicas: Replica count of the workload
            stabilized_replicas: Recommendation from the stabilization window
            limits: Configured bounds and rate-limit rules
            state: Workload state providing last scale times (not modified)
            now: Current clock time

        Returns:
            PolicyDecision with the permitted replica count
        """
        if current_replicas <= 0 and limits.min_replicas == 0:
            reason = (
                LimitReason.AT_ZERO
                if stabilized_replicas > 0
                else LimitReason.NONE
            )
            return PolicyDecision(replicas=0, reason=reason)

        replicas = max(0, stabilized_replicas)
        reason = LimitReason.NONE

        direction = ScaleDirection.of(current_replicas, replicas)
        rules = limits.rules_for(direction)
        if rules is not None:
            max_delta = self.max_delta(
                rules, current_replicas, state.last_scale_time_for(direction), now
            )
            if max_delta is not None and abs(replicas - current_replicas) > max_delta:
                if direction is ScaleDirection.UP:
                    replicas = current_replicas + max_delta
                else:
                    replicas = current_replicas - max_delta
                reason = LimitReason.RATE_LIMITED

        if replicas < limits.min_replicas:
            replicas = limits.min_replicas
            reason = LimitReason.MIN_REPLICAS
        elif replicas > limits.max_replicas:
            replicas = limits.max_replicas
            reason = LimitReason.MAX_REPLICAS

        if reason is not LimitReason.NONE:
            logger.debug(
                f"Policy limited {stabilized_replicas} -> {replicas} "
                f"(current={current_replicas}, reason={reason.value})"
            )
        return PolicyDecision(replicas=replicas, reason=reason)

    def max_delta(
        self,
        rules: ScalingRules,
        current_replicas: int,
        last_scale_time: Optional[float],
        now: float,
    ) -> Optional[int]:
        """
        Largest replica change allowed right now in one direction.

        Returns:
            Allowed change in pods, or None when no policy restricts it
        """
        if rules.select_policy is SelectPolicy.DISABLED:
            return 0
        if not rules.policies:
            return None

        allowances = [
            self._allowance(policy, current_replicas, last_scale_time, now)
            for policy in rules.policies
        ]
        if rules.select_policy is SelectPolicy.MIN:
            return min(allowances)
        return max(allowances)

    def _allowance(
        self,
        policy: ScalingPolicy,
        current_replicas: int,
        last_scale_time: Optional[float],
        now: float,
    ) -> int:
        if policy.kind is PolicyKind.PODS:
            full = float(policy.value)
        else:
            full = current_replicas * policy.value / 100.0

        if last_scale_time is None:
            fraction = 1.0
        else:
            fraction = min(1.0, max(0.0, now - last_scale_time) / policy.period_seconds)

        if fraction >= 1.0:
            return math.ceil(full)
        return math.floor(full * fraction)
