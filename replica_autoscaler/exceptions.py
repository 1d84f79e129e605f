# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Exceptions raised by the replica autoscaler."""


class AutoscalerError(Exception):
    """Base exception for autoscaler errors."""

    pass


class MetricUnavailableError(AutoscalerError):
    """Raised when a metric cannot produce a trustworthy snapshot this tick."""

    def __init__(self, metric_name: str, reason: str):
        self.metric_name = metric_name
        self.reason = reason
        super().__init__(f"Metric {metric_name!r} unavailable: {reason}")


class MutationRejectedError(AutoscalerError):
    """Raised when the scale target refuses a replica count change."""

    def __init__(self, workload_id: str, replicas: int, reason: str | None = None):
        self.workload_id = workload_id
        self.replicas = replicas
        self.reason = reason or "rejected by scale target"
        super().__init__(
            f"Scaling {workload_id} to {replicas} replicas rejected: {self.reason}"
        )


class InvalidConfigurationError(AutoscalerError):
    """Raised when an autoscaler configuration fails validation."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Invalid autoscaler configuration: " + "; ".join(problems))
