# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""
Control loop - periodic evaluation of autoscaled workloads.

Each registered workload gets its own WorkloadAutoscaler with a dedicated
asyncio task. A tick reads the current replica count, aggregates metrics,
calculates and stabilizes a recommendation, applies rate limits and bounds,
and only then asks the scale target for a change. Workloads share no
mutable state, so they evaluate in parallel; a single workload's ticks
never overlap.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .aggregator import MetricAggregator
from .config import AutoscalerConfig
from .exceptions import MetricUnavailableError, MutationRejectedError
from .policy_engine import LimitReason, PolicyDecision, ScalePolicyEngine
from .protocols import Clock, MetricsSource, MonotonicClock, ScaleTarget
from .replica_calculator import ReplicaCalculator
from .stabilization import StabilizationWindow
from .state import AutoscalerState
from .types import (
    AutoscalerCondition,
    AutoscalerStatus,
    MetricSpec,
    PodInfo,
    ScaleDirection,
    ScalingRecommendation,
    UtilizationSnapshot,
)

logger = logging.getLogger(__name__)


@dataclass
class _PendingUpdate:
    """Results of a tick that only become workload state once committed."""

    window: StabilizationWindow
    desired_replicas: int
    metric_ratios: dict[str, float]


class WorkloadAutoscaler:
    """
    Autoscaler for a single workload.

    Ticks every ``evaluation_interval_seconds`` once started; ``evaluate()``
    can also be called directly to run one tick.
    """

    def __init__(
        self,
        workload_id: str,
        config: AutoscalerConfig,
        metrics_source: MetricsSource,
        scale_target: ScaleTarget,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the workload autoscaler.

        Args:
            workload_id: Identity of the autoscaled workload
            config: Autoscaler configuration (validated here)
            metrics_source: Source of pods and metric samples
            scale_target: Workload controller that owns the replica count
            clock: Monotonic time source (defaults to time.monotonic)

        Raises:
            InvalidConfigurationError: If the configuration is invalid
        """
        config.validate()

        self.workload_id = workload_id
        self.config = config
        self.metrics_source = metrics_source
        self.scale_target = scale_target
        self.clock = clock or MonotonicClock()

        self.aggregator = MetricAggregator(
            readiness_delay_seconds=config.readiness_delay_seconds,
            min_sample_fraction=config.min_sample_fraction,
        )
        self.calculator = ReplicaCalculator(tolerance=config.tolerance)
        self.policy_engine = ScalePolicyEngine()
        self.state = AutoscalerState(
            window=StabilizationWindow(
                scale_up_seconds=config.scale_up_stabilization_seconds,
                scale_down_seconds=config.scale_down_stabilization_seconds,
            )
        )

        self.running = False
        self._evaluating = False
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the periodic evaluation loop."""
        if self.running:
            logger.warning(f"Autoscaler for {self.workload_id} already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._evaluation_loop())
        logger.info(
            f"Autoscaler for {self.workload_id} started "
            f"(interval={self.config.evaluation_interval_seconds}s)"
        )

    async def stop(self):
        """Stop the loop; a tick that has not issued its scale request is abandoned."""
        if not self.running:
            return

        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info(f"Autoscaler for {self.workload_id} stopped")

    async def _evaluation_loop(self):
        """Tick at a fixed rate; a slow tick delays the next one instead of overlapping it."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while self.running:
            await self.evaluate()

            next_tick += self.config.evaluation_interval_seconds
            delay = next_tick - loop.time()
            if delay < 0:
                logger.warning(
                    f"Evaluation of {self.workload_id} overran its interval by {-delay:.1f}s"
                )
                next_tick = loop.time()
                delay = 0
            await asyncio.sleep(delay)

    async def evaluate(self) -> AutoscalerStatus:
        """
        Run one evaluation tick.

        Failures are absorbed here and surface as the status condition;
        only cancellation propagates.

        Returns:
            Status after the tick
        """
        if self._evaluating:
            logger.warning(
                f"Evaluation of {self.workload_id} already in progress, skipping tick"
            )
            return self.status()

        self._evaluating = True
        try:
            await self._evaluate()
        except asyncio.CancelledError:
            logger.info(f"Evaluation of {self.workload_id} cancelled")
            raise
        except Exception as e:
            logger.error(f"Evaluation of {self.workload_id} failed: {e}", exc_info=True)
            self.state.set_condition(AutoscalerCondition.FAILED, str(e))
        finally:
            self._evaluating = False
        return self.status()

    async def _evaluate(self):
        state = self.state
        now = self.clock.now()
        state.last_evaluation_time = now

        current = await self.scale_target.get_replicas(self.workload_id)
        state.current_replicas = current

        if current <= 0:
            state.set_condition(
                AutoscalerCondition.SCALING_DISABLED,
                "scaling is disabled while the workload has zero replicas",
            )
            return

        snapshots, unavailable = await self._collect_snapshots(now)
        calculation = self.calculator.calculate(
            current, self.config.metrics, snapshots, unavailable
        )

        if not calculation.has_recommendation:
            details = ", ".join(
                f"{name}: {reason}" for name, reason in sorted(calculation.unavailable.items())
            )
            logger.warning(f"All metrics unavailable for {self.workload_id} ({details})")
            state.set_condition(AutoscalerCondition.METRICS_UNAVAILABLE, details)
            return

        raw_desired = calculation.desired_replicas
        # Staged on a copy and committed once the tick's outcome is final
        window = state.window.copy()
        window.record(ScalingRecommendation(replicas=raw_desired, timestamp=now))
        stabilized = window.stabilize(current, raw_desired, now)
        decision = self.policy_engine.apply(
            current, stabilized, self.config.limits, state, now
        )
        update = _PendingUpdate(
            window=window,
            desired_replicas=decision.replicas,
            metric_ratios=calculation.metric_ratios,
        )

        logger.debug(
            f"{self.workload_id}: current={current} raw={raw_desired} "
            f"stabilized={stabilized} final={decision.replicas}"
        )

        if decision.replicas == current:
            self._commit(update)
            self._set_steady_condition(decision, raw_desired)
            return

        await self._scale(current, decision, update, now)

    async def _collect_snapshots(
        self, now: float
    ) -> tuple[dict[str, UtilizationSnapshot], dict[str, str]]:
        """Aggregate every configured metric, recording why any is unavailable."""
        timeout = self.config.metrics_timeout_seconds
        try:
            pods = await asyncio.wait_for(
                self.metrics_source.get_pods(self.workload_id), timeout=timeout
            )
        except asyncio.TimeoutError:
            reason = f"pod listing timed out after {timeout}s"
            return {}, {metric.name: reason for metric in self.config.metrics}
        except Exception as e:
            logger.warning(f"Failed to list pods of {self.workload_id}: {e}")
            reason = f"pod listing failed: {e}"
            return {}, {metric.name: reason for metric in self.config.metrics}

        results = await asyncio.gather(
            *(self._snapshot(metric, pods, now) for metric in self.config.metrics)
        )

        snapshots = {}
        unavailable = {}
        for metric, (snapshot, reason) in zip(self.config.metrics, results):
            if snapshot is not None:
                snapshots[metric.name] = snapshot
            else:
                unavailable[metric.name] = reason
        return snapshots, unavailable

    async def _snapshot(
        self, metric: MetricSpec, pods: list[PodInfo], now: float
    ) -> tuple[Optional[UtilizationSnapshot], str]:
        timeout = self.config.metrics_timeout_seconds
        try:
            samples = await asyncio.wait_for(
                self.metrics_source.get_metric_samples(self.workload_id, metric.name),
                timeout=timeout,
            )
            return self.aggregator.aggregate(metric, pods, samples, now), ""
        except MetricUnavailableError as e:
            logger.info(f"{self.workload_id}: {e}")
            return None, e.reason
        except asyncio.TimeoutError:
            logger.warning(
                f"{self.workload_id}: metric {metric.name} timed out after {timeout}s"
            )
            return None, f"retrieval timed out after {timeout}s"
        except Exception as e:
            logger.warning(f"{self.workload_id}: metric {metric.name} retrieval failed: {e}")
            return None, f"retrieval failed: {e}"

    async def _scale(
        self,
        current: int,
        decision: PolicyDecision,
        update: _PendingUpdate,
        now: float,
    ):
        direction = ScaleDirection.of(current, decision.replicas)
        logger.info(
            f"Scaling {self.workload_id} {direction.value} from {current} "
            f"to {decision.replicas} replicas"
        )

        request = asyncio.ensure_future(
            self.scale_target.set_replicas(self.workload_id, decision.replicas)
        )
        try:
            # Once issued, the request runs to completion even if the loop is cancelled.
            await asyncio.shield(request)
        except asyncio.CancelledError:
            logger.info(
                f"Scale of {self.workload_id} to {decision.replicas} issued before "
                f"cancellation, recording its outcome when it completes"
            )
            request.add_done_callback(
                lambda task: self._finish_scale(task, current, decision, update, now)
            )
            raise
        except MutationRejectedError as e:
            self._scale_rejected(e)
            return

        self._scaled(current, decision, update, now)

    def _finish_scale(
        self,
        task: asyncio.Future,
        current: int,
        decision: PolicyDecision,
        update: _PendingUpdate,
        now: float,
    ):
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            if self.state.last_evaluation_time == now:
                self._scaled(current, decision, update, now)
            else:
                # A later tick already owns the window and recommendation
                direction = ScaleDirection.of(current, decision.replicas)
                self.state.record_scale(direction, decision.replicas, now)
        elif isinstance(error, MutationRejectedError):
            self._scale_rejected(error)
        else:
            logger.error(
                f"Scale of {self.workload_id} to {decision.replicas} failed: {error}",
                exc_info=error,
            )
            self.state.set_condition(AutoscalerCondition.FAILED, str(error))

    def _scaled(
        self,
        current: int,
        decision: PolicyDecision,
        update: _PendingUpdate,
        now: float,
    ):
        self._commit(update)
        direction = ScaleDirection.of(current, decision.replicas)
        self.state.record_scale(direction, decision.replicas, now)
        message = f"scaled from {current} to {decision.replicas}"
        if decision.limited:
            message += f" ({decision.reason.value})"
        self.state.set_condition(AutoscalerCondition.SCALED, message)

    def _scale_rejected(self, error: MutationRejectedError):
        logger.warning(f"{error}; retrying next tick")
        self.state.set_condition(AutoscalerCondition.SCALE_REJECTED, error.reason)

    def _commit(self, update: _PendingUpdate):
        self.state.window = update.window
        self.state.desired_replicas = update.desired_replicas
        self.state.metric_ratios = update.metric_ratios

    def _set_steady_condition(self, decision: PolicyDecision, raw_desired: int):
        if decision.reason in (LimitReason.MIN_REPLICAS, LimitReason.MAX_REPLICAS):
            self.state.set_condition(
                AutoscalerCondition.LIMITED,
                f"desired {raw_desired} held at {decision.reason.value} {decision.replicas}",
            )
        elif decision.reason is LimitReason.RATE_LIMITED:
            self.state.set_condition(
                AutoscalerCondition.RATE_LIMITED,
                f"desired {raw_desired} deferred by scaling policy",
            )
        else:
            self.state.set_condition(AutoscalerCondition.STABLE)

    def status(self) -> AutoscalerStatus:
        """Get current autoscaler status."""
        state = self.state
        return AutoscalerStatus(
            workload_id=self.workload_id,
            current_replicas=state.current_replicas,
            desired_replicas=state.desired_replicas,
            metric_ratios=dict(state.metric_ratios),
            last_scale_time=state.last_scale_time,
            condition=state.condition,
            message=state.message,
            last_evaluation_time=state.last_evaluation_time,
        )


class AutoscalerCoordinator:
    """
    Registry of autoscaled workloads.

    Owns one WorkloadAutoscaler per registered workload, keyed by workload
    id. Started workloads each run their own loop on the shared event loop.
    """

    def __init__(
        self,
        metrics_source: MetricsSource,
        scale_target: ScaleTarget,
        clock: Optional[Clock] = None,
    ):
        self.metrics_source = metrics_source
        self.scale_target = scale_target
        self.clock = clock or MonotonicClock()
        self.workloads: dict[str, WorkloadAutoscaler] = {}
        self.running = False

    async def register_workload(
        self, workload_id: str, config: AutoscalerConfig
    ) -> WorkloadAutoscaler:
        """
        Register a workload for autoscaling.

        Raises:
            InvalidConfigurationError: If the configuration is invalid
            ValueError: If the workload is already registered
        """
        if workload_id in self.workloads:
            raise ValueError(f"Workload {workload_id} is already registered")

        autoscaler = WorkloadAutoscaler(
            workload_id=workload_id,
            config=config,
            metrics_source=self.metrics_source,
            scale_target=self.scale_target,
            clock=self.clock,
        )
        self.workloads[workload_id] = autoscaler
        logger.info(
            f"Registered workload {workload_id} "
            f"(replicas {config.min_replicas}-{config.max_replicas}, "
            f"metrics: {', '.join(m.name for m in config.metrics)})"
        )

        if self.running:
            await autoscaler.start()
        return autoscaler

    async def deregister_workload(self, workload_id: str) -> bool:
        """Stop autoscaling a workload and drop its state.

        Returns:
            True if the workload was registered
        """
        autoscaler = self.workloads.pop(workload_id, None)
        if autoscaler is None:
            logger.warning(f"Workload {workload_id} is not registered")
            return False

        await autoscaler.stop()
        logger.info(f"Deregistered workload {workload_id}")
        return True

    def current_status(self, workload_id: str) -> AutoscalerStatus:
        """
        Get the status of a registered workload.

        Raises:
            KeyError: If the workload is not registered
        """
        return self._get(workload_id).status()

    def list_workloads(self) -> list[str]:
        return sorted(self.workloads)

    async def evaluate(self, workload_id: str) -> AutoscalerStatus:
        """Run one tick for a workload outside the periodic schedule."""
        return await self._get(workload_id).evaluate()

    async def evaluate_all(self) -> dict[str, AutoscalerStatus]:
        """Run one tick for every workload concurrently."""
        autoscalers = list(self.workloads.values())
        statuses = await asyncio.gather(*(a.evaluate() for a in autoscalers))
        return {a.workload_id: status for a, status in zip(autoscalers, statuses)}

    async def start(self):
        """Start the evaluation loops of all registered workloads."""
        if self.running:
            logger.warning("Autoscaler coordinator already running")
            return

        self.running = True
        for autoscaler in self.workloads.values():
            await autoscaler.start()
        logger.info(f"Autoscaler coordinator started with {len(self.workloads)} workloads")

    async def stop(self):
        """Stop all evaluation loops."""
        if not self.running:
            return

        self.running = False
        await asyncio.gather(*(a.stop() for a in self.workloads.values()))
        logger.info("Autoscaler coordinator stopped")

    def _get(self, workload_id: str) -> WorkloadAutoscaler:
        try:
            return self.workloads[workload_id]
        except KeyError:
            raise KeyError(f"Workload {workload_id} is not registered") from None
