# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""
Example: Simulating the replica autoscaler.

Drives one workload through a load spike and back down using in-memory
collaborators and a manual clock, printing the decision of every tick.
"""

import asyncio
import logging
from pathlib import Path

from replica_autoscaler import (
    AutoscalerConfig,
    AutoscalerCoordinator,
    InMemoryMetricsSource,
    InMemoryScaleTarget,
    ManualClock,
    PodInfo,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# Total CPU cores the workload consumes at each tick
LOAD = [1.0, 1.0, 4.0, 6.0, 6.0, 6.0, 3.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0]


def publish_load(source: InMemoryMetricsSource, replicas: int, total_cpu: float, now: float):
    """Spread the total load evenly over the workload's pods."""
    pods = [
        PodInfo(name=f"web-{i}", start_time=0.0, requests={"cpu": 1.0, "memory": 1024.0})
        for i in range(replicas)
    ]
    source.set_pods("web", pods)
    source.set_pod_values("web", "cpu", {p.name: total_cpu / replicas for p in pods}, now)
    source.set_pod_values("web", "memory", {p.name: 512.0 for p in pods}, now)


async def main():
    config = AutoscalerConfig.from_yaml(str(Path(__file__).with_name("autoscaler.yaml")))

    clock = ManualClock()
    metrics_source = InMemoryMetricsSource()
    scale_target = InMemoryScaleTarget(replicas={"web": 2})
    coordinator = AutoscalerCoordinator(metrics_source, scale_target, clock)
    await coordinator.register_workload("web", config)

    for total_cpu in LOAD:
        publish_load(metrics_source, scale_target.replicas["web"], total_cpu, clock.now())
        status = await coordinator.evaluate("web")
        logger.info(
            f"t={clock.now():>5.0f}s load={total_cpu:.1f} cores "
            f"replicas={status.current_replicas} desired={status.desired_replicas} "
            f"condition={status.condition.value}"
        )
        clock.advance(config.evaluation_interval_seconds)

    await coordinator.deregister_workload("web")


if __name__ == "__main__":
    asyncio.run(main())
