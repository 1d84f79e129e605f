# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Tests for the workload registry."""

import asyncio

import pytest

from replica_autoscaler import (
    AutoscalerCondition,
    AutoscalerConfig,
    AutoscalerCoordinator,
    InMemoryScaleTarget,
    InvalidConfigurationError,
    MetricSpec,
)


@pytest.fixture
def coordinator(metrics_source, clock, make_pods):
    scale_target = InMemoryScaleTarget(replicas={"web": 2, "worker": 3})
    metrics_source.set_pods("web", make_pods(2))
    metrics_source.set_pods("worker", make_pods(3))
    return AutoscalerCoordinator(metrics_source, scale_target, clock)


@pytest.mark.asyncio
async def test_register_and_status(coordinator, cpu_config):
    await coordinator.register_workload("web", cpu_config)

    status = coordinator.current_status("web")
    assert status.workload_id == "web"
    assert status.condition is AutoscalerCondition.PENDING
    assert status.desired_replicas is None
    assert coordinator.list_workloads() == ["web"]


@pytest.mark.asyncio
async def test_register_invalid_config(coordinator):
    config = AutoscalerConfig(metrics=[MetricSpec(name="cpu", target_value=-5.0)])
    with pytest.raises(InvalidConfigurationError):
        await coordinator.register_workload("web", config)
    assert coordinator.list_workloads() == []


@pytest.mark.asyncio
async def test_register_duplicate(coordinator, cpu_config):
    await coordinator.register_workload("web", cpu_config)
    with pytest.raises(ValueError, match="already registered"):
        await coordinator.register_workload("web", cpu_config)


@pytest.mark.asyncio
async def test_deregister(coordinator, cpu_config):
    await coordinator.register_workload("web", cpu_config)

    assert await coordinator.deregister_workload("web") is True
    assert await coordinator.deregister_workload("web") is False
    with pytest.raises(KeyError):
        coordinator.current_status("web")


@pytest.mark.asyncio
async def test_evaluate_all_is_independent(coordinator, metrics_source, cpu_config):
    await coordinator.register_workload("web", cpu_config)
    await coordinator.register_workload("worker", cpu_config)
    metrics_source.set_pod_values("web", "cpu", {"web-0": 0.8, "web-1": 0.8})
    metrics_source.fail_metric("worker", "cpu")

    statuses = await coordinator.evaluate_all()

    assert statuses["web"].condition is AutoscalerCondition.SCALED
    assert statuses["web"].current_replicas == 4
    assert statuses["worker"].condition is AutoscalerCondition.METRICS_UNAVAILABLE
    assert statuses["worker"].current_replicas == 3
    assert coordinator.scale_target.replicas == {"web": 4, "worker": 3}


@pytest.mark.asyncio
async def test_status_to_dict(coordinator, metrics_source, cpu_config):
    await coordinator.register_workload("web", cpu_config)
    metrics_source.set_pod_values("web", "cpu", {"web-0": 0.8, "web-1": 0.8})

    await coordinator.evaluate("web")
    data = coordinator.current_status("web").to_dict()

    assert data["current_replicas"] == 4
    assert data["desired_replicas"] == 4
    assert data["condition"] == "scaled"
    assert data["metric_ratios"]["cpu"] == pytest.approx(1.6)
    assert data["last_scale_time"] == coordinator.clock.now()


@pytest.mark.asyncio
async def test_start_stop_lifecycle(coordinator, metrics_source, cpu_config):
    cpu_config.evaluation_interval_seconds = 0.01
    await coordinator.register_workload("web", cpu_config)
    metrics_source.set_pod_values("web", "cpu", {"web-0": 0.5, "web-1": 0.5})

    await coordinator.start()
    assert coordinator.workloads["web"].running

    # Workloads registered while running start immediately
    await coordinator.register_workload("worker", cpu_config)
    assert coordinator.workloads["worker"].running

    await asyncio.sleep(0.05)
    await coordinator.stop()

    assert not coordinator.running
    assert not any(a.running for a in coordinator.workloads.values())
    assert coordinator.current_status("web").condition is AutoscalerCondition.STABLE


@pytest.mark.asyncio
async def test_deregister_running_workload(coordinator, cpu_config):
    cpu_config.evaluation_interval_seconds = 0.01
    await coordinator.start()
    autoscaler = await coordinator.register_workload("web", cpu_config)

    await coordinator.deregister_workload("web")

    assert not autoscaler.running
    assert coordinator.list_workloads() == []
    await coordinator.stop()
