# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Tests for metric aggregation."""

import pytest

from replica_autoscaler import (
    MetricAggregator,
    MetricSample,
    MetricSpec,
    MetricTargetType,
    MetricUnavailableError,
    PodInfo,
)

NOW = 1000.0

CPU = MetricSpec(name="cpu", target_value=50.0)
RPS = MetricSpec(name="rps", target_value=100.0, target_type=MetricTargetType.AVERAGE_VALUE)


def sample(pod: str, value: float, metric: str = "cpu", ready: bool = True) -> MetricSample:
    return MetricSample(pod_name=pod, metric_name=metric, value=value, timestamp=NOW, ready=ready)


class TestUtilization:
    """Tests for utilization-typed metrics."""

    def test_ratio_of_sums(self, make_pods):
        aggregator = MetricAggregator(readiness_delay_seconds=30)
        pods = make_pods(2, cpu_request=0.5)
        snapshot = aggregator.aggregate(
            CPU, pods, [sample("web-0", 0.4), sample("web-1", 0.2)], NOW
        )
        # (0.4 + 0.2) / (0.5 + 0.5) = 60%
        assert snapshot.value == pytest.approx(60.0)
        assert snapshot.contributing_pods == 2
        assert snapshot.total_pods == 2
        assert snapshot.usage_ratio(CPU) == pytest.approx(1.2)

    def test_weighted_by_request(self):
        aggregator = MetricAggregator()
        pods = [
            PodInfo(name="a", start_time=0.0, requests={"cpu": 1.0}),
            PodInfo(name="b", start_time=0.0, requests={"cpu": 3.0}),
        ]
        snapshot = aggregator.aggregate(CPU, pods, [sample("a", 1.0), sample("b", 1.0)], NOW)
        assert snapshot.value == pytest.approx(50.0)

    def test_unready_pod_excluded_but_counted(self, make_pods):
        aggregator = MetricAggregator()
        pods = make_pods(3)
        pods[2].ready = False
        snapshot = aggregator.aggregate(
            CPU,
            pods,
            [sample("web-0", 0.8), sample("web-1", 0.8), sample("web-2", 0.0)],
            NOW,
        )
        assert snapshot.value == pytest.approx(80.0)
        assert snapshot.contributing_pods == 2
        assert snapshot.total_pods == 3

    def test_sample_marked_unready_excluded(self, make_pods):
        aggregator = MetricAggregator()
        snapshot = aggregator.aggregate(
            CPU,
            make_pods(3),
            [sample("web-0", 0.6), sample("web-1", 0.6), sample("web-2", 0.0, ready=False)],
            NOW,
        )
        assert snapshot.value == pytest.approx(60.0)
        assert snapshot.contributing_pods == 2

    def test_young_pod_excluded(self, make_pods):
        aggregator = MetricAggregator(readiness_delay_seconds=30)
        pods = make_pods(3)
        pods[0].start_time = NOW - 10  # started 10s ago
        snapshot = aggregator.aggregate(
            CPU,
            pods,
            [sample("web-0", 1.0), sample("web-1", 0.3), sample("web-2", 0.3)],
            NOW,
        )
        assert snapshot.value == pytest.approx(30.0)
        assert snapshot.contributing_pods == 2

    def test_missing_request_fails(self):
        aggregator = MetricAggregator()
        pods = [PodInfo(name="a", start_time=0.0, requests={})]
        with pytest.raises(MetricUnavailableError, match="missing request"):
            aggregator.aggregate(CPU, pods, [sample("a", 0.5)], NOW)

    def test_samples_of_other_metrics_ignored(self, make_pods):
        aggregator = MetricAggregator()
        snapshot = aggregator.aggregate(
            CPU,
            make_pods(1),
            [sample("web-0", 0.5), sample("web-0", 400.0, metric="memory")],
            NOW,
        )
        assert snapshot.value == pytest.approx(50.0)


class TestAverageValue:
    """Tests for absolute per-pod targets."""

    def test_mean_per_pod(self, make_pods):
        aggregator = MetricAggregator()
        snapshot = aggregator.aggregate(
            RPS,
            make_pods(2),
            [sample("web-0", 150.0, metric="rps"), sample("web-1", 250.0, metric="rps")],
            NOW,
        )
        assert snapshot.value == pytest.approx(200.0)
        assert snapshot.usage_ratio(RPS) == pytest.approx(2.0)

    def test_no_request_needed(self):
        aggregator = MetricAggregator()
        pods = [PodInfo(name="a", start_time=0.0)]
        snapshot = aggregator.aggregate(RPS, pods, [sample("a", 80.0, metric="rps")], NOW)
        assert snapshot.value == pytest.approx(80.0)


class TestMissingData:
    """Tests for the minimum sample fraction."""

    def test_no_pods(self):
        with pytest.raises(MetricUnavailableError, match="no pods"):
            MetricAggregator().aggregate(CPU, [], [], NOW)

    def test_no_samples(self, make_pods):
        with pytest.raises(MetricUnavailableError) as exc_info:
            MetricAggregator().aggregate(CPU, make_pods(2), [], NOW)
        assert exc_info.value.metric_name == "cpu"
        assert "0/2" in exc_info.value.reason

    def test_exactly_half_is_not_enough(self, make_pods):
        aggregator = MetricAggregator(min_sample_fraction=0.5)
        with pytest.raises(MetricUnavailableError, match="1/2"):
            aggregator.aggregate(CPU, make_pods(2), [sample("web-0", 0.5)], NOW)

    def test_majority_is_enough(self, make_pods):
        aggregator = MetricAggregator(min_sample_fraction=0.5)
        snapshot = aggregator.aggregate(
            CPU, make_pods(3), [sample("web-0", 0.5), sample("web-1", 0.7)], NOW
        )
        assert snapshot.contributing_pods == 2
        assert snapshot.value == pytest.approx(60.0)

    def test_all_pods_too_young(self, make_pods):
        aggregator = MetricAggregator(readiness_delay_seconds=60)
        pods = make_pods(2, start_time=NOW - 5)
        with pytest.raises(MetricUnavailableError):
            aggregator.aggregate(CPU, pods, [sample("web-0", 0.5), sample("web-1", 0.5)], NOW)

    def test_zero_fraction_accepts_single_sample(self, make_pods):
        aggregator = MetricAggregator(min_sample_fraction=0.0)
        snapshot = aggregator.aggregate(CPU, make_pods(4), [sample("web-3", 0.9)], NOW)
        assert snapshot.contributing_pods == 1
        assert snapshot.total_pods == 4
