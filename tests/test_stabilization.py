# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Tests for the stabilization window."""

import pytest

from replica_autoscaler import ScalingRecommendation, StabilizationWindow


def feed(window: StabilizationWindow, current: int, desired: int, now: float) -> int:
    window.record(ScalingRecommendation(replicas=desired, timestamp=now))
    return window.stabilize(current, desired, now)


class TestScaleDown:
    """Scale-down holds the highest recent recommendation."""

    def test_transient_dip_suppressed(self):
        window = StabilizationWindow(scale_up_seconds=0, scale_down_seconds=300)
        assert feed(window, 8, 8, 0.0) == 8
        assert feed(window, 8, 8, 15.0) == 8
        # One low sample inside an otherwise high window
        assert feed(window, 8, 2, 30.0) == 8
        assert feed(window, 8, 8, 45.0) == 8

    def test_sustained_low_load_scales_down_after_window(self):
        window = StabilizationWindow(scale_down_seconds=60)
        feed(window, 8, 8, 0.0)
        assert feed(window, 8, 3, 30.0) == 8
        assert feed(window, 8, 3, 59.0) == 8
        # The high recommendation at t=0 has left the window
        assert feed(window, 8, 3, 61.0) == 3

    def test_steps_down_through_window_max(self):
        window = StabilizationWindow(scale_down_seconds=60)
        feed(window, 10, 10, 0.0)
        feed(window, 10, 6, 30.0)
        assert feed(window, 10, 4, 70.0) == 6

    def test_never_above_current(self):
        window = StabilizationWindow(scale_down_seconds=300)
        feed(window, 12, 12, 0.0)
        # Workload was scaled down externally to 5; a desire of 3 must not grow it
        assert feed(window, 5, 3, 10.0) == 5

    def test_zero_window_passes_through(self):
        window = StabilizationWindow(scale_down_seconds=0)
        feed(window, 8, 8, 0.0)
        assert feed(window, 8, 2, 1.0) == 2


class TestScaleUp:
    """Scale-up is immediate by default and smoothed with a window."""

    def test_default_immediate(self):
        window = StabilizationWindow()
        feed(window, 2, 2, 0.0)
        assert feed(window, 2, 9, 15.0) == 9

    def test_configured_window_uses_minimum(self):
        window = StabilizationWindow(scale_up_seconds=60, scale_down_seconds=0)
        feed(window, 2, 2, 0.0)
        assert feed(window, 2, 9, 15.0) == 2
        assert feed(window, 2, 6, 30.0) == 2
        assert feed(window, 2, 9, 61.0) == 6
        assert feed(window, 2, 9, 91.0) == 9


class TestHistory:
    """Tests for history bookkeeping."""

    def test_eviction(self):
        window = StabilizationWindow(scale_up_seconds=0, scale_down_seconds=100)
        feed(window, 4, 4, 0.0)
        feed(window, 4, 4, 50.0)
        assert len(window) == 2
        feed(window, 4, 4, 120.0)
        assert [r.timestamp for r in window.history] == [50.0, 120.0]

    def test_empty_history_passes_raw_value(self):
        window = StabilizationWindow()
        assert window.stabilize(8, 3, 0.0) == 3
        assert window.stabilize(3, 8, 0.0) == 8

    def test_no_change(self):
        window = StabilizationWindow()
        assert feed(window, 5, 5, 0.0) == 5

    def test_out_of_order_record_rejected(self):
        window = StabilizationWindow()
        window.record(ScalingRecommendation(replicas=3, timestamp=10.0))
        with pytest.raises(ValueError):
            window.record(ScalingRecommendation(replicas=3, timestamp=5.0))

    def test_recommendations_are_immutable(self):
        recommendation = ScalingRecommendation(replicas=3, timestamp=10.0)
        with pytest.raises(AttributeError):
            recommendation.replicas = 4
