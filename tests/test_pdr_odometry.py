"""Tests for step detection and dead-reckoning odometry."""

import math

import numpy as np
import pytest

from smartnav.config import PDRConfig
from smartnav.events import PoseChannel, PoseSource
from smartnav.frontend.pdr_odometry import PDROdometry
from smartnav.frontend.pose import Pose2D
from smartnav.frontend.step_detector import StepDetector

SECOND_NS = 1_000_000_000


def strong(t_s: float) -> tuple[float, float, float, int]:
    """Acceleration sample well above the step threshold at time t (s)."""
    return (0.0, 0.0, 5.0, int(t_s * SECOND_NS))


class TestStepDetector:
    """Test suite for the pure step detection transition."""

    def test_high_pass_filter(self):
        """Test the first-order high-pass on the magnitude."""
        detector = StepDetector()
        state = detector.initial_state()

        result = detector.process(state, (3.0, 4.0, 0.0), 0, heading=0.0)

        # hp = 0.8 * (0 + 5 - 0) + 0.2 * 5
        assert result.state.high_pass == pytest.approx(5.0)
        assert result.state.last_magnitude == pytest.approx(5.0)
        assert result.step_detected

    def test_no_peak_keeps_pose(self):
        """Test that sub-threshold input never moves the pose."""
        detector = StepDetector()
        state = detector.initial_state()

        rng = np.random.default_rng(0)
        for i in range(200):
            accel = rng.uniform(-0.3, 0.3, size=3)
            result = detector.process(state, accel, i * 20_000_000, heading=0.0)
            state = result.state
            assert not result.step_detected

        assert state.pose == Pose2D.zero()
        assert state.step_count == 0

    def test_debounce(self):
        """Test that two peaks 0.2 s apart register as one step."""
        detector = StepDetector()
        state = detector.initial_state()

        first = detector.process(state, (0.0, 0.0, 5.0), 0, heading=0.0)
        second = detector.process(first.state, (0.0, 0.0, 5.0), 200_000_000, heading=0.0)

        assert first.step_detected
        assert not second.step_detected
        assert second.state.step_count == 1
        assert second.state.pose.x == pytest.approx(0.75)

    def test_step_uses_heading(self):
        """Test that a step advances along the given heading."""
        detector = StepDetector(PDRConfig(step_length=1.0))

        result = detector.process(detector.initial_state(), (0.0, 0.0, 5.0), 0, math.pi / 2)

        assert result.state.pose.x == pytest.approx(0.0, abs=1e-12)
        assert result.state.pose.y == pytest.approx(1.0)
        assert result.state.pose.theta == pytest.approx(math.pi / 2)


class TestPDROdometry:
    """Test suite for PDROdometry."""

    def test_three_steps(self):
        """Test deterministic integration of three steps at heading 0."""
        pdr = PDROdometry()
        pdr.start()

        for t in (0.0, 0.5, 1.0):
            pdr.process_acceleration(*strong(t))

        assert pdr.step_count == 3
        pose = pdr.current_pose
        assert pose.x == pytest.approx(2.25)
        assert pose.y == pytest.approx(0.0)
        assert pose.theta == pytest.approx(0.0)

    def test_debounce_emits_once(self):
        """Test that peaks at t=0 and t=0.2 s produce one event."""
        channel = PoseChannel()
        events = []
        channel.subscribe(events.append)
        pdr = PDROdometry(channel=channel)
        pdr.start()

        assert pdr.process_acceleration(*strong(0.0)) is not None
        assert pdr.process_acceleration(*strong(0.2)) is None

        assert len(events) == 1
        assert events[0].source is PoseSource.DEAD_RECKONING
        assert events[0].pose.x == pytest.approx(0.75)

    def test_ignored_when_stopped(self):
        """Test that samples before start() are not processed."""
        pdr = PDROdometry()

        assert pdr.process_acceleration(*strong(0.0)) is None
        assert pdr.current_pose == Pose2D.zero()

    def test_stop_start_keeps_pose(self):
        """Test that restarting does not reset the accumulated pose."""
        pdr = PDROdometry()
        pdr.start()
        pdr.process_acceleration(*strong(0.0))

        pdr.stop()
        pdr.process_acceleration(*strong(1.0))
        pdr.start()
        pdr.start()

        assert pdr.step_count == 1
        assert pdr.current_pose.x == pytest.approx(0.75)

    def test_reset(self):
        """Test that reset returns to the origin and emits the zero pose."""
        channel = PoseChannel()
        events = []
        channel.subscribe(events.append)
        pdr = PDROdometry(channel=channel)
        pdr.start()
        pdr.process_acceleration(*strong(0.0))
        pdr.process_acceleration(*strong(1.0))

        pose = pdr.reset()

        assert pose == Pose2D.zero()
        assert pdr.current_pose == Pose2D.zero()
        assert pdr.step_count == 0
        assert pdr.get_trajectory() == []
        assert events[-1].pose == Pose2D.zero()
        assert events[-1].source is PoseSource.DEAD_RECKONING

    def test_reset_clears_debounce(self):
        """Test that a step right after reset is not debounced."""
        pdr = PDROdometry()
        pdr.start()
        pdr.process_acceleration(*strong(1.0))
        pdr.reset()

        assert pdr.process_acceleration(*strong(1.1)) is not None

    def test_orientation_sets_heading(self):
        """Test that rotation-vector samples steer the next step."""
        pdr = PDROdometry()
        pdr.start()

        s = math.sin(math.pi / 4)
        pdr.process_orientation(0.0, 0.0, s, s)
        pdr.process_acceleration(*strong(0.0))

        assert pdr.heading == pytest.approx(math.pi / 2)
        assert pdr.current_pose.x == pytest.approx(0.0, abs=1e-12)
        assert pdr.current_pose.y == pytest.approx(0.75)

    def test_trajectory(self):
        """Test that every step is recorded in the trajectory."""
        pdr = PDROdometry()
        pdr.start()

        for t in (0.0, 0.5):
            pdr.process_sample(np.array([0.0, 5.0, 0.0]), int(t * SECOND_NS))

        trajectory = pdr.get_trajectory()
        assert len(trajectory) == 2
        assert trajectory[-1].x == pytest.approx(1.5)
