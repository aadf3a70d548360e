"""Tests for the visual tracking state machine and its motion sources."""

import numpy as np
import pytest

from smartnav.config import EngineConfig, MapConfig, SimulationConfig, TrackerConfig
from smartnav.events import PoseChannel, PoseSource
from smartnav.frontend.frame import VisualFrame
from smartnav.frontend.pose import Pose2D, ReferencePose
from smartnav.frontend.vo.motion_estimator import MotionEstimator, MotionResult
from smartnav.frontend.vo.motion_source import (
    FeatureMotionSource,
    ReferencePoseMotionSource,
    SimulatedMotionSource,
    TrackerState,
    TrackingStatus,
    make_motion_source,
)
from smartnav.frontend.vo.visual_tracker import VisualTracker


def texture(seed: int, shape: tuple[int, int] = (64, 64)) -> np.ndarray:
    return np.random.default_rng(seed).integers(0, 256, size=shape, dtype=np.uint8)


def flat() -> np.ndarray:
    return np.full((64, 64), 100, dtype=np.uint8)


def frame(
    image: np.ndarray,
    x: float = 0.0,
    z: float = 0.0,
    is_tracking: bool = True,
    timestamp_ns: int = 0,
) -> VisualFrame:
    return VisualFrame.from_image(
        image,
        reference=ReferencePose(translation=(x, 0.0, z)),
        is_tracking=is_tracking,
        timestamp_ns=timestamp_ns,
    )


@pytest.fixture
def tracker() -> VisualTracker:
    """Running feature tracker with a recording channel."""
    t = VisualTracker(channel=PoseChannel(maxsize=100))
    t.start()
    return t


class TestVisualTrackerLifecycle:
    """Test suite for start/stop/reset behaviour."""

    def test_stopped_is_noop(self):
        """Test that frames are ignored before start()."""
        tracker = VisualTracker(channel=PoseChannel(maxsize=10))

        assert tracker.process_frame(frame(texture(0))) is None
        assert tracker.num_frames == 0
        assert tracker.channel.drain() == []

    def test_reset_emits_zero(self, tracker: VisualTracker):
        """Test that reset returns to the zero pose regardless of history."""
        tracker.process_frame(frame(flat(), x=1.0))
        tracker.process_frame(frame(flat(), x=3.0))
        assert tracker.current_pose.x == pytest.approx(2.0)

        pose = tracker.reset()

        assert pose == Pose2D.zero()
        assert tracker.current_pose == Pose2D.zero()
        assert tracker.num_frames == 0
        assert tracker.num_map_points == 0
        assert tracker.state.previous_frame is None
        assert tracker.channel.drain()[-1].pose == Pose2D.zero()

    def test_stop_start_reset_matches_fresh(self, tracker: VisualTracker):
        """Test that stop, start and reset give the state of a new tracker."""
        tracker.process_frame(frame(texture(1), x=0.5))
        tracker.process_frame(frame(texture(1), x=0.6))
        assert tracker.num_map_points > 0

        tracker.stop()
        tracker.start()
        tracker.reset()

        fresh = VisualTracker()
        fresh.start()
        assert tracker.state == fresh.state
        assert tracker.num_map_points == fresh.num_map_points == 0
        assert tracker.get_trajectory() == fresh.get_trajectory() == []

    def test_stop_clears_map_and_cache(self, tracker: VisualTracker):
        """Test that stop drops the map and the previous frame."""
        tracker.process_frame(frame(texture(2)))

        tracker.stop()

        assert not tracker.is_running
        assert tracker.num_map_points == 0
        assert tracker.state == TrackerState()

    def test_one_emission_per_frame(self, tracker: VisualTracker):
        """Test that every processed frame emits exactly one visual pose."""
        frames = [
            frame(flat(), is_tracking=False, timestamp_ns=1),
            frame(texture(3), x=0.1, timestamp_ns=2),
            frame(texture(3), x=0.2, timestamp_ns=3),
            frame(texture(4), x=0.3, timestamp_ns=4),
            frame(flat(), x=0.4, timestamp_ns=5),
            frame(texture(4), is_tracking=False, timestamp_ns=6),
        ]

        for f in frames:
            tracker.process_frame(f)

        events = tracker.channel.drain()
        assert len(events) == len(frames)
        assert all(e.source is PoseSource.VISUAL for e in events)
        assert [e.timestamp_ns for e in events] == [1, 2, 3, 4, 5, 6]
        assert tracker.num_frames == len(frames)
        assert len(tracker.get_trajectory()) == len(frames)

    def test_map_cap_after_many_frames(self):
        """Test that the map never exceeds its cap."""
        config = EngineConfig(map=MapConfig(max_points=60))
        tracker = VisualTracker(config=config)
        tracker.start()

        base = texture(5, shape=(96, 96))
        for i in range(20):
            image = base.copy()
            # New texture in one band per frame, the rest stays matchable
            image[: 32, :] = texture(100 + i, shape=(32, 96))
            tracker.process_frame(frame(image, x=0.01 * i))
            assert tracker.num_map_points <= 60

        assert tracker.num_map_points == 60


class TestFeatureMotionSource:
    """Test suite for the per-frame feature tracking transitions."""

    def test_not_tracking_before_init(self, tracker: VisualTracker):
        """Test that tracking loss without a valid reference emits zero."""
        result = tracker.process_frame(frame(texture(0), is_tracking=False))

        assert result.status is TrackingStatus.NOT_TRACKING
        assert result.pose == Pose2D.zero()
        assert tracker.state.initial_pose is None

    def test_not_tracking_initializes_from_valid_reference(self, tracker: VisualTracker):
        """Test that a valid reference sample sets the origin while not tracking."""
        result = tracker.process_frame(frame(texture(0), x=2.0, is_tracking=False))

        assert result.status is TrackingStatus.NOT_TRACKING
        assert result.pose == Pose2D.zero()
        assert tracker.state.initial_pose == Pose2D(2.0, 0.0, 0.0)

    def test_not_tracking_repeats_last_pose(self, tracker: VisualTracker):
        """Test that the last relative pose is re-emitted while not tracking."""
        tracker.process_frame(frame(flat(), x=1.0))
        tracker.process_frame(frame(flat(), x=1.5, z=-0.5))

        result = tracker.process_frame(frame(flat(), x=9.0, is_tracking=False))

        assert result.pose.x == pytest.approx(0.5)
        assert result.pose.y == pytest.approx(0.5)

    def test_no_features_falls_back(self, tracker: VisualTracker):
        """Test that a featureless frame uses the reference pose."""
        first = tracker.process_frame(frame(flat(), x=0.5, z=-0.2))
        second = tracker.process_frame(frame(flat(), x=1.0, z=-0.2))

        assert first.status is TrackingStatus.FALLBACK_NO_FEATURES
        assert first.pose == Pose2D.zero()
        assert second.status is TrackingStatus.FALLBACK_NO_FEATURES
        assert second.pose.x == pytest.approx(0.5)
        assert second.pose.y == pytest.approx(0.0)
        assert second.used_fallback

    def test_bootstrap(self, tracker: VisualTracker):
        """Test that the first frame with features seeds the map and emits zero."""
        result = tracker.process_frame(frame(texture(6), x=0.3))

        assert result.status is TrackingStatus.BOOTSTRAP
        assert result.pose == Pose2D.zero()
        assert result.num_features > 0
        assert result.new_map_points == min(result.num_features, 500)
        assert tracker.num_map_points == result.new_map_points
        assert tracker.state.previous_frame is not None

    def test_few_matches_falls_back(self, tracker: VisualTracker):
        """Test that unrelated consecutive frames use the reference pose."""
        tracker.process_frame(frame(texture(7), x=0.0, z=0.0))

        result = tracker.process_frame(frame(texture(8), x=0.4, z=-0.3))

        assert result.status is TrackingStatus.FALLBACK_FEW_MATCHES
        assert result.num_matches < 3
        assert result.pose.x == pytest.approx(0.4)
        assert result.pose.y == pytest.approx(0.3)
        # The current frame replaces the previous one
        assert tracker.state.previous_frame.gray is not None

    def test_tracked_adds_increment_to_reference(self, tracker: VisualTracker):
        """Test the accumulation of a fused increment on a tracked frame."""
        image = texture(9)
        tracker.process_frame(frame(image, x=0.0))

        result = tracker.process_frame(frame(image.copy(), x=0.1))

        assert result.status is TrackingStatus.TRACKED
        assert result.num_matches == result.num_features
        # Anchored to the reference (0.1) plus the fused increment 0.7 * 0.1
        assert result.pose.x == pytest.approx(0.1 + 0.7 * 0.1)
        assert result.pose.y == pytest.approx(0.0)
        assert not result.used_fallback

    def test_tracked_features_count_observations(self, tracker: VisualTracker):
        """Test that features matched over frames extend their map points."""
        image = texture(9)
        for x in (0.0, 0.1, 0.2):
            result = tracker.process_frame(frame(image.copy(), x=x))

        assert result.status is TrackingStatus.TRACKED
        assert result.new_map_points == 0
        counts = [p.observation_count for p in tracker.get_map().get_all_points()]
        assert len(counts) == result.num_features
        assert max(counts) == 3

    def test_estimation_failure_falls_back(self):
        """Test that a failed estimate uses the reference pose."""
        class FailingEstimator(MotionEstimator):
            def estimate(self, matches, reference):
                return MotionResult.failed(num_matches=len(matches))

        tracker = VisualTracker(motion_source=FeatureMotionSource(estimator=FailingEstimator()))
        tracker.start()

        image = texture(10)
        tracker.process_frame(frame(image, x=1.0))
        result = tracker.process_frame(frame(image, x=1.25))

        assert result.status is TrackingStatus.FALLBACK_ESTIMATION_FAILED
        assert result.pose.x == pytest.approx(0.25)

    def test_byte_buffer_frames(self, tracker: VisualTracker):
        """Test frames delivered as raw row-major buffers."""
        image = texture(11)
        raw = VisualFrame(gray=image.tobytes(), width=64, height=64)
        short = VisualFrame(gray=image.tobytes()[:100], width=64, height=64)

        assert tracker.process_frame(raw).status is TrackingStatus.BOOTSTRAP
        assert tracker.process_frame(short).status is TrackingStatus.FALLBACK_NO_FEATURES


class TestReferencePoseMotionSource:
    """Test suite for the reference-only motion source."""

    def test_relative_to_first_sample(self):
        """Test that poses are reported relative to the first tracking frame."""
        tracker = VisualTracker(motion_source=ReferencePoseMotionSource())
        tracker.start()

        first = tracker.process_frame(frame(flat(), x=1.0))
        second = tracker.process_frame(frame(flat(), x=2.0, z=-1.0))
        held = tracker.process_frame(frame(flat(), x=7.0, is_tracking=False))

        assert first.status is TrackingStatus.REFERENCE_ONLY
        assert first.pose == Pose2D.zero()
        assert second.pose.x == pytest.approx(1.0)
        assert second.pose.y == pytest.approx(1.0)
        assert held.status is TrackingStatus.NOT_TRACKING
        assert held.pose == second.pose
        assert tracker.num_map_points == 0


class TestSimulatedMotionSource:
    """Test suite for the constant-velocity motion source."""

    def test_constant_velocity(self):
        """Test that the pose advances speed * dt at most every update interval."""
        source = SimulatedMotionSource(SimulationConfig(speed=1.2, min_update_interval_ns=100_000_000))
        tracker = VisualTracker(motion_source=source)
        tracker.start()

        poses = [
            tracker.process_frame(frame(flat(), timestamp_ns=t)).pose
            for t in (0, 50_000_000, 100_000_000, 200_000_000)
        ]

        assert poses[0] == Pose2D.zero()
        assert poses[1] == Pose2D.zero()
        assert poses[2].x == pytest.approx(0.12)
        assert poses[3].x == pytest.approx(0.24)
        assert all(p.y == pytest.approx(0.0) for p in poses)

    def test_ignores_tracking_flag(self):
        """Test that simulation does not depend on the AR session."""
        tracker = VisualTracker(motion_source=SimulatedMotionSource())
        tracker.start()

        tracker.process_frame(frame(flat(), is_tracking=False, timestamp_ns=0))
        result = tracker.process_frame(frame(flat(), is_tracking=False, timestamp_ns=500_000_000))

        assert result.status is TrackingStatus.SIMULATED
        assert result.pose.x == pytest.approx(0.6)


class TestMakeMotionSource:
    """Test suite for motion source selection."""

    @pytest.mark.parametrize(
        "name, cls",
        [
            ("features", FeatureMotionSource),
            ("reference", ReferencePoseMotionSource),
            ("simulated", SimulatedMotionSource),
        ],
    )
    def test_by_name(self, name, cls):
        config = EngineConfig(tracker=TrackerConfig(motion_source=name))
        assert isinstance(make_motion_source(config), cls)
        assert isinstance(VisualTracker(config=config).motion_source, cls)
