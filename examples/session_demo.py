#!/usr/bin/env python3
"""Demo script comparing dead reckoning with visual tracking.

Replays a recorded session (camera frames with AR reference poses plus
acceleration/orientation logs), runs both estimators side by side and reports
the drift between the two trajectories.

Usage:
    uv run python examples/session_demo.py data/sessions/walk_01 [config.yaml]
"""

import logging
import sys

import numpy as np

from smartnav import (
    DatasetFrameSource,
    EngineConfig,
    PDROdometry,
    PoseChannel,
    SensorLogReader,
    TrajectoryRecorder,
    VisualTracker,
)
from smartnav.io import AccelerationSample


def main() -> None:
    """Run the session replay demo."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # Configuration
    dataset_path = sys.argv[1] if len(sys.argv) > 1 else "data/sessions/walk_01"
    config = EngineConfig.from_yaml(sys.argv[2]) if len(sys.argv) > 2 else EngineConfig()
    output_dir = "sessions"

    # Initialize
    print("Initializing SmartNav pipeline...")
    print("=" * 80)
    frames = DatasetFrameSource(dataset_path)
    sensors = SensorLogReader(dataset_path)

    channel = PoseChannel()
    recorder = TrajectoryRecorder()
    channel.subscribe(recorder.on_event)

    pdr = PDROdometry(channel=channel, config=config.pdr)
    tracker = VisualTracker(channel=channel, config=config)

    print(f"Loaded {len(frames)} camera frames")
    print(f"Loaded {len(sensors)} acceleration samples, {len(sensors.orientation)} orientation samples")
    print(f"Motion source: {tracker.motion_source.name}")
    print()

    # Column headers
    print(
        f"{'Frame':>6} {'Status':^26} {'Feat':>5} {'Match':>5} | "
        f"{'Visual Position':^20} | "
        f"{'DR Position':^20} | "
        f"{'Drift':>7}"
    )
    print("-" * 100)

    pdr.start()
    tracker.start()

    samples = list(sensors.iter_samples())
    sample_idx = 0
    status_counts: dict[str, int] = {}
    drifts: list[float] = []

    for i, frame in enumerate(frames):
        # Feed all sensor samples up to this frame
        while sample_idx < len(samples) and samples[sample_idx].timestamp_ns <= frame.timestamp_ns:
            sample = samples[sample_idx]
            if isinstance(sample, AccelerationSample):
                pdr.process_sample(sample.acceleration, sample.timestamp_ns)
            else:
                pdr.process_orientation(*sample.quaternion)
            sample_idx += 1

        result = tracker.process_frame(frame)
        if result is None:
            continue

        status_counts[result.status.value] = status_counts.get(result.status.value, 0) + 1
        drift = recorder.compute_drift()
        drifts.append(drift)

        # Print progress every 30 frames
        if i % 30 == 0:
            dr_pose = pdr.current_pose
            visual_str = f"[{result.pose.x:8.3f}, {result.pose.y:8.3f}]"
            dr_str = f"[{dr_pose.x:8.3f}, {dr_pose.y:8.3f}]"
            print(
                f"{i:6d} {result.status.value:^26} {result.num_features:5d} {result.num_matches:5d} | "
                f"{visual_str} | "
                f"{dr_str} | "
                f"{drift:6.3f}m"
            )

    tracker.stop()
    pdr.stop()

    # Final statistics
    visual_trajectory = recorder.get_visual()
    dr_trajectory = recorder.get_dead_reckoning()
    print()
    print("=" * 80)
    print("SUMMARY")
    print("=" * 80)
    print(f"Frames processed:     {len(visual_trajectory)}")
    print(f"Steps detected:       {pdr.step_count}")
    print(f"Distance traveled:")
    print(f"  Visual estimate:    {_path_length(visual_trajectory):.2f} m")
    print(f"  Dead reckoning:     {_path_length(dr_trajectory):.2f} m")
    print()

    print("Frames by tracking status:")
    for status, count in sorted(status_counts.items()):
        print(f"  {status:<28} {count:6d}")
    print()

    if drifts:
        print("Drift between trajectories:")
        print(f"  Max:    {max(drifts):7.3f} m")
        print(f"  Mean:   {np.mean(drifts):7.3f} m")
        print(f"  Final:  {recorder.compute_drift():7.3f} m")
        print()

    path = recorder.save_csv(output_dir)
    if path is not None:
        print(f"Session saved to {path}")


def _path_length(poses) -> float:
    return float(sum(a.distance_to(b) for a, b in zip(poses, poses[1:])))


if __name__ == "__main__":
    main()
