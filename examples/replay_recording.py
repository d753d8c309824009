"""Replay a recorded hand-landmark session through the liveness sequence.

Useful for calibrating classifier thresholds without a camera.

Example:
    uv run python examples/replay_recording.py --path runs/hands.jsonl
    uv run --with rerun-sdk python examples/replay_recording.py \\
        --path runs/hands.jsonl --rerun
"""

from __future__ import annotations

import argparse
from collections import Counter

from gesture_liveness import (
    CaptureCoordinator,
    LivenessSession,
    RecordedFrame,
    RecordedLandmarkSource,
    RerunVisualizer,
    RerunVisualizerConfig,
    SequenceConfig,
    SessionConfig,
    load_recording,
)


class _RecordingFrames:
    """Frame source handing out recorded frames in order."""

    def __init__(self, frames: list[RecordedFrame]) -> None:
        self._frames = iter(frames)

    def read(self) -> RecordedFrame | None:
        return next(self._frames, None)

    def release(self) -> None:
        self._frames = iter(())


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay recorded hands through liveness check.")
    parser.add_argument("--path", required=True, help="Input JSONL recording.")
    parser.add_argument(
        "--hold-ms",
        type=int,
        default=3000,
        help="Pose hold time required to advance.",
    )
    parser.add_argument(
        "--confidence-threshold",
        type=float,
        default=2.0,
        help="Minimum classification confidence for a correct tick.",
    )
    parser.add_argument("--rerun", action="store_true", help="Log ticks to a rerun viewer.")
    return parser.parse_args()


def _main() -> int:
    args = _parse_args()
    frames = load_recording(args.path)
    frame_source = _RecordingFrames(frames)
    session = LivenessSession(
        RecordedLandmarkSource,
        CaptureCoordinator(frame_source, encoder=lambda _: b""),
        SessionConfig(
            sequence=SequenceConfig(
                stability_hold_ms=args.hold_ms,
                confidence_threshold=args.confidence_threshold,
            )
        ),
    )
    visualizer = RerunVisualizer(RerunVisualizerConfig(spawn=True)) if args.rerun else None

    pose_names: Counter[str] = Counter()
    fired_at: int | None = None
    with session:
        while (frame := frame_source.read()) is not None:
            result = session.process_frame(frame, now_ms=frame.timestamp_ms)
            poll = session.poll(now_ms=frame.timestamp_ms)
            pose_names[result.classification.pose_name] += 1
            if visualizer is not None:
                visualizer.log_frame_result(result)
                visualizer.log_poll(poll)
            if poll.capture_requested:
                fired_at = frame.timestamp_ms
                break

        final_step = session.sequence.get_pose_state().current_step

    print(f"replayed {sum(pose_names.values())} of {len(frames)} frame(s) from {args.path}")
    for name, count in pose_names.most_common():
        print(f"  {name}: {count}")
    if fired_at is None:
        print(f"capture not reached; sequence stopped at step {int(final_step)}")
        return 1
    print(f"capture fired at {fired_at} ms")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
