"""Run the gesture liveness check on a local webcam and save the photo.

Example:
    uv run --with "gesture-liveness[camera]" python examples/run_liveness.py \\
        --device 0 --photo runs/photo.jpg --record runs/hands.jsonl
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any

from gesture_liveness import (
    CaptureCoordinator,
    HandSkeleton,
    LivenessLogEvent,
    LivenessSession,
    LogEventKind,
    MediaPipeLandmarkSource,
    MediaPipeSourceConfig,
    ModelInitializationError,
    OpenCVCamera,
    OpenCVCameraConfig,
    RecordedFrame,
    SessionConfig,
    SessionTimeoutError,
)
from gesture_liveness.sequence import monotonic_ms


class _RecordingLandmarkSource:
    """Wraps a landmark source and appends every detection to a JSONL file."""

    def __init__(self, inner: MediaPipeLandmarkSource, path: Path) -> None:
        self._inner = inner
        path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = path.open("w", encoding="utf-8")
        self.written = 0

    def estimate_hands(self, frame: Any) -> list[HandSkeleton]:
        hands = self._inner.estimate_hands(frame)
        record = RecordedFrame(timestamp_ms=monotonic_ms(), hands=tuple(hands))
        self._handle.write(json.dumps(record.to_dict(), separators=(",", ":")) + "\n")
        self.written += 1
        return hands

    def close(self) -> None:
        try:
            self._inner.close()
        finally:
            self._handle.close()


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gesture liveness check with webcam capture.")
    parser.add_argument("--device", type=int, default=0, help="OpenCV camera index.")
    parser.add_argument("--timeout", type=float, default=120.0, help="Give up after N seconds.")
    parser.add_argument(
        "--photo",
        default="runs/liveness_photo.jpg",
        help="Output path for the captured JPEG.",
    )
    parser.add_argument(
        "--record",
        default=None,
        help="Optional JSONL path receiving every detected hand for replay.",
    )
    parser.add_argument(
        "--no-mirror",
        action="store_true",
        help="Do not flip camera frames horizontally.",
    )
    parser.add_argument("--verbose", action="store_true", help="Print structured log events.")
    return parser.parse_args()


def _print_event(event: LivenessLogEvent) -> None:
    if event.kind is LogEventKind.FRAME_CLASSIFIED:
        return
    print(f"[{event.kind}] step={event.step} pose={event.pose_label} {event.message}")


def _main() -> int:
    args = _parse_args()
    recorder: _RecordingLandmarkSource | None = None

    def _landmark_source() -> _RecordingLandmarkSource | MediaPipeLandmarkSource:
        nonlocal recorder
        source = MediaPipeLandmarkSource(MediaPipeSourceConfig())
        if args.record is None:
            return source
        recorder = _RecordingLandmarkSource(source, Path(args.record))
        return recorder

    camera = OpenCVCamera(OpenCVCameraConfig(device=args.device, mirror=not args.no_mirror))
    session = LivenessSession(
        _landmark_source,
        CaptureCoordinator(camera),
        SessionConfig(log_hook=_print_event if args.verbose else None),
    )

    try:
        with session:
            print(session.sequence.get_current_pose_instruction())
            photo = asyncio.run(session.run(timeout_s=args.timeout))
    except ModelInitializationError as exc:
        print(f"hand model unavailable ({exc.__cause__}); taking photo without gestures")
        photo = session.capture_now()
        session.close()
    except SessionTimeoutError:
        print(f"no liveness sequence completed within {args.timeout:.0f}s")
        return 1

    path = Path(args.photo)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(photo.data)

    stats = session.get_stats()
    print(
        f"saved {photo.width}x{photo.height} photo to {path}"
        f" frames_processed={stats.frames_processed}"
        f" hands_detected={stats.hands_detected}"
        f" detection_errors={stats.detection_errors}"
    )
    if recorder is not None:
        print(f"wrote {recorder.written} recorded frame(s) to {args.record}")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
