"""Landmark and frame sources: protocols, recorded replay, and the MediaPipe adapter."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from gesture_liveness._deps import import_optional
from gesture_liveness.exceptions import ConfigurationError, LandmarkError
from gesture_liveness.models import HandSkeleton

HandsInput = Sequence[HandSkeleton | Sequence[Sequence[float]]]
"""Hands returned by a landmark source, as skeletons or raw point sequences."""


class LandmarkSource(Protocol):
    """Hand-landmark model treated as an external oracle.

    Implementations may also provide ``close()``; sessions call it when present.
    """

    def estimate_hands(self, frame: Any) -> HandsInput: ...


class FrameSource(Protocol):
    """Producer of camera frames."""

    def read(self) -> Any | None: ...

    def release(self) -> None: ...


@dataclass(frozen=True, slots=True)
class RecordedFrame:
    """One recorded classification tick.

    :param timestamp_ms:
        Monotonic capture time in milliseconds.
    :param hands:
        Hands detected in the frame, possibly empty.
    """

    timestamp_ms: int
    hands: tuple[HandSkeleton, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp_ms": self.timestamp_ms,
            "hands": [hand.to_dict() for hand in self.hands],
        }

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> RecordedFrame:
        """Build :class:`RecordedFrame` from serialized mapping data.

        :raises LandmarkError:
            If the timestamp or a hand payload is missing or malformed.
        """
        try:
            timestamp_ms = int(values["timestamp_ms"])
        except (KeyError, TypeError, ValueError) as exc:
            raise LandmarkError("Recorded frame needs an integer 'timestamp_ms'.") from exc

        raw_hands = values.get("hands", [])
        if not isinstance(raw_hands, list):
            raise LandmarkError("Recorded frame 'hands' must be a list.")
        return cls(
            timestamp_ms=timestamp_ms,
            hands=tuple(HandSkeleton.from_dict(hand) for hand in raw_hands),
        )


def load_recording(path: str | Path) -> list[RecordedFrame]:
    """Read a JSON Lines recording.

    :param path:
        Recording file, one :class:`RecordedFrame` object per line. Blank lines
        are skipped.
    :returns:
        Frames in file order.
    :raises LandmarkError:
        If a line is not valid JSON or does not describe a frame.
    """
    frames: list[RecordedFrame] = []
    with Path(path).open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError as exc:
                raise LandmarkError(f"Line {line_number} is not valid JSON.") from exc
            if not isinstance(payload, dict):
                raise LandmarkError(f"Line {line_number} must hold a JSON object.")
            try:
                frames.append(RecordedFrame.from_dict(payload))
            except LandmarkError as exc:
                raise LandmarkError(f"Line {line_number}: {exc}") from exc
    return frames


def write_recording(path: str | Path, frames: Iterable[RecordedFrame]) -> int:
    """Write frames as a JSON Lines recording.

    :returns:
        Number of frames written.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    with target.open("w", encoding="utf-8") as handle:
        for frame in frames:
            handle.write(json.dumps(frame.to_dict(), separators=(",", ":")) + "\n")
            written += 1
    return written


class RecordedLandmarkSource:
    """Landmark source replaying hands stored in :class:`RecordedFrame` values.

    The frame passed to :meth:`estimate_hands` must be the recorded frame itself.
    """

    def __init__(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def estimate_hands(self, frame: Any) -> tuple[HandSkeleton, ...]:
        if not isinstance(frame, RecordedFrame):
            raise LandmarkError(f"Expected RecordedFrame, got {type(frame).__name__}.")
        return frame.hands

    def close(self) -> None:
        self._closed = True


@dataclass(frozen=True, slots=True)
class MediaPipeSourceConfig:
    """Configuration for :class:`MediaPipeLandmarkSource`.

    :param max_num_hands:
        Maximum hands reported per frame.
    :param model_complexity:
        MediaPipe Hands model complexity, ``0`` or ``1``.
    :param min_detection_confidence:
        Palm detection confidence threshold.
    :param min_tracking_confidence:
        Landmark tracking confidence threshold.
    :param input_is_bgr:
        Whether frames arrive in OpenCV BGR order and need conversion to RGB.
    """

    max_num_hands: int = 1
    model_complexity: int = 1
    min_detection_confidence: float = 0.7
    min_tracking_confidence: float = 0.5
    input_is_bgr: bool = True

    def __post_init__(self) -> None:
        """Validate configuration constraints.

        :raises ConfigurationError:
            If one or more fields are invalid.
        """
        if self.max_num_hands < 1:
            raise ConfigurationError("max_num_hands must be at least 1.")
        if self.model_complexity not in (0, 1):
            raise ConfigurationError("model_complexity must be 0 or 1.")
        for name in ("min_detection_confidence", "min_tracking_confidence"):
            value = getattr(self, name)
            if value < 0.0 or value > 1.0:
                raise ConfigurationError(f"{name} must be in range [0, 1].")


class MediaPipeLandmarkSource:
    """Landmark source backed by MediaPipe Hands.

    Normalized landmark coordinates are scaled to pixels using the frame shape.
    This component is optional and requires installing the camera extra.
    """

    def __init__(self, config: MediaPipeSourceConfig | None = None) -> None:
        """Load the MediaPipe Hands model.

        :param config:
            Optional model configuration.
        :raises DependencyError:
            If `mediapipe` or `opencv-python` is not installed.
        """
        self._config = config or MediaPipeSourceConfig()
        mediapipe = import_optional("mediapipe", extra="camera")
        self._cv2 = import_optional("cv2", extra="camera") if self._config.input_is_bgr else None
        self._hands = mediapipe.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=self._config.max_num_hands,
            model_complexity=self._config.model_complexity,
            min_detection_confidence=self._config.min_detection_confidence,
            min_tracking_confidence=self._config.min_tracking_confidence,
        )

    def estimate_hands(self, frame: Any) -> list[HandSkeleton]:
        """Detect hands in one image frame.

        :param frame:
            ``H x W x 3`` image array.
        :returns:
            Pixel-space skeletons, empty when no hand is visible.
        """
        height, width = frame.shape[:2]
        image = frame
        if self._cv2 is not None:
            image = self._cv2.cvtColor(frame, self._cv2.COLOR_BGR2RGB)

        results = self._hands.process(image)
        if not results.multi_hand_landmarks:
            return []
        return [
            HandSkeleton.from_points(
                [(lm.x * width, lm.y * height, lm.z * width) for lm in hand.landmark]
            )
            for hand in results.multi_hand_landmarks
        ]

    def close(self) -> None:
        self._hands.close()
