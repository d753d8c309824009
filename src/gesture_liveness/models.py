"""Typed models for hand skeletons and per-frame pose classifications."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import IntEnum, StrEnum
from typing import Any

from gesture_liveness.constants import LANDMARK_COUNT, LANDMARK_JOINT_NAMES
from gesture_liveness.exceptions import LandmarkError

Point = tuple[float, float, float]


class PoseLabel(IntEnum):
    """Discrete finger-count pose recognized by the classifier."""

    NONE = 0
    ONE = 1
    TWO = 2
    THREE = 3


class JointName(StrEnum):
    """Canonical joint names matching landmark order."""

    WRIST = "Wrist"
    THUMB_CMC = "ThumbCMC"
    THUMB_MCP = "ThumbMCP"
    THUMB_IP = "ThumbIP"
    THUMB_TIP = "ThumbTip"
    INDEX_MCP = "IndexMCP"
    INDEX_PIP = "IndexPIP"
    INDEX_DIP = "IndexDIP"
    INDEX_TIP = "IndexTip"
    MIDDLE_MCP = "MiddleMCP"
    MIDDLE_PIP = "MiddlePIP"
    MIDDLE_DIP = "MiddleDIP"
    MIDDLE_TIP = "MiddleTip"
    RING_MCP = "RingMCP"
    RING_PIP = "RingPIP"
    RING_DIP = "RingDIP"
    RING_TIP = "RingTip"
    PINKY_MCP = "PinkyMCP"
    PINKY_PIP = "PinkyPIP"
    PINKY_DIP = "PinkyDIP"
    PINKY_TIP = "PinkyTip"


class FingerName(StrEnum):
    """Supported finger groups for convenience accessors."""

    WRIST = "wrist"
    THUMB = "thumb"
    INDEX = "index"
    MIDDLE = "middle"
    RING = "ring"
    PINKY = "pinky"


FINGERS: tuple[FingerName, ...] = (
    FingerName.THUMB,
    FingerName.INDEX,
    FingerName.MIDDLE,
    FingerName.RING,
    FingerName.PINKY,
)
"""Fingers in landmark order, excluding the wrist group."""

_JOINT_INDEX_BY_NAME: dict[str, int] = {
    name: index for index, name in enumerate(LANDMARK_JOINT_NAMES)
}


@dataclass(frozen=True, slots=True)
class HandSkeleton:
    """Ordered set of 21 hand landmarks as ``(x, y, z)`` image-space points."""

    points: tuple[Point, ...]

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]]) -> HandSkeleton:
        """Build a skeleton from raw ``(x, y)`` or ``(x, y, z)`` sequences.

        :param points:
            Exactly 21 points in landmark order. Missing ``z`` defaults to ``0.0``.
        :returns:
            Validated skeleton.
        :raises LandmarkError:
            If the point count or a point's arity is invalid, or a coordinate is
            not numeric.
        """
        if len(points) != LANDMARK_COUNT:
            raise LandmarkError(
                f"Hand skeleton must contain {LANDMARK_COUNT} points, got {len(points)}"
            )

        parsed: list[Point] = []
        for index, point in enumerate(points):
            if len(point) not in (2, 3):
                raise LandmarkError(f"Point {index} must have 2 or 3 coordinates.")
            try:
                x = float(point[0])
                y = float(point[1])
                z = float(point[2]) if len(point) == 3 else 0.0
            except (TypeError, ValueError) as exc:
                raise LandmarkError(f"Point {index} contains non-numeric values.") from exc
            parsed.append((x, y, z))
        return cls(points=tuple(parsed))

    def get_joint(self, joint: JointName | str) -> Point:
        """Return one joint point by name.

        :param joint:
            Joint to query, either as :class:`JointName` or canonical joint string
            (for example ``"IndexTip"``).
        :returns:
            Joint ``(x, y, z)`` tuple.
        :raises ValueError:
            If the joint name is unknown.
        """
        joint_name = joint.value if isinstance(joint, JointName) else joint
        index = _JOINT_INDEX_BY_NAME.get(joint_name)
        if index is None:
            raise ValueError(f"Unknown joint name: {joint_name!r}")
        return self.points[index]

    def get_finger(self, finger: FingerName | str) -> dict[JointName, Point]:
        """Return all joint points for one finger group, base to tip.

        :param finger:
            Finger group to query. Accepts :class:`FingerName` or one of
            ``wrist``, ``thumb``, ``index``, ``middle``, ``ring``, ``pinky``.
        :returns:
            Dictionary mapping :class:`JointName` to ``(x, y, z)`` points.
        :raises ValueError:
            If the finger group is unknown.
        """
        finger_name = finger.value if isinstance(finger, FingerName) else finger.lower()
        if finger_name == FingerName.WRIST.value:
            return {JointName.WRIST: self.get_joint(JointName.WRIST)}

        if finger_name not in {name.value for name in FINGERS}:
            raise ValueError(f"Unknown finger name: {finger_name!r}")

        prefix = finger_name.capitalize()
        return {
            joint: self.get_joint(joint)
            for joint in JointName
            if joint is not JointName.WRIST and joint.value.startswith(prefix)
        }

    def to_dict(self) -> dict[str, list[list[float]]]:
        """Serialize the skeleton into a mapping-friendly dictionary."""
        return {"points": [[x, y, z] for x, y, z in self.points]}

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> HandSkeleton:
        """Build :class:`HandSkeleton` from serialized mapping data.

        :raises LandmarkError:
            If the ``points`` payload is missing or malformed.
        """
        try:
            raw_points = values["points"]
        except KeyError as exc:
            raise LandmarkError("Skeleton mapping is missing 'points'.") from exc
        return cls.from_points(raw_points)


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned image-space box around the evaluated landmarks."""

    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class PoseClassification:
    """Result of classifying one frame.

    :param detected:
        Whether a hand was present in the frame.
    :param pose_label:
        Recognized pose, :attr:`PoseLabel.NONE` when the hand matches no pose.
    :param confidence:
        Match score of the strategy that produced the label.
    :param pose_name:
        Name of the template or heuristic that matched.
    :param skeleton:
        Landmarks the classification was computed from.
    :param bounding_box:
        Pose-aware box around the evaluated landmarks.
    """

    detected: bool
    pose_label: PoseLabel
    confidence: float
    pose_name: str
    skeleton: HandSkeleton | None = None
    bounding_box: BoundingBox | None = None

    @property
    def keypoints(self) -> tuple[Point, ...]:
        if self.skeleton is None:
            return ()
        return self.skeleton.points

    @property
    def finger_count(self) -> int:
        return int(self.pose_label)

    @classmethod
    def no_hand(cls) -> PoseClassification:
        """Return the canonical result for a frame without a usable hand."""
        return cls(detected=False, pose_label=PoseLabel.NONE, confidence=0.0, pose_name="none")

    def to_dict(self) -> dict[str, Any]:
        return {
            "detected": self.detected,
            "pose_label": int(self.pose_label),
            "confidence": self.confidence,
            "pose_name": self.pose_name,
            "keypoints": [list(point) for point in self.keypoints],
            "bounding_box": None if self.bounding_box is None else self.bounding_box.to_dict(),
        }
