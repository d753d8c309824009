"""Finger geometry estimation on image-space hand skeletons."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum

from gesture_liveness.constants import WRIST_INDEX
from gesture_liveness.models import FINGERS, FingerName, HandSkeleton, Point


class FingerCurl(StrEnum):
    """Degree to which a finger is bent."""

    NO_CURL = "no_curl"
    HALF_CURL = "half_curl"
    FULL_CURL = "full_curl"


class FingerDirection(StrEnum):
    """Image-space direction of a finger, base to tip."""

    VERTICAL_UP = "vertical_up"
    VERTICAL_DOWN = "vertical_down"
    HORIZONTAL_LEFT = "horizontal_left"
    HORIZONTAL_RIGHT = "horizontal_right"
    DIAGONAL_UP_LEFT = "diagonal_up_left"
    DIAGONAL_UP_RIGHT = "diagonal_up_right"
    DIAGONAL_DOWN_LEFT = "diagonal_down_left"
    DIAGONAL_DOWN_RIGHT = "diagonal_down_right"


@dataclass(frozen=True, slots=True)
class FingerPose:
    """Estimated curl and direction for one finger."""

    curl: FingerCurl
    direction: FingerDirection


# (base, middle, tip) landmark indices used for curl and direction estimation.
_FINGER_CHAINS: dict[FingerName, tuple[int, int, int]] = {
    FingerName.THUMB: (1, 2, 4),
    FingerName.INDEX: (5, 6, 8),
    FingerName.MIDDLE: (9, 10, 12),
    FingerName.RING: (13, 14, 16),
    FingerName.PINKY: (17, 18, 20),
}

HALF_CURL_START_DEG = 60.0
NO_CURL_START_DEG = 130.0


def planar_distance(a: Point, b: Point) -> float:
    """Return the Euclidean distance between two points in the image plane.

    Depth is ignored because landmark ``z`` values are relative estimates.
    """
    return math.hypot(a[0] - b[0], a[1] - b[1])


def distance_to_wrist(skeleton: HandSkeleton, index: int) -> float:
    """Return the image-plane distance from one landmark to the wrist."""
    return planar_distance(skeleton.points[index], skeleton.points[WRIST_INDEX])


def estimate_curl(
    start: Point,
    mid: Point,
    end: Point,
    *,
    half_curl_start_deg: float = HALF_CURL_START_DEG,
    no_curl_start_deg: float = NO_CURL_START_DEG,
) -> FingerCurl:
    """Classify finger curl from the angle at its middle joint.

    A straight finger has an angle near 180 degrees between the ``mid -> start``
    and ``mid -> end`` segments; a finger folded back onto itself approaches 0.

    :param start:
        Finger base joint.
    :param mid:
        Finger middle joint.
    :param end:
        Fingertip.
    :param half_curl_start_deg:
        Angles at or below this value count as fully curled.
    :param no_curl_start_deg:
        Angles above this value count as uncurled.
    :returns:
        Estimated curl bucket. Degenerate zero-length segments count as fully curled.
    """
    start_mid = planar_distance(start, mid)
    mid_end = planar_distance(mid, end)
    if start_mid == 0.0 or mid_end == 0.0:
        return FingerCurl.FULL_CURL

    start_end = planar_distance(start, end)
    cos_angle = (start_mid**2 + mid_end**2 - start_end**2) / (2.0 * start_mid * mid_end)
    angle = math.degrees(math.acos(max(-1.0, min(1.0, cos_angle))))

    if angle > no_curl_start_deg:
        return FingerCurl.NO_CURL
    if angle > half_curl_start_deg:
        return FingerCurl.HALF_CURL
    return FingerCurl.FULL_CURL


def estimate_direction(start: Point, end: Point) -> FingerDirection:
    """Classify the image-space direction of the ``start -> end`` vector.

    Image ``y`` grows downward, so the vertical component is flipped before
    computing the angle. Directions are 45-degree buckets centered on the
    compass axes.

    :param start:
        Finger base joint.
    :param end:
        Fingertip.
    :returns:
        Estimated direction bucket.
    """
    angle = math.degrees(math.atan2(start[1] - end[1], end[0] - start[0]))

    if 67.5 <= angle < 112.5:
        return FingerDirection.VERTICAL_UP
    if 22.5 <= angle < 67.5:
        return FingerDirection.DIAGONAL_UP_RIGHT
    if 112.5 <= angle < 157.5:
        return FingerDirection.DIAGONAL_UP_LEFT
    if -22.5 <= angle < 22.5:
        return FingerDirection.HORIZONTAL_RIGHT
    if -67.5 <= angle < -22.5:
        return FingerDirection.DIAGONAL_DOWN_RIGHT
    if -112.5 <= angle < -67.5:
        return FingerDirection.VERTICAL_DOWN
    if -157.5 <= angle < -112.5:
        return FingerDirection.DIAGONAL_DOWN_LEFT
    return FingerDirection.HORIZONTAL_LEFT


def estimate_finger_poses(skeleton: HandSkeleton) -> dict[FingerName, FingerPose]:
    """Estimate curl and direction for all five fingers of one skeleton."""
    poses: dict[FingerName, FingerPose] = {}
    for finger in FINGERS:
        base, mid, tip = _FINGER_CHAINS[finger]
        points = skeleton.points
        poses[finger] = FingerPose(
            curl=estimate_curl(points[base], points[mid], points[tip]),
            direction=estimate_direction(points[base], points[tip]),
        )
    return poses
