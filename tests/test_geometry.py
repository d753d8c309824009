from __future__ import annotations

import pytest

from gesture_liveness import FingerCurl, FingerDirection, FingerName, estimate_finger_poses
from gesture_liveness.geometry import estimate_curl, estimate_direction, planar_distance


def test_planar_distance_ignores_depth() -> None:
    assert planar_distance((0.0, 0.0, 5.0), (3.0, 4.0, -5.0)) == 5.0


def test_curl_buckets_follow_middle_joint_angle() -> None:
    # Straight line: 180 degrees.
    assert estimate_curl((0.0, 0.0, 0.0), (0.0, -10.0, 0.0), (0.0, -20.0, 0.0)) is FingerCurl.NO_CURL
    # Right angle: 90 degrees.
    assert (
        estimate_curl((0.0, 0.0, 0.0), (0.0, -10.0, 0.0), (10.0, -10.0, 0.0))
        is FingerCurl.HALF_CURL
    )
    # Folded back: close to 0 degrees.
    assert (
        estimate_curl((0.0, 0.0, 0.0), (0.0, -10.0, 0.0), (1.0, -1.0, 0.0))
        is FingerCurl.FULL_CURL
    )


def test_degenerate_finger_counts_as_full_curl() -> None:
    point = (5.0, 5.0, 0.0)

    assert estimate_curl(point, point, (9.0, 9.0, 0.0)) is FingerCurl.FULL_CURL


@pytest.mark.parametrize(
    ("end", "expected"),
    [
        ((0.0, -10.0, 0.0), FingerDirection.VERTICAL_UP),
        ((0.0, 10.0, 0.0), FingerDirection.VERTICAL_DOWN),
        ((10.0, 0.0, 0.0), FingerDirection.HORIZONTAL_RIGHT),
        ((-10.0, 0.0, 0.0), FingerDirection.HORIZONTAL_LEFT),
        ((10.0, -10.0, 0.0), FingerDirection.DIAGONAL_UP_RIGHT),
        ((-10.0, -10.0, 0.0), FingerDirection.DIAGONAL_UP_LEFT),
        ((10.0, 10.0, 0.0), FingerDirection.DIAGONAL_DOWN_RIGHT),
        ((-10.0, 10.0, 0.0), FingerDirection.DIAGONAL_DOWN_LEFT),
    ],
)
def test_direction_uses_image_space_with_y_down(
    end: tuple[float, float, float], expected: FingerDirection
) -> None:
    assert estimate_direction((0.0, 0.0, 0.0), end) is expected


def test_finger_poses_for_pointing_hand(make_hand) -> None:
    poses = estimate_finger_poses(make_hand([FingerName.INDEX]))

    assert poses[FingerName.INDEX].curl is FingerCurl.NO_CURL
    assert poses[FingerName.INDEX].direction is FingerDirection.VERTICAL_UP
    for finger in (FingerName.MIDDLE, FingerName.RING, FingerName.PINKY, FingerName.THUMB):
        assert poses[finger].curl is FingerCurl.FULL_CURL
