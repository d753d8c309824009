from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping

import pytest

from gesture_liveness import FingerName, HandSkeleton, PoseLabel

# Upright right hand, palm facing the camera, wrist at the bottom (pixel space).
WRIST = (320.0, 400.0)
_MCP_X = {
    FingerName.INDEX: 290.0,
    FingerName.MIDDLE: 310.0,
    FingerName.RING: 330.0,
    FingerName.PINKY: 350.0,
}
_MCP_Y = 320.0
_DEFAULT_TIPS = {
    FingerName.INDEX: (290.0, 235.0),
    FingerName.MIDDLE: (310.0, 225.0),
    FingerName.RING: (330.0, 235.0),
    FingerName.PINKY: (350.0, 250.0),
}
# Curled tips drift toward the palm center.
_CURL_SHIFT = {
    FingerName.INDEX: 3.0,
    FingerName.MIDDLE: 3.0,
    FingerName.RING: -3.0,
    FingerName.PINKY: -3.0,
}
_THUMB_TUCKED = [(290.0, 385.0), (270.0, 370.0), (268.0, 380.0), (285.0, 380.0)]
_THUMB_EXTENDED = [(290.0, 385.0), (270.0, 370.0), (250.0, 355.0), (232.0, 342.0)]

HandBuilder = Callable[..., HandSkeleton]


def build_hand(
    extended: Iterable[FingerName] = (),
    *,
    thumb_extended: bool = False,
    tips: Mapping[FingerName, tuple[float, float]] | None = None,
    offset: tuple[float, float] = (0.0, 0.0),
) -> HandSkeleton:
    """Build a synthetic skeleton.

    Fingers in ``extended`` or ``tips`` are drawn straight from MCP to tip; the
    others are folded onto the palm.
    """
    raised = set(extended)
    tip_overrides = dict(tips or {})
    raised.update(tip_overrides)

    points: list[tuple[float, float]] = [WRIST]
    points.extend(_THUMB_EXTENDED if thumb_extended else _THUMB_TUCKED)
    for finger in (FingerName.INDEX, FingerName.MIDDLE, FingerName.RING, FingerName.PINKY):
        mcp = (_MCP_X[finger], _MCP_Y)
        if finger in raised:
            tip = tip_overrides.get(finger, _DEFAULT_TIPS[finger])
            dx = tip[0] - mcp[0]
            dy = tip[1] - mcp[1]
            points.extend(
                [
                    mcp,
                    (mcp[0] + dx / 3.0, mcp[1] + dy / 3.0),
                    (mcp[0] + dx * 2.0 / 3.0, mcp[1] + dy * 2.0 / 3.0),
                    tip,
                ]
            )
        else:
            x = mcp[0]
            points.extend([mcp, (x, 295.0), (x, 318.0), (x + _CURL_SHIFT[finger], 340.0)])

    return HandSkeleton.from_points([(x + offset[0], y + offset[1]) for x, y in points])


def hand_for_pose(pose: PoseLabel | int) -> HandSkeleton:
    """Return a hand clearly showing ``pose``; pose 0 is a closed fist."""
    label = PoseLabel(int(pose))
    if label is PoseLabel.ONE:
        return build_hand([FingerName.INDEX])
    if label is PoseLabel.TWO:
        return build_hand(
            tips={FingerName.INDEX: (275.0, 240.0), FingerName.MIDDLE: (320.0, 225.0)}
        )
    if label is PoseLabel.THREE:
        return build_hand([FingerName.INDEX, FingerName.MIDDLE, FingerName.RING])
    return build_hand()


@pytest.fixture
def make_hand() -> HandBuilder:
    return build_hand


@pytest.fixture
def pose_hand() -> Callable[[PoseLabel | int], HandSkeleton]:
    return hand_for_pose
