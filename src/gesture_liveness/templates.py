"""Gesture templates expressed as weighted per-finger curl and direction constraints."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from gesture_liveness.geometry import FingerCurl, FingerDirection, FingerPose
from gesture_liveness.models import FingerName, PoseLabel

MAX_TEMPLATE_SCORE = 10.0


@dataclass(frozen=True)
class GestureTemplate:
    """Weighted description of one hand gesture.

    Each constrained finger maps accepted curls and directions to a weight in
    ``[0, 1]``. Fingers without an entry are unconstrained.

    :param name:
        Unique template name, also used to look up its acceptance threshold.
    :param pose_label:
        Pose reported when this template is accepted.
    :param curls:
        Accepted curls per finger with their weights.
    :param directions:
        Accepted directions per finger with their weights.
    """

    name: str
    pose_label: PoseLabel
    curls: Mapping[FingerName, Mapping[FingerCurl, float]] = field(default_factory=dict)
    directions: Mapping[FingerName, Mapping[FingerDirection, float]] = field(
        default_factory=dict
    )

    def score(self, finger_poses: Mapping[FingerName, FingerPose]) -> float:
        """Score detected finger poses against this template.

        The score is the matched weight divided by the best achievable weight
        across all constraints, scaled to ``[0, MAX_TEMPLATE_SCORE]``.

        :param finger_poses:
            Estimated pose per finger.
        :returns:
            Template match score.
        """
        matched = 0.0
        achievable = 0.0
        for finger, weights in self.curls.items():
            if not weights:
                continue
            matched += weights.get(finger_poses[finger].curl, 0.0)
            achievable += max(weights.values())
        for finger, weights in self.directions.items():
            if not weights:
                continue
            matched += weights.get(finger_poses[finger].direction, 0.0)
            achievable += max(weights.values())

        if achievable <= 0.0:
            return 0.0
        return matched / achievable * MAX_TEMPLATE_SCORE


_UPWARD_STRICT: dict[FingerDirection, float] = {
    FingerDirection.VERTICAL_UP: 0.8,
    FingerDirection.DIAGONAL_UP_LEFT: 0.5,
    FingerDirection.DIAGONAL_UP_RIGHT: 0.5,
}

_UPWARD_LENIENT: dict[FingerDirection, float] = {
    **_UPWARD_STRICT,
    FingerDirection.HORIZONTAL_LEFT: 0.3,
    FingerDirection.HORIZONTAL_RIGHT: 0.3,
}

_THUMB_TUCKED: dict[FingerCurl, float] = {
    FingerCurl.FULL_CURL: 0.8,
    FingerCurl.HALF_CURL: 0.5,
    FingerCurl.NO_CURL: 0.1,
}

_FOLDED: dict[FingerCurl, float] = {
    FingerCurl.FULL_CURL: 1.0,
    FingerCurl.HALF_CURL: 0.3,
    FingerCurl.NO_CURL: 0.0,
}


ONE_FINGER = GestureTemplate(
    name="one_finger",
    pose_label=PoseLabel.ONE,
    curls={
        FingerName.INDEX: {FingerCurl.NO_CURL: 0.9, FingerCurl.HALF_CURL: 0.3},
        FingerName.MIDDLE: _FOLDED,
        FingerName.RING: _FOLDED,
        FingerName.PINKY: _FOLDED,
        FingerName.THUMB: _THUMB_TUCKED,
    },
    directions={
        FingerName.INDEX: {
            FingerDirection.VERTICAL_UP: 0.8,
            FingerDirection.DIAGONAL_UP_LEFT: 0.6,
            FingerDirection.DIAGONAL_UP_RIGHT: 0.6,
            FingerDirection.HORIZONTAL_LEFT: 0.3,
            FingerDirection.HORIZONTAL_RIGHT: 0.3,
        },
    },
)

TWO_FINGERS = GestureTemplate(
    name="two_fingers",
    pose_label=PoseLabel.TWO,
    curls={
        FingerName.INDEX: {FingerCurl.NO_CURL: 1.0},
        FingerName.MIDDLE: {FingerCurl.NO_CURL: 1.0},
        FingerName.RING: {FingerCurl.FULL_CURL: 0.8, FingerCurl.HALF_CURL: 0.8},
        FingerName.PINKY: {FingerCurl.FULL_CURL: 0.8, FingerCurl.HALF_CURL: 0.8},
        FingerName.THUMB: {
            FingerCurl.NO_CURL: 0.5,
            FingerCurl.HALF_CURL: 0.5,
            FingerCurl.FULL_CURL: 0.5,
        },
    },
    directions={
        FingerName.INDEX: _UPWARD_STRICT,
        FingerName.MIDDLE: _UPWARD_STRICT,
    },
)

THREE_FINGERS = GestureTemplate(
    name="three_fingers",
    pose_label=PoseLabel.THREE,
    curls={
        FingerName.INDEX: {FingerCurl.NO_CURL: 1.0},
        FingerName.MIDDLE: {FingerCurl.NO_CURL: 1.0},
        FingerName.RING: {FingerCurl.NO_CURL: 1.0},
        FingerName.PINKY: {
            FingerCurl.FULL_CURL: 0.8,
            FingerCurl.HALF_CURL: 0.8,
            FingerCurl.NO_CURL: 0.2,
        },
        FingerName.THUMB: _THUMB_TUCKED,
    },
    directions={
        FingerName.INDEX: _UPWARD_LENIENT,
        FingerName.MIDDLE: _UPWARD_LENIENT,
        FingerName.RING: _UPWARD_LENIENT,
    },
)

# Generic index+middle "victory" sign, accepted as an alternate match for pose 2.
VICTORY = GestureTemplate(
    name="victory",
    pose_label=PoseLabel.TWO,
    curls={
        FingerName.THUMB: {FingerCurl.HALF_CURL: 0.5, FingerCurl.NO_CURL: 0.5},
        FingerName.INDEX: {FingerCurl.NO_CURL: 1.0},
        FingerName.MIDDLE: {FingerCurl.NO_CURL: 1.0},
        FingerName.RING: {FingerCurl.FULL_CURL: 1.0},
        FingerName.PINKY: {FingerCurl.FULL_CURL: 1.0, FingerCurl.NO_CURL: 0.2},
    },
    directions={
        FingerName.INDEX: {
            FingerDirection.VERTICAL_UP: 0.75,
            FingerDirection.DIAGONAL_UP_LEFT: 1.0,
            FingerDirection.DIAGONAL_UP_RIGHT: 1.0,
        },
        FingerName.MIDDLE: {
            FingerDirection.VERTICAL_UP: 1.0,
            FingerDirection.DIAGONAL_UP_LEFT: 0.75,
            FingerDirection.DIAGONAL_UP_RIGHT: 0.75,
        },
    },
)

DEFAULT_TEMPLATES: tuple[GestureTemplate, ...] = (ONE_FINGER, TWO_FINGERS, THREE_FINGERS, VICTORY)
