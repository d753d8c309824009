"""Finger-count pose classification for single hand skeletons."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from gesture_liveness.constants import (
    FINGER_BASE_INDICES,
    FINGER_MCP_INDICES,
    FINGER_TIP_INDICES,
    WRIST_INDEX,
)
from gesture_liveness.events import LivenessLogEvent, LogEventKind, LogHook, emit
from gesture_liveness.exceptions import ConfigurationError
from gesture_liveness.geometry import distance_to_wrist, estimate_finger_poses, planar_distance
from gesture_liveness.models import BoundingBox, HandSkeleton, PoseClassification, PoseLabel
from gesture_liveness.templates import DEFAULT_TEMPLATES, GestureTemplate

DEFAULT_TEMPLATE_THRESHOLDS: dict[str, float] = {
    "one_finger": 8.0,
    "two_fingers": 8.4,
    "three_fingers": 8.8,
    "victory": 9.0,
}

_THUMB, _INDEX, _MIDDLE, _RING, _PINKY = range(5)

# Landmarks framed by the bounding box for each targeted pose, besides wrist and thumb.
_BOX_FINGER_LANDMARKS: dict[PoseLabel, tuple[int, ...]] = {
    PoseLabel.ONE: (5, 6, 7, 8, 17, 18, 19, 20),
    PoseLabel.TWO: (5, 6, 7, 8, 9, 10, 11, 12, 17, 18, 19, 20),
    PoseLabel.THREE: (5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15, 16),
}
_BOX_ANCHOR_LANDMARKS: tuple[int, ...] = (WRIST_INDEX, 1, 2, 3, 4)

SkeletonInput = HandSkeleton | Sequence[Sequence[float]]


@dataclass(frozen=True, slots=True)
class ClassifierConfig:
    """Tunable thresholds for :class:`PoseClassifier`.

    Distances are image pixels. All values are empirically tuned and meant to be
    calibrated against recorded hands.

    :param template_thresholds:
        Per-template minimum score (exclusive) on the ``[0, 10]`` template scale.
    :param default_template_threshold:
        Threshold for templates missing from ``template_thresholds``.
    :param extension_margins:
        Per-finger margin (thumb, index, middle, ring, pinky) by which the tip must
        be further from the wrist than the MCP joint to count as extended.
    :param min_upward_offset:
        Minimum height of index and middle tips above their base joint.
    :param min_tip_separation:
        Minimum gap between adjacent extended fingertips.
    :param count_confidence:
        Confidence reported by the finger-count heuristic.
    :param index_min_extension:
        Minimum index tip distance from the wrist for the single-index check.
    :param index_min_separation:
        Minimum lead of the index tip over the other fingertips.
    :param index_min_upward:
        Minimum height of the index tip above its MCP joint.
    :param index_confidence:
        Confidence reported by the single-index check.
    :param three_min_extension:
        Minimum tip distance from the wrist for index, middle, and ring.
    :param three_max_pinky_extension:
        Maximum pinky tip distance from the wrist for the three-finger check.
    :param three_max_extension_spread:
        Maximum extension difference between neighboring raised fingers.
    :param three_min_upward:
        Minimum height of each raised tip above its MCP joint.
    :param three_confidence:
        Confidence reported by the three-finger check.
    :param box_padding:
        Bounding box padding for poses 0 to 2.
    :param three_finger_box_padding:
        Bounding box padding for pose 3.
    :param log_hook:
        Optional structured log callback.
    """

    template_thresholds: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_TEMPLATE_THRESHOLDS)
    )
    default_template_threshold: float = 9.0
    extension_margins: tuple[float, float, float, float, float] = (20.0, 40.0, 35.0, 25.0, 20.0)
    min_upward_offset: float = 25.0
    min_tip_separation: float = 30.0
    count_confidence: float = 6.0
    index_min_extension: float = 90.0
    index_min_separation: float = 35.0
    index_min_upward: float = 25.0
    index_confidence: float = 5.0
    three_min_extension: float = 80.0
    three_max_pinky_extension: float = 80.0
    three_max_extension_spread: float = 40.0
    three_min_upward: float = 20.0
    three_confidence: float = 5.0
    box_padding: float = 20.0
    three_finger_box_padding: float = 30.0
    log_hook: LogHook | None = None

    def __post_init__(self) -> None:
        """Validate configuration constraints.

        :raises ConfigurationError:
            If one or more fields are invalid.
        """
        if len(self.extension_margins) != 5:
            raise ConfigurationError("extension_margins must hold one value per finger.")
        thresholds = [*self.template_thresholds.values(), self.default_template_threshold]
        if any(not math.isfinite(value) or value < 0 for value in thresholds):
            raise ConfigurationError("template thresholds must be finite and non-negative.")
        distances = (
            *self.extension_margins,
            self.min_upward_offset,
            self.min_tip_separation,
            self.index_min_extension,
            self.index_min_separation,
            self.index_min_upward,
            self.three_min_extension,
            self.three_max_pinky_extension,
            self.three_max_extension_spread,
            self.three_min_upward,
            self.box_padding,
            self.three_finger_box_padding,
        )
        if any(value < 0 for value in distances):
            raise ConfigurationError("distance thresholds must be non-negative.")


class PoseClassifier:
    """Map a hand skeleton to a finger-count pose.

    Strategies run in order and the first success wins: template matching, the
    finger-count heuristic, the single-index check, then the three-finger check.
    Classification never raises; unusable input is reported as "no hand".
    """

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        *,
        templates: Iterable[GestureTemplate] | None = None,
    ) -> None:
        """Create a classifier.

        :param config:
            Optional thresholds; defaults to :class:`ClassifierConfig`.
        :param templates:
            Optional gesture templates replacing the built-in set.
        :raises ConfigurationError:
            If two templates share a name.
        """
        self._config = config or ClassifierConfig()
        self._templates = tuple(DEFAULT_TEMPLATES if templates is None else templates)
        self._templates_by_name = {template.name: template for template in self._templates}
        if len(self._templates_by_name) != len(self._templates):
            raise ConfigurationError("template names must be unique.")

    @property
    def config(self) -> ClassifierConfig:
        return self._config

    def classify(
        self,
        skeleton: SkeletonInput | None,
        *,
        target_pose: PoseLabel | int | None = None,
    ) -> PoseClassification:
        """Classify one frame's hand skeleton.

        :param skeleton:
            Skeleton or raw points for the detected hand, ``None`` when no hand
            was found.
        :param target_pose:
            Pose currently required by the sequence; selects the fingers framed by
            the bounding box. Defaults to the detected pose.
        :returns:
            Pose classification. Malformed input and internal failures yield
            :meth:`PoseClassification.no_hand`.
        """
        if skeleton is None:
            return PoseClassification.no_hand()

        try:
            hand = (
                skeleton if isinstance(skeleton, HandSkeleton) else HandSkeleton.from_points(skeleton)
            )
            pose_label, pose_name, confidence = self._detect_pose(hand)
        except Exception as exc:
            emit(
                self._config.log_hook,
                LivenessLogEvent(
                    kind=LogEventKind.DETECTION_ERROR,
                    message="Hand landmark processing failed.",
                    exception=exc,
                ),
            )
            return PoseClassification.no_hand()

        box_pose = pose_label if target_pose is None else target_pose
        classification = PoseClassification(
            detected=True,
            pose_label=pose_label,
            confidence=confidence,
            pose_name=pose_name,
            skeleton=hand,
            bounding_box=self._bounding_box(hand, box_pose),
        )
        emit(
            self._config.log_hook,
            LivenessLogEvent(
                kind=LogEventKind.FRAME_CLASSIFIED,
                message=f"Classified hand as {pose_name}.",
                pose_label=int(pose_label),
            ),
        )
        return classification

    def classify_hands(
        self,
        hands: Sequence[SkeletonInput],
        *,
        target_pose: PoseLabel | int | None = None,
    ) -> PoseClassification:
        """Classify the first hand returned by a landmark source.

        :param hands:
            Zero or more detected hands.
        :param target_pose:
            Pose currently required by the sequence.
        :returns:
            Classification of the first hand, or "no hand" for empty input.
        """
        if not hands:
            return PoseClassification.no_hand()
        return self.classify(hands[0], target_pose=target_pose)

    def score_templates(self, skeleton: HandSkeleton) -> dict[str, float]:
        """Return the match score of every template for one skeleton."""
        finger_poses = estimate_finger_poses(skeleton)
        return {template.name: template.score(finger_poses) for template in self._templates}

    def match_template(self, scores: Mapping[str, float]) -> tuple[PoseLabel, str, float] | None:
        """Accept the highest-scoring template if it clears its own threshold.

        :param scores:
            Template scores keyed by template name.
        :returns:
            ``(pose_label, template_name, score)`` or ``None`` if the best
            template is unknown or does not exceed its threshold.
        """
        if not scores:
            return None

        name = max(scores, key=scores.__getitem__)
        score = scores[name]
        template = self._templates_by_name.get(name)
        if template is None:
            return None

        threshold = self._config.template_thresholds.get(
            name, self._config.default_template_threshold
        )
        if score <= threshold:
            return None
        return template.pose_label, name, score

    def _detect_pose(self, hand: HandSkeleton) -> tuple[PoseLabel, str, float]:
        match = self.match_template(self.score_templates(hand))
        if match is not None:
            return match

        count = self._count_extended_fingers(hand)
        if count is not PoseLabel.NONE:
            return count, f"simple_{int(count)}_fingers", self._config.count_confidence

        if self._is_single_index_finger(hand):
            return PoseLabel.ONE, "index_finger_extended", self._config.index_confidence

        if self._is_three_finger_pose(hand):
            return PoseLabel.THREE, "three_fingers_extended", self._config.three_confidence

        return PoseLabel.NONE, "none", 0.0

    def _count_extended_fingers(self, hand: HandSkeleton) -> PoseLabel:
        """Report the index alone, or index and middle apart, extended away from the wrist."""
        cfg = self._config
        points = hand.points
        extended: list[int] = []

        for finger in range(5):
            tip = FINGER_TIP_INDICES[finger]
            is_extended = (
                distance_to_wrist(hand, tip)
                > distance_to_wrist(hand, FINGER_MCP_INDICES[finger]) + cfg.extension_margins[finger]
            )
            if finger in (_INDEX, _MIDDLE):
                rise = points[FINGER_BASE_INDICES[finger]][1] - points[tip][1]
                is_extended = is_extended and rise > cfg.min_upward_offset
            if finger == _MIDDLE and _INDEX in extended:
                gap = planar_distance(points[FINGER_TIP_INDICES[_INDEX]], points[tip])
                is_extended = is_extended and gap >= cfg.min_tip_separation
            if is_extended:
                extended.append(finger)

        # Only the fingers that make up each pose count; a lone thumb or pinky is not pose 1.
        if extended == [_INDEX]:
            return PoseLabel.ONE
        if extended == [_INDEX, _MIDDLE]:
            return PoseLabel.TWO
        return PoseLabel.NONE

    def _is_single_index_finger(self, hand: HandSkeleton) -> bool:
        """Stricter pose-1 test; a relaxed open hand is the usual false positive."""
        cfg = self._config
        points = hand.points
        index_reach = distance_to_wrist(hand, FINGER_TIP_INDICES[_INDEX])
        rise = points[FINGER_MCP_INDICES[_INDEX]][1] - points[FINGER_TIP_INDICES[_INDEX]][1]

        if index_reach <= cfg.index_min_extension or rise <= cfg.index_min_upward:
            return False
        return all(
            index_reach > distance_to_wrist(hand, FINGER_TIP_INDICES[finger]) + cfg.index_min_separation
            for finger in (_MIDDLE, _RING, _PINKY)
        )

    def _is_three_finger_pose(self, hand: HandSkeleton) -> bool:
        cfg = self._config
        points = hand.points
        raised = (_INDEX, _MIDDLE, _RING)
        reach = [distance_to_wrist(hand, FINGER_TIP_INDICES[finger]) for finger in raised]

        if any(value <= cfg.three_min_extension for value in reach):
            return False
        if distance_to_wrist(hand, FINGER_TIP_INDICES[_PINKY]) >= cfg.three_max_pinky_extension:
            return False
        for finger in raised:
            rise = points[FINGER_MCP_INDICES[finger]][1] - points[FINGER_TIP_INDICES[finger]][1]
            if rise <= cfg.three_min_upward:
                return False
        return (
            abs(reach[0] - reach[1]) < cfg.three_max_extension_spread
            and abs(reach[1] - reach[2]) < cfg.three_max_extension_spread
        )

    def _bounding_box(self, hand: HandSkeleton, pose: PoseLabel | int) -> BoundingBox:
        """Frame the landmarks relevant to ``pose``, falling back to the whole hand."""
        try:
            label = PoseLabel(int(pose))
            finger_landmarks = _BOX_FINGER_LANDMARKS.get(label)
            if finger_landmarks is None:
                return self._box_around(hand.points, self._config.box_padding)
            indices = (*_BOX_ANCHOR_LANDMARKS, *finger_landmarks)
            padding = (
                self._config.three_finger_box_padding
                if label is PoseLabel.THREE
                else self._config.box_padding
            )
            return self._box_around([hand.points[index] for index in indices], padding)
        except Exception:
            return self._box_around(hand.points, self._config.box_padding)

    @staticmethod
    def _box_around(points: Sequence[tuple[float, float, float]], padding: float) -> BoundingBox:
        xs = [point[0] for point in points]
        ys = [point[1] for point in points]
        min_x, max_x = min(xs), max(xs)
        min_y, max_y = min(ys), max(ys)
        return BoundingBox(
            x=max(0.0, min_x - padding),
            y=max(0.0, min_y - padding),
            width=max_x - min_x + padding * 2,
            height=max_y - min_y + padding * 2,
        )
