"""Rerun viewer for classified hands and sequence prompts."""

from __future__ import annotations

import importlib
from dataclasses import dataclass

from gesture_liveness._deps import import_optional
from gesture_liveness.models import PoseClassification, PoseLabel
from gesture_liveness.session import FrameResult, PollResult


@dataclass(frozen=True, slots=True)
class RerunVisualizerConfig:
    """Configuration for :class:`RerunVisualizer`.

    :param application_id:
        Recording name shown in the Rerun viewer.
    :param spawn:
        Start a local viewer process when the visualizer is created.
    :param keypoint_radius:
        Point radius for hand keypoints in pixels.
    :param matched_color:
        RGB color for keypoints and box when the hand matches the target pose.
    :param unmatched_color:
        RGB color for keypoints and box otherwise.
    :param background_color:
        Optional RGB background color for the Rerun 2D view.
    """

    application_id: str = "gesture-liveness"
    spawn: bool = True
    keypoint_radius: float = 4.0
    matched_color: tuple[int, int, int] = (64, 220, 96)
    unmatched_color: tuple[int, int, int] = (255, 64, 64)
    background_color: tuple[int, int, int] | None = (18, 22, 30)


class RerunVisualizer:
    """Visualizer that logs classification ticks and prompts to `rerun`.

    Needs the ``visualization`` extra (``rerun-sdk``).
    """

    def __init__(self, config: RerunVisualizerConfig | None = None) -> None:
        """Connect to Rerun and configure the 2D camera view.

        :param config:
            Visualizer configuration; defaults are used when omitted.
        :raises DependencyError:
            If ``rerun`` cannot be imported.
        """
        self._config = config or RerunVisualizerConfig()
        self._rr = import_optional("rerun", extra="visualization")
        self._last_instruction: str | None = None
        self._rr.init(self._config.application_id, spawn=self._config.spawn)
        self._apply_view_background()

    def log_classification(
        self,
        classification: PoseClassification,
        *,
        target_pose: PoseLabel | None = None,
    ) -> None:
        """Log keypoints and bounding box of one classified frame.

        :param classification:
            Classifier output for the frame.
        :param target_pose:
            Pose the sequence expects; selects matched or unmatched color.
        """
        if not classification.detected:
            self._rr.log("hand", self._rr.Clear(recursive=True))
            return

        matched = target_pose is not None and classification.pose_label == target_pose
        color = list(self._config.matched_color if matched else self._config.unmatched_color)
        points = [[x, y] for x, y, _ in classification.keypoints]
        self._rr.log(
            "hand/keypoints",
            self._rr.Points2D(
                points,
                radii=[self._config.keypoint_radius] * len(points),
                colors=[color] * len(points),
            ),
        )

        box = classification.bounding_box
        if box is None:
            return
        self._rr.log(
            "hand/box",
            self._rr.Boxes2D(
                mins=[[box.x, box.y]],
                sizes=[[box.width, box.height]],
                colors=[color],
                labels=[f"{classification.pose_name} ({classification.confidence:.1f})"],
            ),
        )

    def log_frame_result(self, result: FrameResult) -> None:
        """Log one :meth:`LivenessSession.process_frame` outcome."""
        self.log_classification(result.classification, target_pose=result.state.target_pose)

    def log_poll(self, poll: PollResult) -> None:
        """Log the prompt of one polling tick when it changes."""
        if poll.instruction == self._last_instruction:
            return
        self._last_instruction = poll.instruction
        self._rr.log("instructions", self._rr.TextLog(poll.instruction))

    def _apply_view_background(self) -> None:
        """Send a blueprint with the configured background, if supported."""
        if self._config.background_color is None:
            return

        if not hasattr(self._rr, "send_blueprint"):
            return

        try:
            blueprint_module = importlib.import_module("rerun.blueprint")
        except ModuleNotFoundError:
            return

        blueprint = blueprint_module.Blueprint(
            blueprint_module.Spatial2DView(
                origin="/",
                name="Camera",
                background=list(self._config.background_color),
            )
        )
        self._rr.send_blueprint(blueprint)
