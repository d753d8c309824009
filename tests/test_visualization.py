from __future__ import annotations

from types import ModuleType

import pytest

from gesture_liveness import (
    CountdownState,
    DependencyError,
    PollResult,
    PoseClassification,
    PoseClassifier,
    PoseLabel,
    RerunVisualizer,
    RerunVisualizerConfig,
    SequenceStateMachine,
)


class _FakeRerun(ModuleType):
    def __init__(self) -> None:
        super().__init__("rerun")
        self.inits: list[tuple[str, bool]] = []
        self.logs: list[tuple[str, object]] = []
        self.blueprints: list[object] = []

    def init(self, application_id: str, *, spawn: bool) -> None:
        self.inits.append((application_id, spawn))

    def log(self, path: str, payload: object) -> None:
        self.logs.append((path, payload))

    def send_blueprint(self, blueprint: object) -> None:
        self.blueprints.append(blueprint)

    class Points2D:
        def __init__(
            self,
            points: list[list[float]],
            *,
            radii: list[float] | None = None,
            colors: list[list[int]] | None = None,
        ) -> None:
            self.points = points
            self.radii = radii
            self.colors = colors

    class Boxes2D:
        def __init__(
            self,
            *,
            mins: list[list[float]],
            sizes: list[list[float]],
            colors: list[list[int]],
            labels: list[str],
        ) -> None:
            self.mins = mins
            self.sizes = sizes
            self.colors = colors
            self.labels = labels

    class TextLog:
        def __init__(self, text: str) -> None:
            self.text = text

    class Clear:
        def __init__(self, *, recursive: bool) -> None:
            self.recursive = recursive


class _FakeBlueprint(ModuleType):
    class Spatial2DView:
        def __init__(self, *, origin: str, name: str, background: list[int]) -> None:
            self.origin = origin
            self.name = name
            self.background = background

    class Blueprint:
        def __init__(self, view: object) -> None:
            self.view = view


def _install_fakes(monkeypatch: pytest.MonkeyPatch) -> _FakeRerun:
    fake = _FakeRerun()
    fake_blueprint = _FakeBlueprint("rerun.blueprint")

    def _import(module_name: str) -> ModuleType:
        if module_name == "rerun":
            return fake
        if module_name == "rerun.blueprint":
            return fake_blueprint
        raise ModuleNotFoundError(module_name)

    monkeypatch.setattr("importlib.import_module", _import)
    return fake


def _poll(instruction: str) -> PollResult:
    return PollResult(
        instruction=instruction,
        countdown=CountdownState(is_counting_down=False, countdown_value=3, should_capture=False),
        state=SequenceStateMachine().get_pose_state(),
        capture_requested=False,
    )


def test_rerun_visualizer_requires_optional_dependency(monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise_module_not_found(_: str) -> ModuleType:
        raise ModuleNotFoundError("rerun")

    monkeypatch.setattr("importlib.import_module", _raise_module_not_found)

    with pytest.raises(DependencyError, match="visualization"):
        RerunVisualizer()


def test_visualizer_logs_keypoints_and_box(monkeypatch: pytest.MonkeyPatch, pose_hand) -> None:
    fake = _install_fakes(monkeypatch)
    visualizer = RerunVisualizer(RerunVisualizerConfig(application_id="liveness-test", spawn=False))
    classification = PoseClassifier().classify(pose_hand(PoseLabel.ONE))

    visualizer.log_classification(classification, target_pose=PoseLabel.ONE)

    assert fake.inits == [("liveness-test", False)]
    assert len(fake.blueprints) == 1
    keypoints = next(payload for path, payload in fake.logs if path == "hand/keypoints")
    box = next(payload for path, payload in fake.logs if path == "hand/box")
    assert isinstance(keypoints, _FakeRerun.Points2D)
    assert len(keypoints.points) == 21
    assert keypoints.colors == [[64, 220, 96]] * 21
    assert isinstance(box, _FakeRerun.Boxes2D)
    assert box.mins == [[248.0, 215.0]]
    assert box.labels == ["one_finger (10.0)"]


def test_mismatched_pose_uses_unmatched_color(monkeypatch: pytest.MonkeyPatch, pose_hand) -> None:
    fake = _install_fakes(monkeypatch)
    visualizer = RerunVisualizer(RerunVisualizerConfig(spawn=False, background_color=None))
    classification = PoseClassifier().classify(pose_hand(PoseLabel.TWO))

    visualizer.log_classification(classification, target_pose=PoseLabel.ONE)

    assert fake.blueprints == []
    keypoints = next(payload for path, payload in fake.logs if path == "hand/keypoints")
    assert isinstance(keypoints, _FakeRerun.Points2D)
    assert keypoints.colors is not None
    assert keypoints.colors[0] == [255, 64, 64]


def test_missing_hand_clears_entities(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _install_fakes(monkeypatch)
    visualizer = RerunVisualizer(RerunVisualizerConfig(spawn=False))

    visualizer.log_classification(PoseClassification.no_hand())

    path, payload = fake.logs[-1]
    assert path == "hand"
    assert isinstance(payload, _FakeRerun.Clear)


def test_instructions_are_logged_on_change(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _install_fakes(monkeypatch)
    visualizer = RerunVisualizer(RerunVisualizerConfig(spawn=False))

    visualizer.log_poll(_poll("Lift your hand to start"))
    visualizer.log_poll(_poll("Lift your hand to start"))
    visualizer.log_poll(_poll("Get ready! 3..."))

    texts = [payload.text for path, payload in fake.logs if path == "instructions"]  # type: ignore[attr-defined]
    assert texts == ["Lift your hand to start", "Get ready! 3..."]
