from __future__ import annotations

import json
from pathlib import Path
from types import ModuleType, SimpleNamespace

import pytest

from gesture_liveness import (
    DependencyError,
    FingerName,
    LandmarkError,
    MediaPipeLandmarkSource,
    MediaPipeSourceConfig,
    RecordedFrame,
    RecordedLandmarkSource,
    load_recording,
    write_recording,
)
from gesture_liveness.exceptions import ConfigurationError


def test_recording_round_trip(tmp_path: Path, make_hand) -> None:
    frames = [
        RecordedFrame(timestamp_ms=0),
        RecordedFrame(timestamp_ms=100, hands=(make_hand([FingerName.INDEX]),)),
    ]
    path = tmp_path / "runs" / "session.jsonl"

    written = write_recording(path, frames)

    assert written == 2
    assert load_recording(path) == frames
    first_line = json.loads(path.read_text(encoding="utf-8").splitlines()[0])
    assert first_line == {"timestamp_ms": 0, "hands": []}


def test_load_recording_skips_blank_lines(tmp_path: Path) -> None:
    path = tmp_path / "rec.jsonl"
    path.write_text('{"timestamp_ms": 5, "hands": []}\n\n', encoding="utf-8")

    assert load_recording(path) == [RecordedFrame(timestamp_ms=5)]


@pytest.mark.parametrize(
    ("line", "match"),
    [
        ("not json", "Line 1 is not valid JSON"),
        ("[1, 2]", "Line 1 must hold a JSON object"),
        ('{"hands": []}', "timestamp_ms"),
        ('{"timestamp_ms": 1, "hands": [{"points": [[0, 0]]}]}', "21 points"),
        ('{"timestamp_ms": 1, "hands": {}}', "must be a list"),
    ],
)
def test_load_recording_rejects_malformed_lines(tmp_path: Path, line: str, match: str) -> None:
    path = tmp_path / "bad.jsonl"
    path.write_text(line + "\n", encoding="utf-8")

    with pytest.raises(LandmarkError, match=match):
        load_recording(path)


def test_recorded_source_replays_frame_hands(make_hand) -> None:
    hand = make_hand([FingerName.INDEX])
    source = RecordedLandmarkSource()

    assert source.estimate_hands(RecordedFrame(timestamp_ms=1, hands=(hand,))) == (hand,)
    with pytest.raises(LandmarkError):
        source.estimate_hands(object())

    source.close()
    assert source.closed is True


class _FakeImage:
    shape = (480, 640, 3)


class _FakeHands:
    def __init__(self, **kwargs: object) -> None:
        self.kwargs = kwargs
        self.processed: list[object] = []
        self.closed = False
        self.result = SimpleNamespace(multi_hand_landmarks=None)

    def process(self, image: object) -> SimpleNamespace:
        self.processed.append(image)
        return self.result

    def close(self) -> None:
        self.closed = True


class _FakeMediaPipe(ModuleType):
    def __init__(self) -> None:
        super().__init__("mediapipe")
        self.instances: list[_FakeHands] = []

        def _make_hands(**kwargs: object) -> _FakeHands:
            hands = _FakeHands(**kwargs)
            self.instances.append(hands)
            return hands

        self.solutions = SimpleNamespace(hands=SimpleNamespace(Hands=_make_hands))


class _FakeCv2(ModuleType):
    COLOR_BGR2RGB = 4

    def __init__(self) -> None:
        super().__init__("cv2")
        self.conversions: list[int] = []

    def cvtColor(self, frame: object, code: int) -> object:  # noqa: N802
        self.conversions.append(code)
        return frame


def _install_fakes(monkeypatch: pytest.MonkeyPatch) -> tuple[_FakeMediaPipe, _FakeCv2]:
    mediapipe = _FakeMediaPipe()
    cv2 = _FakeCv2()

    def _import(module_name: str) -> ModuleType:
        if module_name == "mediapipe":
            return mediapipe
        if module_name == "cv2":
            return cv2
        raise ModuleNotFoundError(module_name)

    monkeypatch.setattr("importlib.import_module", _import)
    return mediapipe, cv2


def test_mediapipe_source_requires_optional_dependency(monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise_module_not_found(_: str) -> ModuleType:
        raise ModuleNotFoundError("mediapipe")

    monkeypatch.setattr("importlib.import_module", _raise_module_not_found)

    with pytest.raises(DependencyError, match="gesture-liveness\\[camera\\]"):
        MediaPipeLandmarkSource()


def test_mediapipe_source_scales_landmarks_to_pixels(monkeypatch: pytest.MonkeyPatch) -> None:
    mediapipe, cv2 = _install_fakes(monkeypatch)
    source = MediaPipeLandmarkSource(MediaPipeSourceConfig(max_num_hands=2))
    hands = mediapipe.instances[0]
    landmarks = [SimpleNamespace(x=i / 100.0, y=0.5, z=-0.01) for i in range(21)]
    hands.result = SimpleNamespace(
        multi_hand_landmarks=[SimpleNamespace(landmark=landmarks)]
    )

    skeletons = source.estimate_hands(_FakeImage())

    assert hands.kwargs["max_num_hands"] == 2
    assert cv2.conversions == [_FakeCv2.COLOR_BGR2RGB]
    assert len(skeletons) == 1
    assert skeletons[0].points[10] == pytest.approx((64.0, 240.0, -6.4))

    source.close()
    assert hands.closed is True


def test_mediapipe_source_reports_no_hands(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fakes(monkeypatch)
    source = MediaPipeLandmarkSource(MediaPipeSourceConfig(input_is_bgr=False))

    assert source.estimate_hands(_FakeImage()) == []


def test_mediapipe_config_validation() -> None:
    with pytest.raises(ConfigurationError):
        MediaPipeSourceConfig(max_num_hands=0)

    with pytest.raises(ConfigurationError):
        MediaPipeSourceConfig(model_complexity=2)

    with pytest.raises(ConfigurationError):
        MediaPipeSourceConfig(min_detection_confidence=1.5)
