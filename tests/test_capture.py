from __future__ import annotations

from types import ModuleType

import pytest

from gesture_liveness import (
    CaptureCoordinator,
    CaptureError,
    ConfigurationError,
    OpenCVCamera,
    OpenCVCameraConfig,
    encode_jpeg,
)


class FakeFrame:
    def __init__(self, height: int = 480, width: int = 640) -> None:
        self.shape = (height, width, 3)


class FakeFrameSource:
    def __init__(self, frames: list[FakeFrame | None]) -> None:
        self._frames = frames
        self.released = False

    def read(self) -> FakeFrame | None:
        return self._frames.pop(0) if self._frames else None

    def release(self) -> None:
        self.released = True


class _FakeBuffer:
    def __init__(self, data: bytes) -> None:
        self._data = data

    def tobytes(self) -> bytes:
        return self._data


class _FakeVideoCapture:
    def __init__(self, device: int, *, opened: bool = True) -> None:
        self.device = device
        self.opened = opened
        self.settings: dict[int, int] = {}
        self.released = False

    def isOpened(self) -> bool:  # noqa: N802
        return self.opened

    def set(self, prop: int, value: int) -> bool:
        self.settings[prop] = value
        return True

    def read(self) -> tuple[bool, FakeFrame | None]:
        return True, FakeFrame()

    def release(self) -> None:
        self.released = True


class _FakeCv2(ModuleType):
    IMWRITE_JPEG_QUALITY = 1
    CAP_PROP_FRAME_WIDTH = 3
    CAP_PROP_FRAME_HEIGHT = 4

    def __init__(self, *, encode_ok: bool = True, opened: bool = True) -> None:
        super().__init__("cv2")
        self.encode_ok = encode_ok
        self.opened = opened
        self.encode_calls: list[tuple[str, list[int]]] = []
        self.flips: list[int] = []
        self.captures: list[_FakeVideoCapture] = []

    def imencode(self, ext: str, frame: object, params: list[int]) -> tuple[bool, _FakeBuffer]:
        self.encode_calls.append((ext, params))
        return self.encode_ok, _FakeBuffer(b"\xff\xd8jpeg")

    def VideoCapture(self, device: int) -> _FakeVideoCapture:  # noqa: N802
        capture = _FakeVideoCapture(device, opened=self.opened)
        self.captures.append(capture)
        return capture

    def flip(self, frame: FakeFrame, code: int) -> FakeFrame:
        self.flips.append(code)
        return frame


def _install_cv2(monkeypatch: pytest.MonkeyPatch, cv2: _FakeCv2) -> None:
    def _import(module_name: str) -> ModuleType:
        if module_name == "cv2":
            return cv2
        raise ModuleNotFoundError(module_name)

    monkeypatch.setattr("importlib.import_module", _import)


def test_coordinator_encodes_one_frame() -> None:
    source = FakeFrameSource([FakeFrame(height=720, width=1280)])
    coordinator = CaptureCoordinator(source, encoder=lambda _: b"img", clock=lambda: 1_234)

    photo = coordinator.capture()

    assert photo.data == b"img"
    assert photo.mime_type == "image/jpeg"
    assert (photo.width, photo.height) == (1280, 720)
    assert photo.captured_at_ms == 1_234


def test_coordinator_raises_capture_error_without_frame() -> None:
    coordinator = CaptureCoordinator(FakeFrameSource([None]), encoder=lambda _: b"img")

    with pytest.raises(CaptureError, match="no frame"):
        coordinator.capture()


def test_coordinator_wraps_encoder_and_source_failures() -> None:
    def _bad_encoder(_: object) -> bytes:
        raise ValueError("codec")

    class _BrokenSource(FakeFrameSource):
        def read(self) -> FakeFrame | None:
            raise OSError("device lost")

    with pytest.raises(CaptureError) as encode_info:
        CaptureCoordinator(FakeFrameSource([FakeFrame()]), encoder=_bad_encoder).capture()
    assert isinstance(encode_info.value.__cause__, ValueError)

    with pytest.raises(CaptureError) as read_info:
        CaptureCoordinator(_BrokenSource([]), encoder=lambda _: b"").capture()
    assert isinstance(read_info.value.__cause__, OSError)


def test_encode_jpeg_uses_quality_95(monkeypatch: pytest.MonkeyPatch) -> None:
    cv2 = _FakeCv2()
    _install_cv2(monkeypatch, cv2)

    data = encode_jpeg(FakeFrame())

    assert data == b"\xff\xd8jpeg"
    assert cv2.encode_calls == [(".jpg", [_FakeCv2.IMWRITE_JPEG_QUALITY, 95])]


def test_encode_jpeg_failure_raises_capture_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_cv2(monkeypatch, _FakeCv2(encode_ok=False))

    with pytest.raises(CaptureError):
        encode_jpeg(FakeFrame())


def test_opencv_camera_reads_and_releases(monkeypatch: pytest.MonkeyPatch) -> None:
    cv2 = _FakeCv2()
    _install_cv2(monkeypatch, cv2)

    camera = OpenCVCamera(OpenCVCameraConfig(device=1, width=1280, mirror=True))
    frame = camera.read()
    camera.release()

    capture = cv2.captures[0]
    assert isinstance(frame, FakeFrame)
    assert capture.device == 1
    assert capture.settings == {_FakeCv2.CAP_PROP_FRAME_WIDTH: 1280}
    assert cv2.flips == [1]
    assert capture.released is True


def test_opencv_camera_open_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_cv2(monkeypatch, _FakeCv2(opened=False))

    with pytest.raises(CaptureError, match="Unable to open camera"):
        OpenCVCamera()


def test_camera_config_validation() -> None:
    with pytest.raises(ConfigurationError):
        OpenCVCameraConfig(device=-1)

    with pytest.raises(ConfigurationError):
        OpenCVCameraConfig(height=0)
