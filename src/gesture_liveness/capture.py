"""Photo capture: OpenCV camera frames, JPEG encoding, and the capture coordinator."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from gesture_liveness._deps import import_optional
from gesture_liveness.exceptions import CaptureError, ConfigurationError
from gesture_liveness.sequence import Clock, monotonic_ms
from gesture_liveness.sources import FrameSource

JPEG_MIME_TYPE = "image/jpeg"
DEFAULT_JPEG_QUALITY = 95

FrameEncoder = Callable[[Any], bytes]
"""Callable turning one image frame into encoded bytes."""


@dataclass(frozen=True, slots=True)
class CapturedPhoto:
    """Encoded still photo taken at the end of the sequence."""

    data: bytes
    mime_type: str
    width: int
    height: int
    captured_at_ms: int


def encode_jpeg(frame: Any, *, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Encode one BGR image frame as JPEG.

    :param frame:
        ``H x W x 3`` image array in OpenCV channel order.
    :param quality:
        JPEG quality in range ``[0, 100]``.
    :returns:
        Encoded JPEG bytes.
    :raises DependencyError:
        If `opencv-python` is not installed.
    :raises CaptureError:
        If OpenCV fails to encode the frame.
    """
    cv2 = import_optional("cv2", extra="camera")
    ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise CaptureError("OpenCV failed to encode frame as JPEG.")
    return buffer.tobytes()


@dataclass(frozen=True, slots=True)
class OpenCVCameraConfig:
    """Configuration for :class:`OpenCVCamera`.

    :param device:
        Camera index passed to ``cv2.VideoCapture``.
    :param width:
        Optional requested frame width.
    :param height:
        Optional requested frame height.
    :param mirror:
        Whether frames are flipped horizontally, selfie style.
    """

    device: int = 0
    width: int | None = None
    height: int | None = None
    mirror: bool = False

    def __post_init__(self) -> None:
        if self.device < 0:
            raise ConfigurationError("device must be non-negative.")
        if self.width is not None and self.width <= 0:
            raise ConfigurationError("width must be greater than 0.")
        if self.height is not None and self.height <= 0:
            raise ConfigurationError("height must be greater than 0.")


class OpenCVCamera:
    """Frame source reading from a local camera through OpenCV.

    This component is optional and requires installing the camera extra.
    """

    def __init__(self, config: OpenCVCameraConfig | None = None) -> None:
        """Open the camera device.

        :raises DependencyError:
            If `opencv-python` is not installed.
        :raises CaptureError:
            If the device cannot be opened.
        """
        self._config = config or OpenCVCameraConfig()
        self._cv2 = import_optional("cv2", extra="camera")
        self._capture = self._cv2.VideoCapture(self._config.device)
        if not self._capture.isOpened():
            raise CaptureError(f"Unable to open camera device {self._config.device}.")
        if self._config.width is not None:
            self._capture.set(self._cv2.CAP_PROP_FRAME_WIDTH, self._config.width)
        if self._config.height is not None:
            self._capture.set(self._cv2.CAP_PROP_FRAME_HEIGHT, self._config.height)

    def read(self) -> Any | None:
        ok, frame = self._capture.read()
        if not ok:
            return None
        if self._config.mirror:
            return self._cv2.flip(frame, 1)
        return frame

    def release(self) -> None:
        self._capture.release()


class CaptureCoordinator:
    """Take one photo from a frame source and encode it."""

    def __init__(
        self,
        frame_source: FrameSource,
        encoder: FrameEncoder | None = None,
        *,
        mime_type: str = JPEG_MIME_TYPE,
        clock: Clock | None = None,
    ) -> None:
        """Create a capture coordinator.

        :param frame_source:
            Source of the frame to photograph.
        :param encoder:
            Optional frame encoder; defaults to :func:`encode_jpeg`.
        :param mime_type:
            MIME type of the encoder's output.
        :param clock:
            Optional monotonic millisecond clock stamping captured photos.
        """
        self._frame_source = frame_source
        self._encoder = encoder or encode_jpeg
        self._mime_type = mime_type
        self._clock = clock or monotonic_ms

    @property
    def frame_source(self) -> FrameSource:
        return self._frame_source

    def capture(self) -> CapturedPhoto:
        """Read one frame and encode it.

        :returns:
            Captured photo.
        :raises CaptureError:
            If no frame is available or encoding fails.
        """
        try:
            frame = self._frame_source.read()
        except Exception as exc:
            raise CaptureError("Frame source failed while capturing photo.") from exc
        if frame is None:
            raise CaptureError("Frame source returned no frame.")

        try:
            data = self._encoder(frame)
        except CaptureError:
            raise
        except Exception as exc:
            raise CaptureError("Failed to encode captured frame.") from exc

        height, width = _frame_size(frame)
        return CapturedPhoto(
            data=data,
            mime_type=self._mime_type,
            width=width,
            height=height,
            captured_at_ms=self._clock(),
        )


def _frame_size(frame: Any) -> tuple[int, int]:
    shape = getattr(frame, "shape", None)
    if shape is None or len(shape) < 2:
        return 0, 0
    return int(shape[0]), int(shape[1])
