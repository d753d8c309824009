"""Liveness session owning the landmark model, sequence, and photo capture."""

from __future__ import annotations

import asyncio
import dataclasses
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from gesture_liveness.capture import CaptureCoordinator, CapturedPhoto
from gesture_liveness.classifier import ClassifierConfig, PoseClassifier
from gesture_liveness.events import LivenessLogEvent, LogEventKind, LogHook, emit
from gesture_liveness.exceptions import (
    ConfigurationError,
    ModelInitializationError,
    SessionClosedError,
    SessionError,
    SessionTimeoutError,
)
from gesture_liveness.models import PoseClassification
from gesture_liveness.sequence import (
    Clock,
    CountdownState,
    SequenceConfig,
    SequenceState,
    SequenceStateMachine,
    UpdateResult,
    monotonic_ms,
)
from gesture_liveness.sources import LandmarkSource

LandmarkSourceFactory = Callable[[], LandmarkSource]
"""Factory building the landmark model when a session opens."""


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Configuration for :class:`LivenessSession`.

    :param classify_interval_s:
        Period of the classification loop in :meth:`LivenessSession.run`.
    :param poll_interval_s:
        Period of the UI polling loop in :meth:`LivenessSession.run`.
    :param capture_delay_s:
        Pause between the capture request and taking the photo.
    :param classifier:
        Pose classifier settings.
    :param sequence:
        Sequence timing settings.
    :param log_hook:
        Optional structured log callback. Also used by the classifier and the
        sequence when their own configs leave ``log_hook`` unset.
    """

    classify_interval_s: float = 0.1
    poll_interval_s: float = 0.05
    capture_delay_s: float = 0.2
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    sequence: SequenceConfig = field(default_factory=SequenceConfig)
    log_hook: LogHook | None = None

    def __post_init__(self) -> None:
        """Validate configuration constraints.

        :raises ConfigurationError:
            If one or more fields are invalid.
        """
        if self.classify_interval_s <= 0:
            raise ConfigurationError("classify_interval_s must be greater than 0.")
        if self.poll_interval_s <= 0:
            raise ConfigurationError("poll_interval_s must be greater than 0.")
        if self.capture_delay_s < 0:
            raise ConfigurationError("capture_delay_s must be non-negative.")


@dataclass(frozen=True, slots=True)
class SessionStats:
    """Observable counters for :class:`LivenessSession` runtime behavior."""

    frames_processed: int = 0
    hands_detected: int = 0
    detection_errors: int = 0
    poses_advanced: int = 0
    capture_requests: int = 0
    photos_captured: int = 0
    retakes: int = 0


@dataclass(frozen=True, slots=True)
class FrameResult:
    """Outcome of one classification tick."""

    classification: PoseClassification
    update: UpdateResult
    state: SequenceState


@dataclass(frozen=True, slots=True)
class PollResult:
    """Everything the host UI renders on one polling tick."""

    instruction: str
    countdown: CountdownState
    state: SequenceState
    capture_requested: bool


class LivenessSession:
    """Explicitly owned liveness flow for one capture dialog.

    The session is opened when the dialog opens and closed when it ends. Hosts
    either drive it tick by tick with :meth:`process_frame` and :meth:`poll`, or
    let :meth:`run` do both on the current event loop, with frame work in a
    worker thread.
    """

    def __init__(
        self,
        landmark_source_factory: LandmarkSourceFactory,
        capture: CaptureCoordinator,
        config: SessionConfig | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        """Create a closed session.

        :param landmark_source_factory:
            Builds the landmark model on :meth:`open`.
        :param capture:
            Coordinator whose frame source feeds both classification and capture.
        :param config:
            Optional session configuration.
        :param clock:
            Optional monotonic millisecond clock shared with the sequence.
        """
        self._config = config or SessionConfig()
        self._landmark_source_factory = landmark_source_factory
        self._capture = capture
        self._clock = clock or monotonic_ms
        self._classifier = PoseClassifier(self._with_hook(self._config.classifier))
        self._sequence = SequenceStateMachine(
            self._with_hook(self._config.sequence),
            clock=self._clock,
        )
        self._lock = threading.Lock()
        # Serializes camera reads, model inference, capture and release across threads.
        self._device_lock = threading.Lock()
        self._landmark_source: LandmarkSource | None = None
        self._model_failed = False
        self._open = False
        self._closed = False
        self._capture_requested = False
        self._capturing = False
        self._photo: CapturedPhoto | None = None
        self._tasks: tuple[asyncio.Task[None], ...] = ()
        self._stats = SessionStats()

    def __enter__(self) -> LivenessSession:
        self.open()
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def model_failed(self) -> bool:
        return self._model_failed

    @property
    def capture_requested(self) -> bool:
        with self._lock:
            return self._capture_requested

    @property
    def photo(self) -> CapturedPhoto | None:
        with self._lock:
            return self._photo

    @property
    def classifier(self) -> PoseClassifier:
        return self._classifier

    @property
    def sequence(self) -> SequenceStateMachine:
        return self._sequence

    def open(self) -> None:
        """Build the landmark model and start the sequence at step 1.

        :raises SessionClosedError:
            If the session was already closed.
        :raises ModelInitializationError:
            If the landmark source cannot be built. The failure is not retried;
            later calls raise again without invoking the factory.
        """
        if self._closed:
            raise SessionClosedError("Session has been closed.")
        if self._open:
            return
        if self._model_failed:
            raise ModelInitializationError("Landmark model failed to initialize earlier.")

        try:
            source = self._landmark_source_factory()
        except Exception as exc:
            self._model_failed = True
            raise ModelInitializationError("Failed to initialize landmark model.") from exc

        self._landmark_source = source
        self._sequence.start_sequence()
        self._sequence.set_capture_callback(self._request_capture)
        self._open = True
        self._emit_log(
            LivenessLogEvent(
                kind=LogEventKind.SESSION_OPENED,
                message="Liveness session opened.",
                step=int(self._sequence.get_pose_state().current_step),
            )
        )

    def process_frame(self, frame: Any, now_ms: int | None = None) -> FrameResult:
        """Run one classification tick on ``frame``.

        Landmark model failures count as a frame without a hand.

        :raises SessionClosedError:
            If the session is not open.
        """
        source = self._require_open()
        state = self._sequence.get_pose_state()

        try:
            hands = source.estimate_hands(frame)
        except Exception as exc:
            self._increment("detection_errors")
            self._emit_log(
                LivenessLogEvent(
                    kind=LogEventKind.DETECTION_ERROR,
                    message="Landmark model failed on frame.",
                    step=int(state.current_step),
                    exception=exc,
                )
            )
            hands = ()

        classification = self._classifier.classify_hands(hands, target_pose=state.target_pose)
        update = self._sequence.update(
            classification.pose_label,
            classification.confidence,
            now_ms,
        )

        counters = ["frames_processed"]
        if classification.detected:
            counters.append("hands_detected")
        if update.is_stable:
            counters.append("poses_advanced")
        self._increment(*counters)

        return FrameResult(
            classification=classification,
            update=update,
            state=self._sequence.get_pose_state(),
        )

    def poll(self, now_ms: int | None = None) -> PollResult:
        """Run one UI tick: recompute the countdown and drain the capture signal.

        :raises SessionClosedError:
            If the session is not open.
        """
        self._require_open()
        countdown = self._sequence.get_countdown_state(now_ms)
        instruction = self._sequence.get_current_pose_instruction(now_ms)
        if self._sequence.capture_signal.consume() is not None:
            self._request_capture()

        return PollResult(
            instruction=instruction,
            countdown=countdown,
            state=self._sequence.get_pose_state(),
            capture_requested=self.capture_requested,
        )

    def capture_photo(self) -> CapturedPhoto:
        """Take the run's photo, or return it if it was already taken.

        :raises SessionClosedError:
            If the session was closed.
        :raises SessionError:
            If another capture is in progress.
        :raises CaptureError:
            If the frame cannot be read or encoded.
        """
        if self._closed:
            raise SessionClosedError("Session has been closed.")

        with self._lock:
            if self._photo is not None:
                return self._photo
            if self._capturing:
                raise SessionError("A capture is already in progress.")
            self._capturing = True

        try:
            with self._device_lock:
                photo = self._capture.capture()
        finally:
            with self._lock:
                self._capturing = False

        with self._lock:
            self._photo = photo
        self._increment("photos_captured")
        self._emit_log(
            LivenessLogEvent(
                kind=LogEventKind.PHOTO_CAPTURED,
                message=f"Captured {photo.width}x{photo.height} photo.",
                step=int(self._sequence.get_pose_state().current_step),
            )
        )
        return photo

    def capture_now(self) -> CapturedPhoto:
        """Take a photo without the gesture sequence.

        Intended for hosts falling back to manual capture, for example after
        :class:`ModelInitializationError`.
        """
        self._request_capture()
        return self.capture_photo()

    async def run(self, timeout_s: float | None = None) -> CapturedPhoto:
        """Drive classification and polling until the capture fires, then take the photo.

        Camera reads and landmark inference run in a worker thread so the polling
        loop keeps its period; log hooks may therefore be called from that thread.

        :param timeout_s:
            Optional limit on the whole run, excluding the capture delay.
        :returns:
            Captured photo.
        :raises SessionClosedError:
            If the session is not open.
        :raises SessionTimeoutError:
            If no capture was requested within ``timeout_s``.
        :raises CaptureError:
            If taking the photo fails.
        """
        self._require_open()
        existing = self.photo
        if existing is not None:
            return existing

        tasks = (
            asyncio.create_task(self._classify_loop()),
            asyncio.create_task(self._poll_loop()),
        )
        self._tasks = tasks
        try:
            done, _ = await asyncio.wait(
                tasks,
                timeout=timeout_s,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self._tasks = ()

        if not done:
            raise SessionTimeoutError(f"No capture within {timeout_s} seconds.")
        for task in done:
            if task.cancelled():
                raise SessionClosedError("Session was closed during run.")
            exc = task.exception()
            if exc is not None:
                raise exc

        await asyncio.sleep(self._config.capture_delay_s)
        return self.capture_photo()

    def retake(self) -> None:
        """Discard the photo and restart the sequence at step 1.

        :raises SessionClosedError:
            If the session is not open.
        """
        self._require_open()
        with self._lock:
            self._photo = None
            self._capturing = False
            self._capture_requested = False
        self._sequence.start_sequence()
        self._increment("retakes")

    def close(self) -> None:
        """Release the camera and model, and reset the sequence. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._open = False

        for task in self._tasks:
            task.cancel()
        self._tasks = ()

        try:
            with self._device_lock:
                source = self._landmark_source
                self._landmark_source = None
                try:
                    self._capture.frame_source.release()
                finally:
                    close = getattr(source, "close", None)
                    if callable(close):
                        close()
        finally:
            self._sequence.clear_capture_callback()
            self._sequence.reset_sequence()
            self._emit_log(
                LivenessLogEvent(kind=LogEventKind.SESSION_CLOSED, message="Liveness session closed.")
            )

    def get_stats(self) -> SessionStats:
        """Return a snapshot of current session counters."""
        return self._stats

    def reset_stats(self) -> None:
        """Reset session counters to zero values."""
        with self._lock:
            self._stats = SessionStats()

    async def _classify_loop(self) -> None:
        while not self.capture_requested:
            await asyncio.to_thread(self._classify_next_frame)
            if self.capture_requested:
                return
            await asyncio.sleep(self._config.classify_interval_s)

    async def _poll_loop(self) -> None:
        while not self.capture_requested:
            self.poll()
            if self.capture_requested:
                return
            await asyncio.sleep(self._config.poll_interval_s)

    def _classify_next_frame(self) -> None:
        with self._device_lock:
            if not self._open or self.capture_requested:
                return
            frame = self._capture.frame_source.read()
            if frame is not None:
                self.process_frame(frame)

    def _request_capture(self) -> None:
        with self._lock:
            if self._capture_requested:
                return
            self._capture_requested = True
            self._stats = self._stats_with(capture_requests=self._stats.capture_requests + 1)

    def _require_open(self) -> LandmarkSource:
        source = self._landmark_source
        if not self._open or source is None:
            raise SessionClosedError("Session is not open.")
        return source

    def _with_hook(self, config: Any) -> Any:
        if config.log_hook is None and self._config.log_hook is not None:
            return dataclasses.replace(config, log_hook=self._config.log_hook)
        return config

    def _increment(self, *counters: str) -> None:
        with self._lock:
            self._stats = self._stats_with(
                **{name: getattr(self._stats, name) + 1 for name in counters}
            )

    def _stats_with(self, **changes: int) -> SessionStats:
        """Return updated stats snapshot with selected counter changes."""
        return SessionStats(
            frames_processed=changes.get("frames_processed", self._stats.frames_processed),
            hands_detected=changes.get("hands_detected", self._stats.hands_detected),
            detection_errors=changes.get("detection_errors", self._stats.detection_errors),
            poses_advanced=changes.get("poses_advanced", self._stats.poses_advanced),
            capture_requests=changes.get("capture_requests", self._stats.capture_requests),
            photos_captured=changes.get("photos_captured", self._stats.photos_captured),
            retakes=changes.get("retakes", self._stats.retakes),
        )

    def _emit_log(self, event: LivenessLogEvent) -> None:
        emit(self._config.log_hook, event)
