"""Three-pose hold sequence with countdown and exactly-once capture trigger."""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum

from gesture_liveness.events import LivenessLogEvent, LogEventKind, LogHook, emit
from gesture_liveness.exceptions import CaptureCallbackError, ConfigurationError
from gesture_liveness.models import PoseLabel

Clock = Callable[[], int]
"""Monotonic clock returning milliseconds."""

CaptureCallback = Callable[[], None]
"""Host callback invoked once when the capture fires."""

_INSTRUCTIONS: dict[int, str] = {
    0: "Lift your hand to start",
    1: "Show 1 finger (index finger up) - hold for 3 seconds",
    2: "Show 2 fingers (peace sign) - hold for 3 seconds",
    3: "Show 3 fingers - hold for 3 seconds",
    5: "Photo captured!",
}
_COUNTDOWN_PENDING_INSTRUCTION = "Get ready for photo!"


def monotonic_ms() -> int:
    """Return the default monotonic clock reading in milliseconds."""
    return time.monotonic_ns() // 1_000_000


class SequenceStep(IntEnum):
    """Position of the liveness sequence."""

    IDLE = 0
    POSE_ONE = 1
    POSE_TWO = 2
    POSE_THREE = 3
    COUNTDOWN = 4
    CAPTURED = 5


@dataclass(frozen=True, slots=True)
class SequenceConfig:
    """Timing and acceptance settings for :class:`SequenceStateMachine`.

    :param stability_hold_ms:
        Time a pose must be held continuously before the sequence advances.
    :param confidence_threshold:
        Minimum classification confidence for a tick to count as correct.
    :param countdown_step_ms:
        Duration of one countdown number.
    :param countdown_from:
        First countdown value shown after the last pose is held.
    :param log_hook:
        Optional structured log callback.
    """

    stability_hold_ms: int = 3000
    confidence_threshold: float = 2.0
    countdown_step_ms: int = 1000
    countdown_from: int = 3
    log_hook: LogHook | None = None

    def __post_init__(self) -> None:
        """Validate configuration constraints.

        :raises ConfigurationError:
            If one or more fields are invalid.
        """
        if self.stability_hold_ms < 0:
            raise ConfigurationError("stability_hold_ms must be non-negative.")
        if not math.isfinite(self.confidence_threshold) or self.confidence_threshold < 0:
            raise ConfigurationError("confidence_threshold must be finite and non-negative.")
        if self.countdown_step_ms <= 0:
            raise ConfigurationError("countdown_step_ms must be greater than 0.")
        if self.countdown_from < 1:
            raise ConfigurationError("countdown_from must be at least 1.")


@dataclass(frozen=True, slots=True)
class SequenceState:
    """Read-only snapshot of sequence progress."""

    current_step: SequenceStep
    target_pose: PoseLabel
    stable_since_ms: int | None
    counting_down: bool
    countdown_start_ms: int | None
    countdown_value: int
    capture_fired: bool


@dataclass(frozen=True, slots=True)
class UpdateResult:
    """Outcome of one classification tick.

    :param is_stable:
        ``True`` on the tick that completed a pose hold and advanced the sequence.
    :param stable_time_ms:
        How long the current target pose has been held.
    :param should_capture:
        ``True`` on the single tick that fired the capture.
    """

    is_stable: bool
    stable_time_ms: int
    should_capture: bool


@dataclass(frozen=True, slots=True)
class CountdownState:
    """Countdown view for the host UI."""

    is_counting_down: bool
    countdown_value: int
    should_capture: bool


class CaptureSignal:
    """Single-slot channel carrying the capture fire timestamp.

    The slot is filled at most once per sequence run and drained by :meth:`consume`.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._published = False
        self._pending_ms: int | None = None

    @property
    def is_pending(self) -> bool:
        with self._lock:
            return self._pending_ms is not None

    def publish(self, timestamp_ms: int) -> bool:
        """Fill the slot unless it was already filled during this run.

        :returns:
            ``True`` if the signal was published by this call.
        """
        with self._lock:
            if self._published:
                return False
            self._published = True
            self._pending_ms = timestamp_ms
            return True

    def consume(self) -> int | None:
        """Drain the slot, returning the fire timestamp once and ``None`` afterwards."""
        with self._lock:
            timestamp_ms = self._pending_ms
            self._pending_ms = None
            return timestamp_ms

    def clear(self) -> None:
        """Re-arm the channel for a new run."""
        with self._lock:
            self._published = False
            self._pending_ms = None


class SequenceStateMachine:
    """Track pose holds through steps 1 to 3, then count down and fire capture once.

    All public methods are thread-safe. Detection input never raises; the only
    error surfaced is a failing host capture callback.
    """

    def __init__(
        self,
        config: SequenceConfig | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        """Create an idle state machine.

        :param config:
            Optional timing settings; defaults to :class:`SequenceConfig`.
        :param clock:
            Optional monotonic millisecond clock used when ``now_ms`` is omitted.
        """
        self._config = config or SequenceConfig()
        self._clock = clock or monotonic_ms
        self._lock = threading.Lock()
        self._capture_signal = CaptureSignal()
        self._capture_callback: CaptureCallback | None = None
        self._reset_locked(SequenceStep.IDLE)

    @property
    def config(self) -> SequenceConfig:
        return self._config

    @property
    def capture_signal(self) -> CaptureSignal:
        return self._capture_signal

    def start_sequence(self) -> None:
        """Begin a fresh attempt at step 1 with all timers and latches cleared."""
        with self._lock:
            self._reset_locked(SequenceStep.POSE_ONE)
        self._capture_signal.clear()

    def reset_sequence(self) -> None:
        """Return to the idle step."""
        with self._lock:
            self._reset_locked(SequenceStep.IDLE)
        self._capture_signal.clear()

    def set_capture_callback(self, callback: CaptureCallback) -> None:
        with self._lock:
            self._capture_callback = callback

    def clear_capture_callback(self) -> None:
        with self._lock:
            self._capture_callback = None

    def update(
        self,
        pose_label: PoseLabel | int,
        confidence: float,
        now_ms: int | None = None,
    ) -> UpdateResult:
        """Feed one classification result into the sequence.

        During steps 1 to 3 a tick is correct when ``pose_label`` equals the target
        pose and ``confidence`` reaches the configured threshold. Any other tick
        restarts the hold. During the countdown the tick recomputes the countdown
        and may fire the capture.

        :param pose_label:
            Detected pose for this frame.
        :param confidence:
            Confidence reported with the pose.
        :param now_ms:
            Tick time in milliseconds; defaults to the configured clock.
        :returns:
            Hold progress and capture outcome for this tick.
        :raises CaptureCallbackError:
            If this tick fired the capture and the host callback raised.
        """
        now = self._clock() if now_ms is None else now_ms
        events: list[LivenessLogEvent] = []
        with self._lock:
            if self._step in (SequenceStep.COUNTDOWN, SequenceStep.CAPTURED):
                countdown = self._recompute_countdown_locked(now, events)
                result = UpdateResult(
                    is_stable=False,
                    stable_time_ms=0,
                    should_capture=countdown.should_capture,
                )
                callback = self._capture_callback if countdown.should_capture else None
            elif self._step is SequenceStep.IDLE:
                result = UpdateResult(is_stable=False, stable_time_ms=0, should_capture=False)
                callback = None
            else:
                result = self._track_pose_locked(pose_label, confidence, now, events)
                callback = None

        self._emit_all(events)
        if result.should_capture:
            self._run_capture_callback(callback)
        return result

    def get_countdown_state(self, now_ms: int | None = None) -> CountdownState:
        """Recompute the countdown, firing the capture if it has run out.

        Calling this repeatedly is safe: the capture fires on exactly one call
        across this method and :meth:`update`.

        :raises CaptureCallbackError:
            If this call fired the capture and the host callback raised.
        """
        now = self._clock() if now_ms is None else now_ms
        events: list[LivenessLogEvent] = []
        with self._lock:
            countdown = self._recompute_countdown_locked(now, events)
            callback = self._capture_callback if countdown.should_capture else None

        self._emit_all(events)
        if countdown.should_capture:
            self._run_capture_callback(callback)
        return countdown

    def get_pose_state(self) -> SequenceState:
        with self._lock:
            return SequenceState(
                current_step=self._step,
                target_pose=self._target_pose,
                stable_since_ms=self._stable_since_ms,
                counting_down=self._counting_down,
                countdown_start_ms=self._countdown_start_ms,
                countdown_value=self._countdown_value,
                capture_fired=self._capture_fired,
            )

    def get_current_pose_instruction(self, now_ms: int | None = None) -> str:
        """Return the user-facing prompt for the current step.

        This only reads state; the countdown is not advanced and no capture fires.
        """
        now = self._clock() if now_ms is None else now_ms
        with self._lock:
            if self._step is not SequenceStep.COUNTDOWN:
                return _INSTRUCTIONS[self._step]
            if not self._counting_down or self._countdown_start_ms is None:
                return _COUNTDOWN_PENDING_INSTRUCTION
            value = self._countdown_value_at_locked(now)

        if value == 0:
            return _COUNTDOWN_PENDING_INSTRUCTION
        return f"Get ready! {value}..."

    def _reset_locked(self, step: SequenceStep) -> None:
        self._step = step
        self._target_pose = PoseLabel.ONE
        self._stable_since_ms: int | None = None
        self._counting_down = False
        self._countdown_start_ms: int | None = None
        self._countdown_value = self._config.countdown_from
        self._capture_fired = False
        self._last_advance_ms: int | None = None

    def _track_pose_locked(
        self,
        pose_label: PoseLabel | int,
        confidence: float,
        now: int,
        events: list[LivenessLogEvent],
    ) -> UpdateResult:
        is_correct = (
            pose_label == self._target_pose
            and isinstance(confidence, (int, float))
            and confidence >= self._config.confidence_threshold
        )
        if not is_correct:
            if self._stable_since_ms is not None:
                events.append(
                    LivenessLogEvent(
                        kind=LogEventKind.STABILITY_RESET,
                        message="Pose hold interrupted.",
                        step=int(self._step),
                        pose_label=int(self._target_pose),
                    )
                )
            self._stable_since_ms = None
            return UpdateResult(is_stable=False, stable_time_ms=0, should_capture=False)

        if self._stable_since_ms is None:
            self._stable_since_ms = now
        stable_time = now - self._stable_since_ms

        if stable_time >= self._config.stability_hold_ms and self._last_advance_ms != now:
            self._advance_locked(now, events)
            return UpdateResult(is_stable=True, stable_time_ms=stable_time, should_capture=False)
        return UpdateResult(is_stable=False, stable_time_ms=stable_time, should_capture=False)

    def _advance_locked(self, now: int, events: list[LivenessLogEvent]) -> None:
        completed = self._target_pose
        self._stable_since_ms = None
        self._last_advance_ms = now

        if self._step is SequenceStep.POSE_THREE:
            self._step = SequenceStep.COUNTDOWN
            self._counting_down = True
            self._countdown_start_ms = now
            self._countdown_value = self._config.countdown_from
            events.append(
                LivenessLogEvent(
                    kind=LogEventKind.COUNTDOWN_STARTED,
                    message="All poses held; countdown started.",
                    step=int(self._step),
                    pose_label=int(completed),
                )
            )
            return

        self._step = SequenceStep(self._step + 1)
        self._target_pose = PoseLabel(int(self._step))
        events.append(
            LivenessLogEvent(
                kind=LogEventKind.POSE_ADVANCED,
                message=f"Pose {int(completed)} held; advancing.",
                step=int(self._step),
                pose_label=int(completed),
            )
        )

    def _countdown_value_at_locked(self, now: int) -> int:
        if self._countdown_start_ms is None:
            return self._countdown_value
        elapsed = now - self._countdown_start_ms
        step_ms = self._config.countdown_step_ms

        # With the defaults: <1000 -> 3, <2000 -> 2, <3000 -> 1, else 0.
        value = 0
        for bucket, remaining in enumerate(range(self._config.countdown_from, 0, -1), start=1):
            if elapsed < bucket * step_ms:
                value = remaining
                break
        # Never count back up, even if the clock source jumps backwards.
        return min(value, self._countdown_value)

    def _recompute_countdown_locked(
        self,
        now: int,
        events: list[LivenessLogEvent],
    ) -> CountdownState:
        if not self._counting_down or self._countdown_start_ms is None:
            value = 0 if self._step is SequenceStep.CAPTURED else self._config.countdown_from
            return CountdownState(is_counting_down=False, countdown_value=value, should_capture=False)

        value = self._countdown_value_at_locked(now)
        self._countdown_value = value
        should_capture = value == 0 and not self._capture_fired
        if should_capture:
            self._capture_fired = True
            self._step = SequenceStep.CAPTURED
            self._counting_down = False
            self._countdown_start_ms = None
            self._capture_signal.publish(now)
            events.append(
                LivenessLogEvent(
                    kind=LogEventKind.CAPTURE_FIRED,
                    message="Countdown finished; capture fired.",
                    step=int(self._step),
                )
            )

        return CountdownState(
            is_counting_down=self._counting_down,
            countdown_value=value,
            should_capture=should_capture,
        )

    def _run_capture_callback(self, callback: CaptureCallback | None) -> None:
        if callback is None:
            return
        try:
            callback()
        except Exception as exc:
            emit(
                self._config.log_hook,
                LivenessLogEvent(
                    kind=LogEventKind.CALLBACK_ERROR,
                    message="Capture callback raised an exception.",
                    step=int(SequenceStep.CAPTURED),
                    exception=exc,
                ),
            )
            raise CaptureCallbackError("Capture callback failed.") from exc

    def _emit_all(self, events: list[LivenessLogEvent]) -> None:
        for event in events:
            emit(self._config.log_hook, event)
