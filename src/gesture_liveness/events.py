"""Structured log events shared by classifier, state machine, and session."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum


class LogEventKind(StrEnum):
    """Structured log event kinds emitted by liveness components."""

    FRAME_CLASSIFIED = "frame_classified"
    DETECTION_ERROR = "detection_error"
    STABILITY_RESET = "stability_reset"
    POSE_ADVANCED = "pose_advanced"
    COUNTDOWN_STARTED = "countdown_started"
    CAPTURE_FIRED = "capture_fired"
    CALLBACK_ERROR = "callback_error"
    SESSION_OPENED = "session_opened"
    SESSION_CLOSED = "session_closed"
    PHOTO_CAPTURED = "photo_captured"


@dataclass(frozen=True, slots=True)
class LivenessLogEvent:
    """Structured log event for observability hooks.

    :param kind:
        Event kind discriminator.
    :param message:
        Human-readable event message.
    :param step:
        Optional sequence step at the time of the event.
    :param pose_label:
        Optional pose label associated with the event.
    :param exception:
        Optional exception associated with the event.
    """

    kind: LogEventKind
    message: str
    step: int | None = None
    pose_label: int | None = None
    exception: Exception | None = None


LogHook = Callable[[LivenessLogEvent], None]
"""Callable receiving structured log events."""


def emit(hook: LogHook | None, event: LivenessLogEvent) -> None:
    """Emit one structured log event if a hook is configured."""
    if hook is not None:
        hook(event)
