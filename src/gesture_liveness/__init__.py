"""Public API surface for the gesture liveness detector."""

from gesture_liveness.__about__ import __version__
from gesture_liveness.capture import (
    CaptureCoordinator,
    CapturedPhoto,
    OpenCVCamera,
    OpenCVCameraConfig,
    encode_jpeg,
)
from gesture_liveness.classifier import ClassifierConfig, PoseClassifier
from gesture_liveness.events import LivenessLogEvent, LogEventKind, LogHook
from gesture_liveness.exceptions import (
    CaptureCallbackError,
    CaptureError,
    ConfigurationError,
    DependencyError,
    LandmarkError,
    LivenessError,
    ModelInitializationError,
    SessionClosedError,
    SessionError,
    SessionTimeoutError,
)
from gesture_liveness.geometry import FingerCurl, FingerDirection, FingerPose, estimate_finger_poses
from gesture_liveness.models import (
    BoundingBox,
    FingerName,
    HandSkeleton,
    JointName,
    PoseClassification,
    PoseLabel,
)
from gesture_liveness.sequence import (
    CaptureSignal,
    CountdownState,
    SequenceConfig,
    SequenceState,
    SequenceStateMachine,
    SequenceStep,
    UpdateResult,
)
from gesture_liveness.session import (
    FrameResult,
    LivenessSession,
    PollResult,
    SessionConfig,
    SessionStats,
)
from gesture_liveness.sources import (
    FrameSource,
    LandmarkSource,
    MediaPipeLandmarkSource,
    MediaPipeSourceConfig,
    RecordedFrame,
    RecordedLandmarkSource,
    load_recording,
    write_recording,
)
from gesture_liveness.templates import DEFAULT_TEMPLATES, GestureTemplate
from gesture_liveness.visualization import RerunVisualizer, RerunVisualizerConfig

__all__ = [
    "DEFAULT_TEMPLATES",
    "BoundingBox",
    "CaptureCallbackError",
    "CaptureCoordinator",
    "CaptureError",
    "CaptureSignal",
    "CapturedPhoto",
    "ClassifierConfig",
    "ConfigurationError",
    "CountdownState",
    "DependencyError",
    "FingerCurl",
    "FingerDirection",
    "FingerName",
    "FingerPose",
    "FrameResult",
    "FrameSource",
    "GestureTemplate",
    "HandSkeleton",
    "JointName",
    "LandmarkError",
    "LandmarkSource",
    "LivenessError",
    "LivenessLogEvent",
    "LivenessSession",
    "LogEventKind",
    "LogHook",
    "MediaPipeLandmarkSource",
    "MediaPipeSourceConfig",
    "ModelInitializationError",
    "OpenCVCamera",
    "OpenCVCameraConfig",
    "PollResult",
    "PoseClassification",
    "PoseClassifier",
    "PoseLabel",
    "RecordedFrame",
    "RecordedLandmarkSource",
    "RerunVisualizer",
    "RerunVisualizerConfig",
    "SequenceConfig",
    "SequenceState",
    "SequenceStateMachine",
    "SequenceStep",
    "SessionClosedError",
    "SessionConfig",
    "SessionError",
    "SessionStats",
    "SessionTimeoutError",
    "UpdateResult",
    "__version__",
    "encode_jpeg",
    "estimate_finger_poses",
    "load_recording",
    "write_recording",
]
