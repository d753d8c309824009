"""Custom exception hierarchy for liveness detection errors."""


class LivenessError(Exception):
    """Base exception for package errors."""


class ConfigurationError(LivenessError):
    """Raised when a configuration object holds invalid values."""


class LandmarkError(LivenessError):
    """Raised when hand landmark data is malformed."""


class ModelInitializationError(LivenessError):
    """Raised when the landmark model cannot be initialized."""


class DependencyError(LivenessError):
    """Raised when an optional third-party dependency is not installed."""


class SessionError(LivenessError):
    """Base exception for liveness session errors."""


class SessionClosedError(SessionError):
    """Raised when operating on a session that is not open."""


class SessionTimeoutError(SessionError):
    """Raised when a session run exceeds its configured timeout."""


class CaptureError(LivenessError):
    """Raised when a photo cannot be captured or encoded."""


class CaptureCallbackError(LivenessError):
    """Raised when a host capture callback fails."""
