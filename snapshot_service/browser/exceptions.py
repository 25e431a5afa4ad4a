"""
Exceptions for Snapshot Service.
"""


class SnapshotError(Exception):
    """Base exception for snapshot service errors."""
    pass


class ValidationError(SnapshotError):
    """Raised when a request is missing fields or carries malformed ones."""
    pass


class NoValidTargetsError(ValidationError):
    """Raised when the allow-list rejects every URL of a batch."""

    def __init__(self, message: str = "No valid URLs provided"):
        super().__init__(message)


class BrowserError(SnapshotError):
    """Base exception for browser-related errors."""
    pass


class LaunchError(BrowserError):
    """Raised when the browser process cannot be started or reached."""
    pass


class CaptureError(BrowserError):
    """
    Raised when a single page cannot be loaded or captured.

    Args:
        message: Underlying cause
        kind: "timeout" when the load condition was not met in time, "error" otherwise
    """

    TIMEOUT = "timeout"
    ERROR = "error"

    def __init__(self, message: str, kind: str = ERROR):
        super().__init__(message)
        self.kind = kind
