"""Error taxonomy for frametrace.

Startup errors abort a session before any frame is written, usage errors
signal a malformed event stream, sink errors wrap storage failures and
teardown errors are only ever recorded, never raised out of ``close()``.
"""

from __future__ import annotations

from typing import Optional


class FrameTraceError(Exception):
    """Base class for all frametrace errors."""


class ConfigurationError(FrameTraceError):
    """Raised for an unsupported architecture/machine or a malformed config."""


class StartupError(FrameTraceError):
    """Raised when session metadata cannot be assembled.

    Args:
        message: Human readable description
        path: Target path involved, if any
    """

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class TargetNotFoundError(StartupError):
    """Raised when the target executable cannot be resolved."""

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__(message or f"{path} not found", path=path)


class UsageError(FrameTraceError):
    """Raised when the event producer violates the frame protocol."""


class NoOpenFrameError(UsageError):
    """Raised for an operand event that arrives with no open instruction frame."""

    def __init__(self, event: object):
        self.event = event
        super().__init__(f"operand event {event!r} has no preceding operation event")


class WriterClosedError(UsageError):
    """Raised when an event is written to a closed writer."""


class SinkError(FrameTraceError):
    """Raised when the trace sink cannot store or flush frames.

    Args:
        message: Description of the failure
        frame_index: Index of the first frame that could not be stored
    """

    def __init__(self, message: str, frame_index: Optional[int] = None):
        self.frame_index = frame_index
        super().__init__(message)


class TeardownError(FrameTraceError):
    """Failure while flushing or closing a session.

    Never raised across ``FrameWriter.close``; kept on the writer instead.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)
