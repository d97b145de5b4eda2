from __future__ import annotations


class IntervalLogError(Exception):
    """Base class for errors raised by IntervalLog."""


class ValidationError(IntervalLogError, ValueError):
    """A required field is missing or malformed. Not retryable."""


class TimerStateError(IntervalLogError):
    """An operation was requested in a phase that does not allow it."""


class CollaboratorError(IntervalLogError):
    """Filesystem or publish workflow failure. The save sequence may be retried."""


class StorageError(CollaboratorError):
    pass


class PublishError(CollaboratorError):
    def __init__(self, step: str, message: str, output: str = "") -> None:
        super().__init__(message)
        self.step = step
        self.output = output


class SessionSaveError(IntervalLogError):
    def __init__(self, stage: str, cause: Exception) -> None:
        super().__init__(f"{stage} failed: {cause}")
        self.stage = stage
        self.cause = cause
