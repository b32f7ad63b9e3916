"""Errors that end a sync run."""
from typing import Optional


class SyncError(RuntimeError):
    """Base class for failures that terminate a run."""


class SyncStartError(SyncError):
    """Raised when the app server refuses or never answers the sync start request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SyncFailedError(SyncError):
    """Raised when the app server reports the sync job as failed."""


class SyncTimeoutError(SyncError):
    """Raised when the job is still not finished after the last polling attempt."""

    def __init__(self, attempts: int):
        super().__init__(
            f"Sync timed out: no terminal status after {attempts} polling attempts"
        )
        self.attempts = attempts
