"""Exception hierarchy for the batch verify client."""
from __future__ import annotations

from typing import Optional


class BatchVerifyError(Exception):
    """Base for every error raised by the client."""


class ValidationError(BatchVerifyError):
    """User input rejected before any state change or network call."""


class SessionBusyError(BatchVerifyError):
    """A batch is already running on this session."""


class TransportError(BatchVerifyError):
    """The batch request failed at the HTTP or network level."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExportError(BatchVerifyError):
    """The result set could not be exported."""
