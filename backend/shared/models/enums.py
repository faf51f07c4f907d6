"""Domain enumerations for the batch verify client."""
from __future__ import annotations

from enum import Enum


class ResultStatus(str, Enum):
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"

    @classmethod
    def from_step(cls, step: object) -> "ResultStatus":
        """Map a stream ``currentStep`` value onto a result status."""
        if step == "success":
            return cls.SUCCESS
        if step == "error":
            return cls.ERROR
        return cls.PROCESSING


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in (SessionState.REQUESTING, SessionState.STREAMING)


class StreamEventType(str, Enum):
    """Named ``event:`` types the service emits around a batch."""
    START = "start"
    END = "end"
    MESSAGE = "message"


class DisplayStatus(str, Enum):
    """Status badge kinds understood by display sinks."""
    READY = ""
    PROCESSING = "processing"
