"""
Pydantic v2 domain models for the batch verify client.
These are the canonical wire/internal representations.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import ResultStatus


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ── Results ─────────────────────────────────────────────────────────────
class ResultRecord(DomainModel):
    """Current outcome for one verification identifier."""
    id: str
    status: ResultStatus
    message: str


class ResultSummary(DomainModel):
    total: int = 0
    success: int = 0
    error: int = 0
    processing: int = 0


# ── Wire: request ───────────────────────────────────────────────────────
class BatchRequest(DomainModel):
    """Body of ``POST /api/batch``."""
    credential: str = Field(alias="hCaptchaToken")
    verification_ids: list[str] = Field(alias="verificationIds")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# ── Wire: stream payloads ───────────────────────────────────────────────
class ProgressPayload(DomainModel):
    """
    Known fields of a ``data:`` payload. Unknown fields are kept as extras.

    Per-identifier updates carry ``verificationId``; quota and batch counters
    (``current_quota``, ``total``, ``cost``, ``completed``) arrive on their own
    and never address a record.
    """
    # wire names only: snake_case keys land in extras and address nothing
    model_config = ConfigDict(from_attributes=True, populate_by_name=False, extra="allow")

    verification_id: Optional[Any] = Field(default=None, alias="verificationId")
    current_step: Optional[Any] = Field(default=None, alias="currentStep")
    message: Optional[Any] = None
    current_quota: Optional[Any] = None
    total: Optional[Any] = None
    cost: Optional[Any] = None
    completed: Optional[Any] = None

    @property
    def status(self) -> ResultStatus:
        return ResultStatus.from_step(self.current_step)

    def display_message(self, fallback: str) -> str:
        """``message``, else the step name, else ``fallback``."""
        return str(self.message or self.current_step or fallback)
