"""
Reconciliation of stream payloads into the ordered result set.
One record per identifier; updates replace in place so display order is first-seen order.
"""
from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from shared.models.domain import ProgressPayload, ResultRecord, ResultSummary
from shared.models.enums import ResultStatus
from shared.utils.logging import get_logger
from shared.utils.metrics import RESULT_RECORDS

logger = get_logger(__name__)

PROCESSING_MESSAGE = "处理中..."
UNKNOWN_MESSAGE = "未知"

ResultListener = Callable[[list[ResultRecord]], None]


def parse_progress(payload: Any) -> Optional[ProgressPayload]:
    """Validate a decoded ``data:`` payload; non-object payloads yield None."""
    if not isinstance(payload, dict):
        return None
    try:
        return ProgressPayload.model_validate(payload)
    except PydanticValidationError as exc:
        logger.info("progress_payload_invalid", error=str(exc))
        return None


class ResultReconciler:
    """Ordered identifier -> ResultRecord map with upsert semantics."""

    def __init__(self) -> None:
        # dicts keep insertion order and assignment to an existing key keeps its slot
        self._records: dict[str, ResultRecord] = {}
        self._listeners: list[ResultListener] = []

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, verification_id: object) -> bool:
        return verification_id in self._records

    def get(self, verification_id: str) -> Optional[ResultRecord]:
        return self._records.get(verification_id)

    def subscribe(self, listener: ResultListener) -> None:
        """
        Register a listener called with the full ordered list after every change.
        A listener already registered is not added twice.
        """
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ResultListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        ordered = self.get_ordered()
        summary = self.summary()
        for status in ResultStatus:
            RESULT_RECORDS.labels(status=status.value).set(getattr(summary, status.value))
        for listener in self._listeners:
            listener(ordered)

    def upsert(self, verification_id: str, status: ResultStatus, message: str) -> ResultRecord:
        record = ResultRecord(id=verification_id, status=status, message=message)
        self._records[verification_id] = record
        self._notify()
        return record

    def seed(self, verification_ids: Iterable[str], message: str = PROCESSING_MESSAGE) -> None:
        """Mark every identifier as processing so all of them show before any event."""
        for verification_id in verification_ids:
            self.upsert(verification_id, ResultStatus.PROCESSING, message)

    def apply_payload(self, payload: Any) -> Optional[ResultRecord]:
        """
        Apply a ``data:`` payload. Returns the updated record, or None when the
        payload does not address an identifier (quota and batch counters).
        """
        progress = payload if isinstance(payload, ProgressPayload) else parse_progress(payload)
        if progress is None or not progress.verification_id:
            return None
        return self.upsert(
            str(progress.verification_id),
            progress.status,
            progress.display_message(UNKNOWN_MESSAGE),
        )

    def get_ordered(self) -> list[ResultRecord]:
        return list(self._records.values())

    def by_status(self, status: ResultStatus) -> list[ResultRecord]:
        return [r for r in self._records.values() if r.status == status]

    def summary(self) -> ResultSummary:
        summary = ResultSummary(total=len(self._records))
        for record in self._records.values():
            setattr(summary, record.status.value, getattr(summary, record.status.value) + 1)
        return summary

    def clear(self) -> None:
        self._records.clear()
        self._notify()
