"""
One end-to-end batch run: validate, submit, follow the event stream, reconcile.

States: idle -> requesting -> streaming -> completed | cancelled | failed -> idle.
The terminal state is reported in the returned SessionOutcome; the session itself
is back at idle as soon as run() returns.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import httpx

from shared.models.domain import BatchRequest
from shared.models.enums import DisplayStatus, SessionState, StreamEventType
from shared.utils.http_client import BatchHTTPClient
from shared.utils.logging import get_logger
from shared.utils.metrics import BATCH_DURATION, BATCH_RUNS, atrack_latency

from batch_verify.credentials import CsrfTokenCache
from batch_verify.exceptions import SessionBusyError, TransportError, ValidationError
from batch_verify.reconciler import PROCESSING_MESSAGE, ResultReconciler, parse_progress
from batch_verify.sinks import DisplaySink
from batch_verify.stream_parser import StreamEvent, StreamEventParser, aiter_events

logger = get_logger(__name__)

STATUS_READY = "就绪"
STATUS_VERIFYING = "验证中..."
STATUS_DONE = "完成"
MISSING_CREDENTIAL = "请先设置 API Key"
MISSING_IDS = "请输入验证 ID"
FAILURE_PREFIX = "验证请求失败: "


@dataclass
class SessionOutcome:
    state: SessionState
    error: Optional[str] = None
    leftover: str = ""


def format_wire_value(value: Any) -> str:
    """Render a JSON scalar the way the service's own UI prints it."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class VerificationSession:
    """Runs batches one at a time against a shared result set."""

    def __init__(
        self,
        http: BatchHTTPClient,
        token_cache: CsrfTokenCache,
        reconciler: ResultReconciler,
        sink: DisplaySink,
        credential: str = "",
        batch_path: str = "/api/batch",
    ) -> None:
        self._http = http
        self._tokens = token_cache
        self._reconciler = reconciler
        self._sink = sink
        self._batch_path = batch_path
        self.credential = credential
        self.status_text = STATUS_READY
        self.quota_text = ""
        self._state = SessionState.IDLE
        self._task: Optional[asyncio.Task[str]] = None
        self._cancel_requested = False
        reconciler.subscribe(sink.render)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.is_active

    def _set_state(self, state: SessionState) -> None:
        logger.debug("session_state", old=self._state.value, new=state.value)
        self._state = state

    def _set_status(self, kind: DisplayStatus, text: str) -> None:
        self.status_text = text
        self._sink.set_status(kind, text)

    def cancel(self) -> bool:
        """Abort the running transfer. Returns False when nothing is running."""
        if self._task is None or self._task.done():
            return False
        self._cancel_requested = True
        self._task.cancel()
        return True

    async def run(self, verification_ids: Sequence[str]) -> SessionOutcome:
        """
        Submit ``verification_ids`` and follow the stream until it ends.

        Raises:
            SessionBusyError: A batch is already running.
            ValidationError: No credential, or no identifiers. Nothing is changed.
        """
        if self.is_running:
            raise SessionBusyError("验证正在进行中")
        if not self.credential:
            raise ValidationError(MISSING_CREDENTIAL)
        ids = list(verification_ids)
        if not ids:
            raise ValidationError(MISSING_IDS)

        self._set_state(SessionState.REQUESTING)
        self._set_status(DisplayStatus.PROCESSING, STATUS_VERIFYING)
        self._reconciler.seed(ids, PROCESSING_MESSAGE)
        self._cancel_requested = False
        outcome = SessionOutcome(state=SessionState.FAILED)
        logger.info("batch_started", count=len(ids))

        try:
            self._task = asyncio.create_task(self._execute(ids))
            async with atrack_latency(BATCH_DURATION):
                outcome.leftover = await self._task
            outcome.state = SessionState.COMPLETED
        except asyncio.CancelledError:
            outcome.state = SessionState.CANCELLED
            if not self._cancel_requested:
                raise
            logger.info("batch_cancelled")
        except (TransportError, httpx.HTTPError) as exc:
            outcome.error = f"{FAILURE_PREFIX}{exc}"
            logger.error("batch_failed", error=str(exc))
            self._sink.error(outcome.error)
        except Exception as exc:
            outcome.error = f"{FAILURE_PREFIX}{exc}"
            logger.exception("batch_failed_unexpected", error=str(exc))
            self._sink.error(outcome.error)
        finally:
            self._set_state(outcome.state)
            BATCH_RUNS.labels(outcome=outcome.state.value).inc()
            self._task = None
            self._cancel_requested = False
            self._set_state(SessionState.IDLE)
            self._set_status(DisplayStatus.READY, STATUS_READY)
        return outcome

    async def _execute(self, ids: list[str]) -> str:
        """Token, request, stream. Returns the unterminated leftover, if any."""
        token = await self._tokens.get_token()
        body = BatchRequest(credential=self.credential, verification_ids=ids).to_wire()
        headers = {"Content-Type": "application/json", "X-CSRF-Token": token}

        async with self._http.stream_post(self._batch_path, json=body, extra_headers=headers) as resp:
            if not resp.is_success:
                raise TransportError(
                    f"HTTP {resp.status_code}: {resp.reason_phrase}", status_code=resp.status_code
                )
            self._set_state(SessionState.STREAMING)
            parser = StreamEventParser()
            async for event in aiter_events(resp.aiter_bytes(), parser):
                self._handle_event(event)

        if parser.malformed_count:
            logger.info("batch_stream_malformed_lines", count=parser.malformed_count)
        return parser.buffer

    def _handle_event(self, event: StreamEvent) -> None:
        if not event.is_data:
            logger.debug("stream_event", event_type=event.type)
            if event.type == StreamEventType.START.value:
                self._set_status(DisplayStatus.PROCESSING, STATUS_VERIFYING)
            elif event.type == StreamEventType.END.value:
                self._set_status(DisplayStatus.READY, STATUS_DONE)
            return

        logger.debug("stream_data", payload=event.payload)
        progress = parse_progress(event.payload)
        if progress is None:
            return
        self._reconciler.apply_payload(progress)

        fields = progress.model_fields_set
        if "current_quota" in fields:
            self.quota_text = f"配额: {format_wire_value(progress.current_quota)}"
            self._sink.set_quota(self.quota_text)
        if "total" in fields and "cost" in fields:
            logger.info("batch_accepted", total=progress.total, cost=progress.cost)
        if "completed" in fields:
            logger.info("batch_progress", completed=progress.completed, total=progress.total)
