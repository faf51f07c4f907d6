"""
Batch runner: wires settings, HTTP client, token cache, reconciler and sink
into a VerificationSession and runs one batch. SIGINT/SIGTERM cancel the run.
"""
from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass
from typing import Optional, Sequence

import httpx

from shared.utils.http_client import BatchHTTPClient
from shared.utils.logging import get_logger

from batch_verify.config import BatchVerifySettings, get_batch_verify_settings
from batch_verify.credentials import CsrfTokenCache
from batch_verify.reconciler import ResultReconciler
from batch_verify.session import SessionOutcome, VerificationSession
from batch_verify.sinks import DisplaySink

logger = get_logger(__name__)


@dataclass
class BatchRun:
    outcome: SessionOutcome
    reconciler: ResultReconciler


def build_http_client(
    settings: BatchVerifySettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BatchHTTPClient:
    return BatchHTTPClient(
        base_url=settings.base_url,
        timeout_s=settings.request_timeout_s,
        connect_timeout_s=settings.connect_timeout_s,
        stream_read_timeout_s=settings.stream_read_timeout_s,
        transport=transport,
    )


def _install_cancel_handlers(loop: asyncio.AbstractEventLoop, session: VerificationSession) -> list[int]:
    installed: list[int] = []

    def on_signal() -> None:
        if session.cancel():
            logger.info("batch_cancel_requested")

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, on_signal)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            pass
    return installed


async def run_batch(
    verification_ids: Sequence[str],
    credential: str,
    sink: DisplaySink,
    settings: Optional[BatchVerifySettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    reconciler: Optional[ResultReconciler] = None,
) -> BatchRun:
    """
    Run one batch end to end.

    Raises:
        ValidationError: Missing credential or empty identifier list.
    """
    settings = settings or get_batch_verify_settings()
    reconciler = reconciler or ResultReconciler()

    async with build_http_client(settings, transport) as http:
        tokens = CsrfTokenCache(http, settings.upstream_path, settings.csrf_token_ttl_s)
        session = VerificationSession(
            http, tokens, reconciler, sink, credential=credential, batch_path=settings.batch_path
        )
        loop = asyncio.get_running_loop()
        installed = _install_cancel_handlers(loop, session)
        try:
            outcome = await session.run(verification_ids)
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            reconciler.unsubscribe(sink.render)

    logger.info("batch_finished", state=outcome.state.value, records=len(reconciler))
    return BatchRun(outcome=outcome, reconciler=reconciler)
