"""
Async HTTP client wrapper for the batch verification service.
Owns the httpx client lifecycle, timeouts, and request metrics.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx

from shared.utils.logging import get_logger
from shared.utils.metrics import BATCH_REQUESTS

logger = get_logger(__name__)


class BatchHTTPClient:
    """
    Async HTTP client for the verification service and its upstream page.
    No retries: every call is a single attempt and failures propagate to the caller.
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float = 15.0,
        connect_timeout_s: float = 5.0,
        stream_read_timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._default_headers = headers or {}
        self._timeout = timeout_s
        self._connect_timeout = connect_timeout_s
        self._stream_read_timeout = stream_read_timeout_s
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=self._connect_timeout),
            follow_redirects=True,
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BatchHTTPClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("BatchHTTPClient not started. Call start() first.")
        return self._client

    async def get(self, path: str, extra_headers: dict[str, str] | None = None) -> httpx.Response:
        """
        Perform a single GET and return the response without raising on status.

        Raises:
            httpx.HTTPError: On transport-level failure.
        """
        client = self._require_client()
        start_time = time.perf_counter()
        resp = await client.get(path, headers=extra_headers)
        logger.debug(
            "http_get",
            path=path,
            status=resp.status_code,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return resp

    @asynccontextmanager
    async def stream_post(
        self,
        path: str,
        json: Any,
        extra_headers: dict[str, str] | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """
        POST a JSON body and yield the response with its body still unread.

        The caller iterates ``response.aiter_bytes()``; the connection is released
        when the context exits, including on cancellation.
        """
        client = self._require_client()
        timeout = httpx.Timeout(
            self._timeout, connect=self._connect_timeout, read=self._stream_read_timeout
        )
        status = "error"
        try:
            async with client.stream(
                "POST", path, json=json, headers=extra_headers, timeout=timeout
            ) as resp:
                status = str(resp.status_code)
                logger.debug("http_stream_opened", path=path, status=resp.status_code)
                yield resp
        finally:
            BATCH_REQUESTS.labels(status=status).inc()
