"""Shared fixtures: a recording display sink and httpx mock transports for the service."""
from __future__ import annotations

import json
from typing import Any, AsyncIterator, Callable, Iterable, Optional

import httpx
import pytest

from shared.models.domain import ResultRecord
from shared.models.enums import DisplayStatus

UPSTREAM_HTML = """<html><head><script>
window.CSRF_TOKEN = "tok-123";
</script></head><body></body></html>"""


class RecordingSink:
    """DisplaySink that keeps everything it is told."""

    def __init__(self) -> None:
        self.renders: list[list[ResultRecord]] = []
        self.statuses: list[tuple[DisplayStatus, str]] = []
        self.quotas: list[str] = []
        self.errors: list[str] = []

    def render(self, records: list[ResultRecord]) -> None:
        self.renders.append(records)

    def set_status(self, kind: DisplayStatus, text: str) -> None:
        self.statuses.append((kind, text))

    def set_quota(self, text: str) -> None:
        self.quotas.append(text)

    def error(self, message: str) -> None:
        self.errors.append(message)

    @property
    def status_texts(self) -> list[str]:
        return [text for _kind, text in self.statuses]


async def chunked(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


class FakeService:
    """
    Scripted stand-in for the verification origin.

    Serves ``/upstream/`` and ``/api/batch`` and keeps every request it saw.
    """

    def __init__(
        self,
        stream: Optional[Callable[[], AsyncIterator[bytes]]] = None,
        batch_status: int = 200,
        upstream_status: int = 200,
        upstream_body: str = UPSTREAM_HTML,
        upstream_error: Optional[Exception] = None,
    ) -> None:
        self.stream = stream or (lambda: chunked([]))
        self.batch_status = batch_status
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        self.upstream_error = upstream_error
        self.requests: list[httpx.Request] = []

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def batch_bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.url.path == "/api/batch"]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/upstream/":
            if self.upstream_error is not None:
                raise self.upstream_error
            return httpx.Response(self.upstream_status, text=self.upstream_body)
        if request.url.path == "/api/batch":
            if self.batch_status != 200:
                return httpx.Response(self.batch_status, text="nope")
            return httpx.Response(
                200,
                headers={"Content-Type": "text/event-stream"},
                content=self.stream(),
            )
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
