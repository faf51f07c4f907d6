"""
Incremental parser for the batch service's event stream.

The stream is line oriented: ``event: <name>`` announces a phase and
``data: <json>`` carries a progress payload. Chunks from the network may split
a line anywhere, so complete lines are processed and the trailing partial line
waits in a buffer for the next chunk.

When the stream closes, whatever is left in the buffer had no terminating
newline and is dropped rather than parsed. ``finish()`` hands the leftover
back so callers can report it.
"""
from __future__ import annotations

import codecs
import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Union

from shared.models.enums import StreamEventType
from shared.utils.logging import get_logger
from shared.utils.metrics import STREAM_LINES

logger = get_logger(__name__)

DATA_PREFIX = "data: "
EVENT_PREFIX = "event: "


# ── Line kinds ──────────────────────────────────────────────────────────
@dataclass(frozen=True)
class DataLine:
    payload: Any


@dataclass(frozen=True)
class EventLine:
    name: str


@dataclass(frozen=True)
class MalformedLine:
    raw: str
    error: str


@dataclass(frozen=True)
class Ignored:
    pass


ParsedLine = Union[DataLine, EventLine, MalformedLine, Ignored]

IGNORED = Ignored()


def classify_line(line: str) -> ParsedLine:
    """Classify a single complete line (without its newline)."""
    if line.startswith(DATA_PREFIX):
        body = line[len(DATA_PREFIX):]
        try:
            return DataLine(payload=json.loads(body))
        except ValueError as exc:
            return MalformedLine(raw=line, error=str(exc))
    if line.startswith(EVENT_PREFIX):
        return EventLine(name=line[len(EVENT_PREFIX):].strip())
    return IGNORED


# ── Events ──────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class StreamEvent:
    """
    One parsed stream record.

    ``event:`` lines yield ``StreamEvent(type=<name>)`` with no payload; ``data:``
    lines yield ``StreamEvent(type="message", payload=<decoded json>)``.
    """
    type: str = StreamEventType.MESSAGE.value
    payload: Any = None
    is_data: bool = False


class StreamEventParser:
    """Stateful, single-use decoder from byte chunks to ``StreamEvent`` records."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._finished = False
        self.malformed_count = 0

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def has_leftover(self) -> bool:
        return bool(self._buffer)

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """Consume one chunk and return the events completed by it, in order."""
        if self._finished:
            raise RuntimeError("StreamEventParser already finished; create a new parser")
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        events: list[StreamEvent] = []
        for line in lines:
            event = self._handle_line(line.rstrip("\r"))
            if event is not None:
                events.append(event)
        return events

    def finish(self) -> str:
        """
        Mark the stream complete and return the unterminated leftover, if any.

        The leftover is not parsed and produces no event.
        """
        if not self._finished:
            self._buffer += self._decoder.decode(b"", final=True)
            self._finished = True
        return self._buffer

    def _handle_line(self, line: str) -> Optional[StreamEvent]:
        parsed = classify_line(line)
        if isinstance(parsed, DataLine):
            STREAM_LINES.labels(kind="data").inc()
            return StreamEvent(payload=parsed.payload, is_data=True)
        if isinstance(parsed, EventLine):
            STREAM_LINES.labels(kind="event").inc()
            return StreamEvent(type=parsed.name)
        if isinstance(parsed, MalformedLine):
            STREAM_LINES.labels(kind="malformed").inc()
            self.malformed_count += 1
            logger.info("stream_line_skipped", line=parsed.raw, error=parsed.error)
        return None


async def aiter_events(
    chunks: AsyncIterator[bytes],
    parser: Optional[StreamEventParser] = None,
) -> AsyncIterator[StreamEvent]:
    """Drive ``parser`` over an async chunk source, yielding events as lines complete."""
    parser = parser or StreamEventParser()
    async for chunk in chunks:
        for event in parser.feed(chunk):
            yield event
    leftover = parser.finish()
    if leftover:
        logger.warning("stream_unterminated_leftover", length=len(leftover))
