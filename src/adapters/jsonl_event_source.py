"""JSON-lines event source adapter.

Reads one raw event per line from a text stream (stdin, a FIFO fed by a
platform bridge, or a file) and hands each to the pipeline in order. Reading
happens in a worker thread so the event loop, and with it the forwarding
workers, keep running while the source waits for input.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import IO

from adapters.event_mapper import raw_event_from_payload, raw_event_from_text
from core.errors import CaptureError
from core.models import RawEvent
from core.ports import EventSink

LOGGER = logging.getLogger(__name__)


def parse_line(line: str) -> RawEvent:
    """Parse one input line; malformed input still yields a RawEvent."""

    try:
        payload = json.loads(line)
        if not isinstance(payload, dict):
            raise CaptureError(f"expected a JSON object, got {type(payload).__name__}")
    except (ValueError, CaptureError) as exc:
        LOGGER.warning("Malformed event line (%s); keeping raw text", exc)
        return raw_event_from_text(line)
    return raw_event_from_payload(payload)


class JsonLinesEventSource:
    """Event source that consumes a JSON-lines stream until EOF."""

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream

    async def run(self, sink: EventSink) -> int:
        """Deliver every line to ``sink`` sequentially; return the event count."""

        count = 0
        while True:
            line = await asyncio.to_thread(self._stream.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            sink.on_event(parse_line(line))
            count += 1
        LOGGER.info("Event stream ended after %s events", count)
        return count
