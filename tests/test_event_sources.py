from __future__ import annotations

import asyncio
import io
import json

from adapters.event_mapper import (
    ACCESSIBILITY,
    LISTENER,
    from_accessibility,
    from_listener,
    raw_event_from_payload,
)
from adapters.jsonl_event_source import JsonLinesEventSource, parse_line
from core.models import RawEvent
from core.normalizer import normalize


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[RawEvent] = []

    def on_event(self, raw: RawEvent):
        self.events.append(raw)
        return None


def test_listener_payload_maps_extras_and_ticker() -> None:
    raw = from_listener(
        {
            "package": "com.chat",
            "tickerText": "Ana: hi",
            "extras": {"android.title": "Ana", "android.text": "hi"},
            "postTime": 1_700_000_000_000,
        }
    )
    assert raw.mechanism == LISTENER
    assert (raw.source_id, raw.title, raw.body, raw.ticker) == ("com.chat", "Ana", "hi", "Ana: hi")
    assert raw.captured_at_ms == 1_700_000_000_000


def test_accessibility_payload_keeps_fragments() -> None:
    raw = from_accessibility({"packageName": "com.chat", "text": ["Ana", None, "hi"]})
    assert raw.mechanism == ACCESSIBILITY
    assert raw.text_fragments == ("Ana", "hi")
    assert raw.title is None
    assert normalize(raw, now=1).body == "Ana hi"


def test_accessibility_uses_parcelled_notification_when_present() -> None:
    raw = from_accessibility(
        {
            "packageName": "com.chat",
            "text": ["Ana hi"],
            "parcelableData": {"extras": {"android.title": "Ana", "android.text": "hi"}},
        }
    )
    assert (raw.title, raw.body) == ("Ana", "hi")


def test_both_mechanisms_fingerprint_the_same_notification_equally() -> None:
    listener = normalize(
        from_listener({"package": "com.chat", "extras": {"android.title": "Ana", "android.text": "hi"}}), now=1
    )
    accessibility = normalize(
        from_accessibility(
            {"packageName": "com.chat", "parcelableData": {"extras": {"android.title": "Ana", "android.text": "hi"}}}
        ),
        now=2,
    )
    assert listener.fingerprint == accessibility.fingerprint


def test_generic_payload_is_the_default() -> None:
    raw = raw_event_from_payload({"sourceId": "cli", "title": "Build", "body": "done", "timestamp": 5})
    assert (raw.source_id, raw.title, raw.body, raw.captured_at_ms) == ("cli", "Build", "done", 5)


def test_malformed_line_becomes_text_fragment() -> None:
    raw = parse_line("not json at all")
    record = normalize(raw, now=1)
    assert record.source_id == "unknown"
    assert record.body == "not json at all"


def test_non_object_json_is_treated_as_text() -> None:
    assert parse_line("[1, 2]").text_fragments == ("[1, 2]",)


def test_stream_is_delivered_in_order() -> None:
    lines = [
        json.dumps({"mechanism": "listener", "package": "a", "extras": {"android.title": "one"}}),
        "",
        json.dumps({"mechanism": "accessibility", "packageName": "b", "text": ["two"]}),
    ]
    sink = RecordingSink()
    count = asyncio.run(JsonLinesEventSource(io.StringIO("\n".join(lines) + "\n")).run(sink))
    assert count == 2
    assert [event.source_id for event in sink.events] == ["a", "b"]
