"""Raw event normalization (core domain).

Turns whatever a capture mechanism managed to read into a NotificationRecord.
Normalization never fails: missing fields fall back to raw text fragments and
finally to fixed placeholders.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

from core.errors import CaptureError
from core.models import NotificationRecord, RawEvent

LOGGER = logging.getLogger(__name__)

UNKNOWN_SOURCE = "unknown"
UNTITLED = "(untitled)"
EMPTY_BODY = "(empty)"


def now_ms() -> int:
    return int(time.time() * 1000)


def _clean(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def join_fragments(fragments: Iterable[object]) -> str:
    """Space-join raw text fragments, skipping empty ones."""

    parts = [_clean(fragment) for fragment in fragments or ()]
    return " ".join(part for part in parts if part)


def _resolve_timestamp(raw: RawEvent, fallback_ms: int) -> int:
    if raw.captured_at_ms is None:
        return fallback_ms
    try:
        value = int(raw.captured_at_ms)
    except (TypeError, ValueError):
        return fallback_ms
    return value if value > 0 else fallback_ms


def _build(raw: RawEvent, timestamp_ms: int) -> NotificationRecord:
    source_id = _clean(raw.source_id) or UNKNOWN_SOURCE
    title = _clean(raw.title)
    # Structured body first, then ticker text, then the raw fragments.
    body = _clean(raw.body) or _clean(raw.ticker) or join_fragments(raw.text_fragments)

    if not title and not body:
        title, body = UNTITLED, EMPTY_BODY

    return NotificationRecord(
        source_id=source_id,
        title=title,
        body=body,
        timestamp=_resolve_timestamp(raw, timestamp_ms),
    )


def normalize(raw: RawEvent, now: Optional[int] = None) -> NotificationRecord:
    """Convert a raw platform event into a canonical NotificationRecord."""

    timestamp_ms = now if now is not None else now_ms()
    try:
        return _build(raw, timestamp_ms)
    except Exception as exc:
        error = CaptureError(f"unreadable raw event: {exc}")
        LOGGER.warning("%s (mechanism=%s)", error, getattr(raw, "mechanism", "unknown"))
        return NotificationRecord(
            source_id=UNKNOWN_SOURCE,
            title=UNTITLED,
            body=EMPTY_BODY,
            timestamp=timestamp_ms,
        )
