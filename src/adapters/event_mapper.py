"""Platform-to-core event mapping adapter.

Each capture mechanism reports notifications in its own shape. One mapper per
mechanism turns that shape into a RawEvent so the pipeline never sees
platform-specific details.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple

from core.models import RawEvent

LISTENER = "listener"
ACCESSIBILITY = "accessibility"
GENERIC = "unknown"

TITLE_EXTRA = "android.title"
TEXT_EXTRA = "android.text"


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return " ".join(str(item) for item in value if item is not None)
    return str(value)


def _millis(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _fragments(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value if item is not None)
    return (str(value),)


def _extras(container: Any) -> Dict[str, Any]:
    if not isinstance(container, dict):
        return {}
    extras = container.get("extras")
    return extras if isinstance(extras, dict) else {}


def from_listener(payload: Dict[str, Any]) -> RawEvent:
    """Map a notification-listener posting.

    The listener sees the full notification: package name, ticker text and
    the title/text extras.
    """

    extras = _extras(payload)
    return RawEvent(
        source_id=_text(payload.get("package")),
        title=_text(extras.get(TITLE_EXTRA)),
        body=_text(extras.get(TEXT_EXTRA)),
        ticker=_text(payload.get("tickerText")),
        captured_at_ms=_millis(payload.get("postTime")),
        mechanism=LISTENER,
    )


def from_accessibility(payload: Dict[str, Any]) -> RawEvent:
    """Map an accessibility notification-state-changed event.

    Accessibility events carry a list of text fragments and only sometimes a
    parcelled notification with title/text extras.
    """

    extras = _extras(payload.get("parcelableData"))
    return RawEvent(
        source_id=_text(payload.get("packageName")),
        title=_text(extras.get(TITLE_EXTRA)),
        body=_text(extras.get(TEXT_EXTRA)),
        text_fragments=_fragments(payload.get("text")),
        captured_at_ms=_millis(payload.get("eventTime")),
        mechanism=ACCESSIBILITY,
    )


def from_generic(payload: Dict[str, Any]) -> RawEvent:
    """Map an already-flattened event (bridges, tests, manual input)."""

    return RawEvent(
        source_id=_text(payload.get("sourceId")),
        title=_text(payload.get("title")),
        body=_text(payload.get("body")),
        text_fragments=_fragments(payload.get("fragments")),
        captured_at_ms=_millis(payload.get("timestamp")),
        mechanism=GENERIC,
    )


_MAPPERS: Dict[str, Callable[[Dict[str, Any]], RawEvent]] = {
    LISTENER: from_listener,
    ACCESSIBILITY: from_accessibility,
}


def raw_event_from_payload(payload: Dict[str, Any]) -> RawEvent:
    """Dispatch on the ``mechanism`` field to the matching mapper."""

    mapper = _MAPPERS.get(str(payload.get("mechanism", "")).lower(), from_generic)
    return mapper(payload)


def raw_event_from_text(line: str) -> RawEvent:
    """Wrap unparseable input as a single fragment from an unknown source."""

    return RawEvent(text_fragments=(line,), mechanism=GENERIC)
