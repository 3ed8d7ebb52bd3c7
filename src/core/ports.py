"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for configuration, persistence, transport
and event-source adapters so that the core can be reused with different
backends.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Protocol, Sequence

from core.config import ForwardingConfig
from core.models import DeliveryAttempt, NotificationRecord, RawEvent

if TYPE_CHECKING:
    from core.processor import ProcessingResult


class ConfigStore(Protocol):
    """Read-only access to the externally owned configuration."""

    def snapshot(self) -> ForwardingConfig:
        ...


class RecordRepository(Protocol):
    """Durable storage for the record history and the delivery outcome log.

    replace_* methods must be atomic: readers see either the previous or the
    new sequence, never a partial write. Failures raise PersistenceError.
    """

    def load_records(self) -> list[NotificationRecord]:
        ...

    def replace_records(self, records: Sequence[NotificationRecord]) -> None:
        ...

    def load_attempts(self) -> list[DeliveryAttempt]:
        ...

    def replace_attempts(self, attempts: Sequence[DeliveryAttempt]) -> None:
        ...


class HttpTransport(Protocol):
    """Blocking HTTP POST returning the response status code.

    Transport-level failures (DNS, refused connection, timeout) raise
    DeliveryError. HTTP error statuses are returned, not raised.
    """

    def post(self, url: str, body: bytes, headers: Mapping[str, str], timeout: float) -> int:
        ...


class EventSink(Protocol):
    """The single consumer of raw events."""

    def on_event(self, raw: RawEvent) -> "ProcessingResult":
        ...


class EventSource(Protocol):
    """Delivers raw events from one capture mechanism, sequentially."""

    async def run(self, sink: EventSink) -> int:
        ...
