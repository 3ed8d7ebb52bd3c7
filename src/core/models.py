"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any platform-specific event types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from core.dedup import compute_fingerprint


@dataclass(frozen=True)
class RawEvent:
    """Unstructured notification signal handed over by an event source."""

    source_id: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    text_fragments: Tuple[str, ...] = ()
    ticker: Optional[str] = None
    captured_at_ms: Optional[int] = None
    mechanism: str = "unknown"


@dataclass(frozen=True)
class NotificationRecord:
    """Canonical, immutable notification record.

    The fingerprint is derived once at construction. Records rebuilt from
    storage pass the stored fingerprint so it is never recomputed.
    """

    source_id: str
    title: str
    body: str
    timestamp: int
    fingerprint: str = ""

    def __post_init__(self) -> None:
        if not self.fingerprint:
            object.__setattr__(
                self,
                "fingerprint",
                compute_fingerprint(self.source_id, self.title, self.body),
            )


@dataclass(frozen=True)
class DeliveryAttempt:
    """Outcome of a single POST attempt for one record."""

    source_id: str
    fingerprint: str
    record_timestamp: int
    attempt_number: int
    timestamp: int
    http_status: Optional[int] = None
    error: Optional[str] = None
    final: bool = False

    @property
    def succeeded(self) -> bool:
        return self.http_status is not None and 200 <= self.http_status < 300


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of forwarding one record, after all retries."""

    record: NotificationRecord
    status: DeliveryStatus
    attempts: int
    last_status: Optional[int] = None
    last_error: Optional[str] = None
    history: Tuple[DeliveryAttempt, ...] = field(default=(), repr=False)

    @property
    def delivered(self) -> bool:
        return self.status is DeliveryStatus.DELIVERED
