"""Deduplication helpers (core domain)."""

from __future__ import annotations

import hashlib
import re
from collections import OrderedDict
from typing import Optional


def _collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def normalize_for_fingerprint(text: str) -> str:
    """Normalize text for deterministic fingerprinting."""

    return _collapse_whitespace(text)


def compute_fingerprint(source_id: str, title: str, body: str) -> str:
    """Return a stable hash over the identifying fields of a record."""

    payload = "\n".join(
        [source_id, normalize_for_fingerprint(title), normalize_for_fingerprint(body)]
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class RecentFingerprints:
    """Bounded LRU of recently accepted fingerprints and their capture times.

    Two capture mechanisms may report the same notification a few hundred
    milliseconds apart, and not always in order, so the window compares the
    absolute difference between capture timestamps.
    """

    def __init__(self, window_ms: int = 2000, capacity: int = 50) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._window_ms = window_ms
        self._capacity = capacity
        self._entries: "OrderedDict[str, int]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def last_seen(self, fingerprint: str) -> Optional[int]:
        return self._entries.get(fingerprint)

    def is_duplicate(self, fingerprint: str, timestamp: int) -> bool:
        seen_at = self._entries.get(fingerprint)
        if seen_at is None:
            return False
        return abs(timestamp - seen_at) <= self._window_ms

    def remember(self, fingerprint: str, timestamp: int) -> None:
        self._entries[fingerprint] = timestamp
        self._entries.move_to_end(fingerprint)
        while len(self._entries) > self._capacity:
            self._entries.popitem(last=False)
