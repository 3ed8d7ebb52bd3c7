"""Bounded, persisted history logs (core domain).

Both the record history and the delivery outcome log share one policy: newest
entry first, oldest evicted past the cap, and the whole resulting sequence
persisted after every mutation. The in-memory view stays authoritative for the
process lifetime when a persist fails.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, Iterable, List, Optional, Sequence, TypeVar

from core.config import DEFAULT_RETENTION_LIMIT
from core.errors import PersistenceError
from core.models import DeliveryAttempt, NotificationRecord
from core.ports import RecordRepository

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class BoundedLog(Generic[T]):
    """Most-recent-first sequence capped at ``limit`` entries."""

    def __init__(
        self,
        name: str,
        persist: Callable[[Sequence[T]], None],
        limit: int = DEFAULT_RETENTION_LIMIT,
        initial: Iterable[T] = (),
    ) -> None:
        if limit < 1:
            raise ValueError(f"{name} limit must be at least 1")
        self._name = name
        self._persist = persist
        self._limit = limit
        self._items: List[T] = list(initial)[:limit]

    @property
    def limit(self) -> int:
        return self._limit

    def __len__(self) -> int:
        return len(self._items)

    def append(self, item: T) -> None:
        """Insert at the front, evict from the back, then persist."""

        self._items.insert(0, item)
        del self._items[self._limit :]
        self._save()

    def list(self, limit: Optional[int] = None) -> List[T]:
        """Return a copy, most-recent-first, optionally capped."""

        if limit is None:
            return list(self._items)
        return self._items[: max(limit, 0)]

    def clear(self) -> None:
        self._items = []
        self._save()

    def resize(self, limit: int) -> None:
        """Apply a new cap, evicting the oldest entries when it shrinks."""

        if limit < 1:
            raise ValueError(f"{self._name} limit must be at least 1")
        if limit == self._limit:
            return
        self._limit = limit
        if len(self._items) > limit:
            del self._items[limit:]
            self._save()

    def _save(self) -> None:
        try:
            self._persist(list(self._items))
        except PersistenceError:
            LOGGER.exception("Failed to persist %s (%s entries kept in memory)", self._name, len(self._items))


class LogStore(BoundedLog[NotificationRecord]):
    """Recent notification records, most-recent-first."""

    def __init__(self, repository: RecordRepository, retention_limit: int = DEFAULT_RETENTION_LIMIT) -> None:
        super().__init__(
            "notification log",
            repository.replace_records,
            limit=retention_limit,
            initial=_load(repository.load_records, "notification log"),
        )


class OutcomeLog(BoundedLog[DeliveryAttempt]):
    """Rolling log of delivery attempts, most-recent-first."""

    def __init__(self, repository: RecordRepository, limit: int = DEFAULT_RETENTION_LIMIT) -> None:
        super().__init__(
            "delivery outcome log",
            repository.replace_attempts,
            limit=limit,
            initial=_load(repository.load_attempts, "delivery outcome log"),
        )


def _load(loader: Callable[[], Sequence[T]], name: str) -> Sequence[T]:
    # A missing or unreadable snapshot starts the process with an empty log.
    try:
        return loader()
    except PersistenceError:
        LOGGER.exception("Failed to load %s, starting empty", name)
        return ()
