"""Allow-list and duplicate filtering (core domain)."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from core.config import DedupConfig, ForwardingConfig
from core.dedup import RecentFingerprints
from core.models import NotificationRecord

LOGGER = logging.getLogger(__name__)


class FilterDecision(str, Enum):
    ACCEPTED = "accepted"
    NOT_ALLOWED = "not_allowed"
    DUPLICATE = "duplicate"


class NotificationFilter:
    """Suppresses disallowed sources and repeated captures of one notification.

    Only accepted records enter the duplicate window, so a record rejected by
    the allow list never masks a later one.
    """

    def __init__(self, dedup_config: Optional[DedupConfig] = None) -> None:
        dedup_config = dedup_config or DedupConfig()
        self._recent = RecentFingerprints(
            window_ms=int(dedup_config.window_seconds * 1000),
            capacity=dedup_config.capacity,
        )

    def evaluate(self, record: NotificationRecord, config: ForwardingConfig) -> FilterDecision:
        if not config.is_allowed(record.source_id):
            return FilterDecision.NOT_ALLOWED

        if self._recent.is_duplicate(record.fingerprint, record.timestamp):
            LOGGER.debug("Duplicate capture from %s suppressed", record.source_id)
            return FilterDecision.DUPLICATE

        self._recent.remember(record.fingerprint, record.timestamp)
        return FilterDecision.ACCEPTED

    def accept(self, record: NotificationRecord, config: ForwardingConfig) -> bool:
        return self.evaluate(record, config) is FilterDecision.ACCEPTED
