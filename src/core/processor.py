"""Core notification processing pipeline.

This module is integration-agnostic. It only relies on ports for config and
persistence plus the forwarding queue, enabling any capture mechanism to feed
it without changes here.

The pipeline enforces a strict order for each raw event:
1) Normalize into a NotificationRecord
2) Filter (allow list, duplicate window); duplicates stop here
3) Append to the LogStore, synchronously
4) Hand the record to the forwarding queue without waiting, unless no
   endpoint is configured or the source is not allowed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.dispatcher import ForwardingQueue
from core.filter import FilterDecision, NotificationFilter
from core.log_store import LogStore, OutcomeLog
from core.models import NotificationRecord, RawEvent
from core.normalizer import normalize
from core.ports import ConfigStore

LOGGER = logging.getLogger(__name__)


class PipelineState(str, Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    FILTERED = "filtered"
    LOGGED = "logged"
    FORWARD_ENQUEUED = "forward_enqueued"
    FORWARD_SKIPPED = "forward_skipped"


@dataclass(frozen=True)
class ProcessingResult:
    """Where a raw event ended up after one pass through the pipeline."""

    state: PipelineState
    record: Optional[NotificationRecord] = None
    decision: Optional[FilterDecision] = None

    @property
    def enqueued(self) -> bool:
        return self.state is PipelineState.FORWARD_ENQUEUED


class NotificationProcessor:
    """Orchestrates normalization, filtering, persistence, and forwarding.

    Events are expected one at a time from the event loop, so the LogStore is
    never mutated concurrently from the capture path.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        log_store: LogStore,
        notification_filter: NotificationFilter,
        queue: ForwardingQueue,
        outcome_log: Optional[OutcomeLog] = None,
    ) -> None:
        self._config_store = config_store
        self._log_store = log_store
        self._filter = notification_filter
        self._queue = queue
        self._outcome_log = outcome_log

    def on_event(self, raw: RawEvent) -> ProcessingResult:
        """Process one raw event. Never raises."""

        try:
            return self._handle(raw)
        except Exception:
            LOGGER.exception("Error while processing %s event", getattr(raw, "mechanism", "unknown"))
            return ProcessingResult(state=PipelineState.RECEIVED)

    def _handle(self, raw: RawEvent) -> ProcessingResult:
        config = self._config_store.snapshot()
        record = normalize(raw)

        decision = self._filter.evaluate(record, config)
        if decision is FilterDecision.DUPLICATE:
            # Same notification reported by a second capture mechanism.
            LOGGER.info("Dedup skip for %s (same notification)", record.source_id)
            return ProcessingResult(state=PipelineState.FILTERED, record=record, decision=decision)

        # Apply retention changes before the append so the cap is honoured.
        self._log_store.resize(config.retention_limit)
        if self._outcome_log is not None:
            self._outcome_log.resize(config.outcome_limit)
        self._log_store.append(record)

        if decision is FilterDecision.NOT_ALLOWED:
            LOGGER.debug("Source %s not in allow list; logged only", record.source_id)
            return ProcessingResult(state=PipelineState.FORWARD_SKIPPED, record=record, decision=decision)

        if not config.forwarding_enabled:
            LOGGER.debug("No endpoint configured; %s logged only", record.source_id)
            return ProcessingResult(state=PipelineState.FORWARD_SKIPPED, record=record, decision=decision)

        if not self._queue.submit(record, config):
            return ProcessingResult(state=PipelineState.LOGGED, record=record, decision=decision)

        LOGGER.info("Record from %s logged and queued for forwarding", record.source_id)
        return ProcessingResult(state=PipelineState.FORWARD_ENQUEUED, record=record, decision=decision)
