"""Background forwarding queue.

The capture path only ever calls ``submit``, which never blocks. A small fixed
pool of worker tasks drains the queue and runs the forwarder, so slow or
failing endpoints cannot delay event capture. Shutdown is bounded by a grace
period; anything still in flight after it is cancelled and not delivered.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from core.config import ForwardingConfig, QueueConfig
from core.models import DeliveryOutcome, NotificationRecord

LOGGER = logging.getLogger(__name__)

ForwardFn = Callable[[NotificationRecord, ForwardingConfig], Awaitable[DeliveryOutcome]]
OutcomeCallback = Callable[[DeliveryOutcome], None]

_Job = Tuple[NotificationRecord, ForwardingConfig]


class ForwardingQueue:
    """Bounded asyncio queue with a fixed number of forwarding workers."""

    def __init__(
        self,
        forward: ForwardFn,
        queue_config: Optional[QueueConfig] = None,
        on_outcome: Optional[OutcomeCallback] = None,
    ) -> None:
        self._forward = forward
        self._config = queue_config or QueueConfig()
        self._on_outcome = on_outcome
        self._queue: Optional["asyncio.Queue[_Job]"] = None
        self._workers: List["asyncio.Task[None]"] = []
        self._accepting = False
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._accepting

    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Create the queue and worker tasks on the running event loop."""

        if self._accepting:
            return
        queue: "asyncio.Queue[_Job]" = asyncio.Queue(maxsize=self._config.capacity)
        self._queue = queue
        self._workers = [
            asyncio.create_task(self._worker(index, queue), name=f"forwarder-{index}")
            for index in range(max(self._config.workers, 1))
        ]
        self._accepting = True

    def submit(self, record: NotificationRecord, config: ForwardingConfig) -> bool:
        """Enqueue a record for forwarding without waiting.

        Returns False when the queue is not running or is full; the record is
        then not forwarded but stays in the history.
        """

        if not self._accepting or self._queue is None:
            LOGGER.warning("Forwarding queue not running; %s not forwarded", record.source_id)
            return False
        try:
            self._queue.put_nowait((record, config))
        except asyncio.QueueFull:
            self.dropped += 1
            LOGGER.warning("Forwarding queue full; dropped record from %s", record.source_id)
            return False
        return True

    async def _worker(self, index: int, queue: "asyncio.Queue[_Job]") -> None:
        while True:
            record, config = await queue.get()
            try:
                outcome = await self._forward(record, config)
                if self._on_outcome is not None:
                    self._on_outcome(outcome)
            except asyncio.CancelledError:
                LOGGER.info("Forwarding cancelled for %s", record.source_id)
                raise
            except Exception:
                LOGGER.exception("Forwarder %s crashed while delivering %s", index, record.source_id)
            finally:
                queue.task_done()

    async def shutdown(self, grace_seconds: Optional[float] = None) -> int:
        """Stop accepting work, drain for up to the grace period, then cancel.

        Returns the number of queued records that were abandoned.
        """

        if self._queue is None:
            return 0
        self._accepting = False
        grace = self._config.shutdown_grace_seconds if grace_seconds is None else grace_seconds
        try:
            await asyncio.wait_for(self._queue.join(), timeout=grace)
        except asyncio.TimeoutError:
            LOGGER.warning("Forwarding did not drain within %.1fs; cancelling", grace)

        abandoned = self._queue.qsize()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        if abandoned:
            LOGGER.warning("%s queued records were not forwarded", abandoned)
        return abandoned
