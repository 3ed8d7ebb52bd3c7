"""Record forwarding with bounded retry (core domain).

The forwarder is integration-agnostic: it builds the wire payload and retry
schedule, and relies on the HttpTransport port for the actual POST. It only
ever runs on the background forwarding path, so backoff sleeps never delay
event capture.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.config import ForwardingConfig, RetryConfig
from core.errors import ConfigMissing, DeliveryError
from core.log_store import OutcomeLog
from core.models import DeliveryAttempt, DeliveryOutcome, DeliveryStatus, NotificationRecord
from core.normalizer import now_ms
from core.ports import HttpTransport

LOGGER = logging.getLogger(__name__)

USER_AGENT = "notifrelay/0.1"


def build_payload(record: NotificationRecord) -> Dict[str, object]:
    """Return the JSON body expected by the remote endpoint."""

    return {
        "app": record.source_id,
        "title": record.title,
        "text": record.body,
        "timestamp": record.timestamp,
    }


def build_headers(config: ForwardingConfig) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json; charset=utf-8",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }
    if config.auth_token:
        headers["Authorization"] = config.auth_token
    return headers


def backoff_schedule(retry: RetryConfig) -> List[float]:
    """Delays slept between attempts: base, 2*base, 4*base, ..."""

    return [retry.base_backoff_seconds * (2 ** index) for index in range(max(retry.max_retries - 1, 0))]


def _run_detached(func: Callable[..., Any], *args: Any) -> "asyncio.Future[Any]":
    """Run a blocking call on a daemon thread and await its result.

    Unlike the default executor, the thread is never joined: cancelling the
    awaiting task abandons the call, and neither ``asyncio.run`` nor
    interpreter exit waits for it to finish.
    """

    loop = asyncio.get_running_loop()
    future: "asyncio.Future[Any]" = loop.create_future()

    def _settle(result: Any, error: Optional[BaseException]) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def _target() -> None:
        result: Any = None
        error: Optional[BaseException] = None
        try:
            result = func(*args)
        except Exception as exc:
            error = exc
        try:
            loop.call_soon_threadsafe(_settle, result, error)
        except RuntimeError:
            LOGGER.debug("Event loop closed before an abandoned POST finished")

    threading.Thread(target=_target, name="notifrelay-post", daemon=True).start()
    return future


class Forwarder:
    """Delivers records to the configured endpoint, retrying transient failures."""

    def __init__(
        self,
        transport: HttpTransport,
        outcome_log: OutcomeLog,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._transport = transport
        self._outcomes = outcome_log
        self._retry = retry_config or RetryConfig()
        self._sleep = sleep
        self._clock = clock

    async def forward(self, record: NotificationRecord, config: ForwardingConfig) -> DeliveryOutcome:
        """Attempt delivery up to ``max_retries`` times with exponential backoff."""

        if not config.endpoint_url:
            raise ConfigMissing("no endpoint_url configured")

        url = config.endpoint_url
        body = json.dumps(build_payload(record), ensure_ascii=False).encode("utf-8")
        headers = build_headers(config)
        delays = backoff_schedule(self._retry)
        max_attempts = max(self._retry.max_retries, 1)
        history: List[DeliveryAttempt] = []

        for attempt_number in range(1, max_attempts + 1):
            status: Optional[int] = None
            error: Optional[str] = None
            try:
                status = await _run_detached(
                    self._transport.post,
                    url,
                    body,
                    headers,
                    self._retry.request_timeout_seconds,
                )
                if not 200 <= status < 300:
                    raise DeliveryError(f"HTTP {status}", status=status)
            except DeliveryError as exc:
                error = str(exc)
            except Exception as exc:
                error = f"transport error: {type(exc).__name__}: {exc}"

            succeeded = error is None
            last = succeeded or attempt_number == max_attempts
            attempt = DeliveryAttempt(
                source_id=record.source_id,
                fingerprint=record.fingerprint,
                record_timestamp=record.timestamp,
                attempt_number=attempt_number,
                timestamp=self._clock(),
                http_status=status,
                error=error,
                final=last,
            )
            history.append(attempt)
            self._outcomes.append(attempt)

            if succeeded:
                LOGGER.info("POST attempt #%s for %s -> HTTP %s", attempt_number, record.source_id, status)
                return DeliveryOutcome(
                    record=record,
                    status=DeliveryStatus.DELIVERED,
                    attempts=attempt_number,
                    last_status=status,
                    history=tuple(history),
                )

            LOGGER.warning("POST attempt #%s for %s failed: %s", attempt_number, record.source_id, error)
            if not last:
                await self._sleep(delays[attempt_number - 1])

        LOGGER.error("Delivery for %s failed after %s attempts", record.source_id, max_attempts)
        return DeliveryOutcome(
            record=record,
            status=DeliveryStatus.FAILED,
            attempts=max_attempts,
            last_status=history[-1].http_status,
            last_error=history[-1].error,
            history=tuple(history),
        )
