from __future__ import annotations

import asyncio
from typing import Mapping, Sequence

from core.config import ForwardingConfig, QueueConfig, RetryConfig
from core.dispatcher import ForwardingQueue
from core.filter import FilterDecision, NotificationFilter
from core.forwarder import Forwarder
from core.log_store import LogStore, OutcomeLog
from core.models import DeliveryAttempt, NotificationRecord, RawEvent
from core.processor import NotificationProcessor, PipelineState


class FakeConfigStore:
    def __init__(self, config: ForwardingConfig) -> None:
        self.config = config

    def snapshot(self) -> ForwardingConfig:
        return self.config


class FakeRepository:
    def __init__(self) -> None:
        self.records: list[NotificationRecord] = []
        self.attempts: list[DeliveryAttempt] = []

    def load_records(self) -> list[NotificationRecord]:
        return list(self.records)

    def replace_records(self, records: Sequence[NotificationRecord]) -> None:
        self.records = list(records)

    def load_attempts(self) -> list[DeliveryAttempt]:
        return list(self.attempts)

    def replace_attempts(self, attempts: Sequence[DeliveryAttempt]) -> None:
        self.attempts = list(attempts)


class FakeQueue:
    def __init__(self) -> None:
        self.submitted: list[NotificationRecord] = []

    def submit(self, record: NotificationRecord, config: ForwardingConfig) -> bool:
        self.submitted.append(record)
        return True


class FailingTransport:
    def __init__(self, status: int) -> None:
        self.status = status
        self.calls = 0

    def post(self, url: str, body: bytes, headers: Mapping[str, str], timeout: float) -> int:
        self.calls += 1
        return self.status


async def _no_sleep(delay: float) -> None:
    return None


def _processor(config: ForwardingConfig, repository: FakeRepository, queue) -> NotificationProcessor:
    return NotificationProcessor(
        config_store=FakeConfigStore(config),
        log_store=LogStore(repository, retention_limit=config.retention_limit),
        notification_filter=NotificationFilter(),
        queue=queue,
    )


def _event(title: str = "Ana", body: str = "hi", source_id: str = "com.chat", at: int = 1_000) -> RawEvent:
    return RawEvent(source_id=source_id, title=title, body=body, captured_at_ms=at, mechanism="listener")


def test_no_endpoint_logs_without_forwarding() -> None:
    repository = FakeRepository()
    queue = FakeQueue()
    result = _processor(ForwardingConfig(), repository, queue).on_event(_event())

    assert result.state is PipelineState.FORWARD_SKIPPED
    assert len(repository.records) == 1
    assert queue.submitted == []


def test_accepted_record_is_logged_then_enqueued() -> None:
    repository = FakeRepository()
    queue = FakeQueue()
    config = ForwardingConfig(endpoint_url="https://example.invalid/hook")
    result = _processor(config, repository, queue).on_event(_event())

    assert result.enqueued
    assert result.decision is FilterDecision.ACCEPTED
    assert repository.records[0] == queue.submitted[0]


def test_duplicate_from_second_mechanism_is_dropped() -> None:
    repository = FakeRepository()
    queue = FakeQueue()
    config = ForwardingConfig(endpoint_url="https://example.invalid/hook")
    processor = _processor(config, repository, queue)

    processor.on_event(_event(at=1_000))
    # The accessibility mechanism reports the same notification as fragments.
    second = processor.on_event(
        RawEvent(source_id="com.chat", text_fragments=("hi",), title="Ana", captured_at_ms=1_400, mechanism="accessibility")
    )

    assert second.decision is FilterDecision.DUPLICATE
    assert len(repository.records) == 1
    assert len(queue.submitted) == 1


def test_not_allowed_source_is_logged_but_not_forwarded() -> None:
    repository = FakeRepository()
    queue = FakeQueue()
    config = ForwardingConfig(endpoint_url="https://example.invalid/hook", allow_list=frozenset({"com.mail"}))
    result = _processor(config, repository, queue).on_event(_event())

    assert result.decision is FilterDecision.NOT_ALLOWED
    assert result.state is PipelineState.FORWARD_SKIPPED
    assert len(repository.records) == 1
    assert queue.submitted == []


def test_retention_change_applies_before_append() -> None:
    repository = FakeRepository()
    config_store = FakeConfigStore(ForwardingConfig(retention_limit=5))
    processor = NotificationProcessor(
        config_store=config_store,
        log_store=LogStore(repository, retention_limit=5),
        notification_filter=NotificationFilter(),
        queue=FakeQueue(),
    )
    for index in range(5):
        processor.on_event(_event(body=f"b{index}", at=index * 10_000))
    config_store.config = ForwardingConfig(retention_limit=2)
    processor.on_event(_event(body="latest", at=100_000))

    assert [record.body for record in repository.records] == ["latest", "b4"]


def test_outcome_limit_change_is_applied_on_next_event() -> None:
    repository = FakeRepository()
    repository.attempts = [
        DeliveryAttempt(
            source_id="com.chat",
            fingerprint=f"f{index}",
            record_timestamp=index,
            attempt_number=1,
            timestamp=index,
        )
        for index in range(5)
    ]
    config_store = FakeConfigStore(ForwardingConfig(outcome_limit=5))
    processor = NotificationProcessor(
        config_store=config_store,
        log_store=LogStore(repository),
        notification_filter=NotificationFilter(),
        queue=FakeQueue(),
        outcome_log=OutcomeLog(repository, limit=5),
    )
    config_store.config = ForwardingConfig(outcome_limit=2)
    processor.on_event(_event())

    assert [attempt.fingerprint for attempt in repository.attempts] == ["f0", "f1"]


def test_on_event_never_raises() -> None:
    class ExplodingConfigStore:
        def snapshot(self) -> ForwardingConfig:
            raise RuntimeError("collaborator crashed")

    processor = NotificationProcessor(
        config_store=ExplodingConfigStore(),
        log_store=LogStore(FakeRepository()),
        notification_filter=NotificationFilter(),
        queue=FakeQueue(),
    )
    assert processor.on_event(_event()).state is PipelineState.RECEIVED


def test_server_errors_end_in_permanent_failure_and_record_stays_logged() -> None:
    repository = FakeRepository()
    transport = FailingTransport(500)
    config = ForwardingConfig(endpoint_url="https://example.invalid/hook")

    async def scenario() -> None:
        forwarder = Forwarder(transport, OutcomeLog(repository), RetryConfig(), sleep=_no_sleep)
        queue = ForwardingQueue(forwarder.forward, QueueConfig())
        processor = _processor(config, repository, queue)
        queue.start()
        processor.on_event(_event())
        await queue.shutdown(grace_seconds=5.0)

    asyncio.run(scenario())

    assert transport.calls == 3
    assert len(repository.records) == 1
    assert len(repository.attempts) == 3
    assert repository.attempts[0].final
    assert repository.attempts[0].http_status == 500
