"""Shared formatting for the persisted history surface.

Keeping formatting here keeps the CLI table and the JSON/CSV exports
consistent with each other.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime
from typing import Iterable, Sequence

from rich.table import Table

from core.models import DeliveryAttempt, NotificationRecord

RECORD_FIELDS = ("timestamp", "source_id", "title", "body", "fingerprint")


def format_timestamp(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def clip_text(value: str, limit: int = 64) -> str:
    if len(value) <= limit:
        return value
    return value[: limit - 3] + "..."


def record_to_dict(record: NotificationRecord) -> dict:
    return {field: getattr(record, field) for field in RECORD_FIELDS}


def records_to_json(records: Iterable[NotificationRecord]) -> str:
    return json.dumps([record_to_dict(record) for record in records], indent=2, ensure_ascii=False)


def records_to_csv(records: Iterable[NotificationRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(RECORD_FIELDS))
    writer.writeheader()
    writer.writerows(record_to_dict(record) for record in records)
    return buffer.getvalue()


def records_table(records: Sequence[NotificationRecord]) -> Table:
    table = Table(title=f"Notifications ({len(records)})")
    table.add_column("captured", no_wrap=True)
    table.add_column("source")
    table.add_column("title")
    table.add_column("body")
    for record in records:
        table.add_row(
            format_timestamp(record.timestamp),
            record.source_id,
            clip_text(record.title, 32),
            clip_text(record.body),
        )
    return table


def describe_attempt(attempt: DeliveryAttempt) -> str:
    """Human-readable result of one attempt, e.g. ``HTTP 500`` or ``delivered``."""

    if attempt.succeeded:
        return f"delivered (HTTP {attempt.http_status})"
    reason = attempt.error or f"HTTP {attempt.http_status}"
    if attempt.final:
        return f"failed permanently: {reason}"
    return f"retrying: {reason}"


def attempts_table(attempts: Sequence[DeliveryAttempt]) -> Table:
    table = Table(title=f"Delivery attempts ({len(attempts)})")
    table.add_column("when", no_wrap=True)
    table.add_column("source")
    table.add_column("captured", no_wrap=True)
    table.add_column("#", justify="right")
    table.add_column("result")
    for attempt in attempts:
        table.add_row(
            format_timestamp(attempt.timestamp),
            attempt.source_id,
            format_timestamp(attempt.record_timestamp),
            str(attempt.attempt_number),
            describe_attempt(attempt),
        )
    return table
