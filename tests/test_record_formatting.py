from __future__ import annotations

import csv
import io
import json

from adapters.record_formatting import (
    attempts_table,
    clip_text,
    describe_attempt,
    records_table,
    records_to_csv,
    records_to_json,
)
from core.models import DeliveryAttempt, NotificationRecord

RECORDS = [
    NotificationRecord(source_id="com.chat", title="Ana", body="hi", timestamp=1_700_000_000_000),
    NotificationRecord(source_id="com.mail", title="Invoice", body="due", timestamp=1_699_999_000_000),
]


def _attempt(**overrides) -> DeliveryAttempt:
    values = dict(
        source_id="com.chat",
        fingerprint="fp",
        record_timestamp=1_700_000_000_000,
        attempt_number=1,
        timestamp=1_700_000_001_000,
    )
    values.update(overrides)
    return DeliveryAttempt(**values)


def test_json_export_keeps_order_and_fields() -> None:
    exported = json.loads(records_to_json(RECORDS))
    assert [row["source_id"] for row in exported] == ["com.chat", "com.mail"]
    assert set(exported[0]) == {"timestamp", "source_id", "title", "body", "fingerprint"}


def test_csv_export_has_header_and_rows() -> None:
    rows = list(csv.DictReader(io.StringIO(records_to_csv(RECORDS))))
    assert len(rows) == 2
    assert rows[1]["title"] == "Invoice"


def test_describe_attempt() -> None:
    assert describe_attempt(_attempt(http_status=200, final=True)) == "delivered (HTTP 200)"
    assert describe_attempt(_attempt(http_status=500, error="HTTP 500")) == "retrying: HTTP 500"
    assert describe_attempt(_attempt(error="transport error: refused", final=True)) == (
        "failed permanently: transport error: refused"
    )


def test_tables_have_one_row_per_entry() -> None:
    assert records_table(RECORDS).row_count == 2
    assert attempts_table([_attempt(http_status=200)]).row_count == 1


def test_clip_text() -> None:
    assert clip_text("short") == "short"
    assert clip_text("x" * 100, limit=10) == "xxxxxxx..."
