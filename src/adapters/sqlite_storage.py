"""SQLite storage adapter.

Implements the core RecordRepository port using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from typing import Sequence

from core.errors import PersistenceError
from core.models import DeliveryAttempt, NotificationRecord


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the RecordRepository contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None lets us issue BEGIN IMMEDIATE explicitly.
        conn = sqlite3.connect(self._db_path, timeout=5.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - records: the notification history snapshot, position 0 is newest
        - delivery_attempts: the rolling delivery outcome log, position 0 is newest
        """

        try:
            conn = self._connect()
            try:
                # records mirrors the in-memory LogStore. It is rewritten as a
                # whole on every mutation.
                # Fields:
                # - position: 0-based index, most-recent-first (PRIMARY KEY)
                # - source_id: originating application id
                # - title / body: normalized text
                # - timestamp: capture time in epoch milliseconds
                # - fingerprint: dedup hash computed at capture time
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS records (
                        position INTEGER PRIMARY KEY,
                        source_id TEXT NOT NULL,
                        title TEXT NOT NULL,
                        body TEXT NOT NULL,
                        timestamp INTEGER NOT NULL,
                        fingerprint TEXT NOT NULL
                    )
                    """
                )
                # delivery_attempts keeps one row per POST attempt so a UI can
                # show why a record was or was not delivered.
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS delivery_attempts (
                        position INTEGER PRIMARY KEY,
                        source_id TEXT NOT NULL,
                        fingerprint TEXT NOT NULL,
                        record_timestamp INTEGER NOT NULL,
                        attempt_number INTEGER NOT NULL,
                        http_status INTEGER,
                        error TEXT,
                        timestamp INTEGER NOT NULL,
                        final INTEGER NOT NULL DEFAULT 0
                    )
                    """
                )
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceError(f"cannot initialise {self._db_path}: {exc}") from exc

    def _replace(self, table: str, columns: Sequence[str], rows: Sequence[tuple]) -> None:
        placeholders = ", ".join("?" for _ in columns)
        insert = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        try:
            conn = self._connect()
            try:
                # BEGIN IMMEDIATE takes the write lock up front, so two
                # processes sharing a database cannot interleave snapshots.
                conn.execute("BEGIN IMMEDIATE")
                try:
                    conn.execute(f"DELETE FROM {table}")
                    conn.executemany(insert, rows)
                except sqlite3.Error:
                    conn.execute("ROLLBACK")
                    raise
                conn.execute("COMMIT")
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to write {table}: {exc}") from exc

    def _select(self, query: str) -> list[sqlite3.Row]:
        try:
            conn = self._connect()
            try:
                return conn.execute(query).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to read {self._db_path}: {exc}") from exc

    def load_records(self) -> list[NotificationRecord]:
        """Return the persisted history, most-recent-first."""

        rows = self._select(
            "SELECT source_id, title, body, timestamp, fingerprint FROM records ORDER BY position"
        )
        return [
            NotificationRecord(
                source_id=row["source_id"],
                title=row["title"],
                body=row["body"],
                timestamp=int(row["timestamp"]),
                fingerprint=row["fingerprint"],
            )
            for row in rows
        ]

    def replace_records(self, records: Sequence[NotificationRecord]) -> None:
        """Atomically replace the persisted history with ``records``."""

        self._replace(
            "records",
            ("position", "source_id", "title", "body", "timestamp", "fingerprint"),
            [
                (index, record.source_id, record.title, record.body, record.timestamp, record.fingerprint)
                for index, record in enumerate(records)
            ],
        )

    def load_attempts(self) -> list[DeliveryAttempt]:
        """Return the persisted delivery outcome log, most-recent-first."""

        rows = self._select(
            """
            SELECT source_id, fingerprint, record_timestamp, attempt_number,
                   http_status, error, timestamp, final
            FROM delivery_attempts
            ORDER BY position
            """
        )
        return [
            DeliveryAttempt(
                source_id=row["source_id"],
                fingerprint=row["fingerprint"],
                record_timestamp=int(row["record_timestamp"]),
                attempt_number=int(row["attempt_number"]),
                timestamp=int(row["timestamp"]),
                http_status=row["http_status"],
                error=row["error"],
                final=bool(row["final"]),
            )
            for row in rows
        ]

    def replace_attempts(self, attempts: Sequence[DeliveryAttempt]) -> None:
        """Atomically replace the persisted delivery outcome log."""

        self._replace(
            "delivery_attempts",
            (
                "position",
                "source_id",
                "fingerprint",
                "record_timestamp",
                "attempt_number",
                "http_status",
                "error",
                "timestamp",
                "final",
            ),
            [
                (
                    index,
                    attempt.source_id,
                    attempt.fingerprint,
                    attempt.record_timestamp,
                    attempt.attempt_number,
                    attempt.http_status,
                    attempt.error,
                    attempt.timestamp,
                    int(attempt.final),
                )
                for index, attempt in enumerate(attempts)
            ],
        )
