"""Application entry point for the notifrelay pipeline."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import IO, Optional

from art import tprint
from dotenv import load_dotenv
from rich.console import Console

import settings
from adapters.http_transport import UrllibTransport
from adapters.json_config_store import JsonConfigStore
from adapters.jsonl_event_source import JsonLinesEventSource
from adapters.record_formatting import attempts_table, records_table, records_to_csv, records_to_json
from adapters.sqlite_storage import SQLiteStorage
from core.config import DedupConfig, QueueConfig, RetryConfig
from core.dispatcher import ForwardingQueue
from core.filter import NotificationFilter
from core.forwarder import Forwarder
from core.log_store import LogStore, OutcomeLog
from core.models import DeliveryOutcome
from core.processor import NotificationProcessor

NAME = "NOTIFRELAY"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict, auth_token: Optional[str]) -> list[str]:
    # The endpoint token is always masked; other env values only on request.
    values = [auth_token] if auth_token else []
    redact_cfg = config.get("redact", {}) if config else {}
    if redact_cfg.get("enabled", False):
        for name in redact_cfg.get("patterns", []):
            value = os.getenv(name)
            if value:
                values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict, auth_token: Optional[str] = None) -> None:
    config = config or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config, auth_token)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        # stderr keeps stdout free for exported history.
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", settings.DEFAULT_LOG_PATH)
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


class _OutcomeCounter:
    """Tally delivery outcomes for the shutdown summary."""

    def __init__(self) -> None:
        self.delivered = 0
        self.failed = 0

    def __call__(self, outcome: DeliveryOutcome) -> None:
        if outcome.delivered:
            self.delivered += 1
        else:
            self.failed += 1


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


async def _serve(config_store: JsonConfigStore, stream: IO[str], grace_seconds: float) -> None:
    logger = logging.getLogger(__name__)
    config = config_store.snapshot()

    storage = _open_storage()
    log_store = LogStore(storage, retention_limit=config.retention_limit)
    outcome_log = OutcomeLog(storage, limit=config.outcome_limit)
    logger.info("%s records restored from %s", len(log_store), settings.DB_PATH)

    forwarder = Forwarder(UrllibTransport(), outcome_log, RetryConfig())
    counter = _OutcomeCounter()
    queue = ForwardingQueue(
        forwarder.forward,
        QueueConfig(shutdown_grace_seconds=grace_seconds),
        on_outcome=counter,
    )
    processor = NotificationProcessor(
        config_store=config_store,
        log_store=log_store,
        notification_filter=NotificationFilter(DedupConfig()),
        queue=queue,
        outcome_log=outcome_log,
    )

    if config.forwarding_enabled:
        logger.info("Forwarding to %s", config.endpoint_url)
    else:
        logger.info("No endpoint_url configured; capture and history only")

    queue.start()
    try:
        events = await JsonLinesEventSource(stream).run(processor)
    finally:
        abandoned = await queue.shutdown()
    logger.info(
        "Shutdown complete: events=%s, delivered=%s, failed=%s, abandoned=%s",
        events,
        counter.delivered,
        counter.failed,
        abandoned + queue.dropped,
    )


def _run(events_path: str, grace_seconds: float) -> None:
    _print_banner()
    config_store = JsonConfigStore(settings.CONFIG_PATH)
    _configure_logging(config_store.raw().get("logging", {}), config_store.snapshot().auth_token)
    logger = logging.getLogger(__name__)
    logger.info("Starting notifrelay")

    if events_path == "-":
        asyncio.run(_serve(config_store, sys.stdin, grace_seconds))
        return
    with open(events_path, "r", encoding="utf-8") as stream:
        asyncio.run(_serve(config_store, stream, grace_seconds))


def _history(limit: Optional[int], fmt: str) -> None:
    storage = _open_storage()
    records = storage.load_records()
    if limit is not None:
        records = records[: max(limit, 0)]
    if fmt == "json":
        sys.stdout.write(records_to_json(records) + "\n")
    elif fmt == "csv":
        sys.stdout.write(records_to_csv(records))
    else:
        Console().print(records_table(records))


def _outcomes(limit: Optional[int]) -> None:
    attempts = _open_storage().load_attempts()
    if limit is not None:
        attempts = attempts[: max(limit, 0)]
    Console().print(attempts_table(attempts))


def _clear() -> None:
    config = JsonConfigStore(settings.CONFIG_PATH).snapshot()
    log_store = LogStore(_open_storage(), retention_limit=config.retention_limit)
    removed = len(log_store)
    log_store.clear()
    print(f"Removed {removed} records from {settings.DB_PATH}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="notifrelay")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Capture events and forward them")
    run_parser.add_argument(
        "--events",
        default="-",
        help="JSON-lines event stream to read ('-' for stdin)",
    )
    run_parser.add_argument(
        "--grace",
        type=float,
        default=QueueConfig().shutdown_grace_seconds,
        help="Seconds to let in-flight forwarding finish on shutdown",
    )

    history_parser = subparsers.add_parser("history", help="Show the recent notification history")
    history_parser.add_argument("--limit", type=int, default=None)
    history_parser.add_argument("--format", choices=("table", "json", "csv"), default="table")

    outcomes_parser = subparsers.add_parser("outcomes", help="Show the delivery outcome log")
    outcomes_parser.add_argument("--limit", type=int, default=None)

    subparsers.add_parser("clear", help="Empty the notification history")

    args = parser.parse_args(argv)
    if args.command == "history":
        _history(args.limit, args.format)
        return
    if args.command == "outcomes":
        _outcomes(args.limit)
        return
    if args.command == "clear":
        _clear()
        return
    if args.command == "run":
        _run(args.events, args.grace)
        return
    _run("-", QueueConfig().shutdown_grace_seconds)


if __name__ == "__main__":
    main()
