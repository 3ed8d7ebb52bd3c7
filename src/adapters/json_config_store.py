"""JSON file configuration adapter.

Implements the core ConfigStore port. The file is owned by an external
collaborator (a settings UI, a provisioning script), so it is re-read whenever
its modification time changes and every key has a single canonical name.
Secrets can stay out of the file: the auth token falls back to the
NOTIFRELAY_AUTH_TOKEN environment variable, loaded via python-dotenv.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

from dotenv import load_dotenv

from core.config import DEFAULT_RETENTION_LIMIT, ForwardingConfig

LOGGER = logging.getLogger(__name__)

AUTH_TOKEN_ENV = "NOTIFRELAY_AUTH_TOKEN"


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _positive_int(data: dict, key: str, default: int) -> int:
    raw = data.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        LOGGER.warning("Invalid %s=%r in config; using %s", key, raw, default)
        return default
    if value < 1:
        LOGGER.warning("%s must be at least 1 (got %s); using %s", key, value, default)
        return default
    return value


def _allow_list(raw: Any) -> Optional[frozenset[str]]:
    if raw is None:
        return None
    if isinstance(raw, str) or not isinstance(raw, (list, tuple, set)):
        LOGGER.warning("allow_list must be a list of source ids; ignoring it")
        return None
    return frozenset(item.strip() for item in (str(entry) for entry in raw) if item.strip())


def parse_forwarding_config(data: dict, env_token: Optional[str] = None) -> ForwardingConfig:
    """Build a typed snapshot from the raw JSON mapping."""

    return ForwardingConfig(
        endpoint_url=_optional_str(data.get("endpoint_url")),
        auth_token=_optional_str(data.get("auth_token")) or _optional_str(env_token),
        allow_list=_allow_list(data.get("allow_list")),
        retention_limit=_positive_int(data, "retention_limit", DEFAULT_RETENTION_LIMIT),
        outcome_limit=_positive_int(data, "outcome_limit", DEFAULT_RETENTION_LIMIT),
    )


def load_json_config(path: str) -> dict:
    """Load the config file; a missing file means every default applies."""

    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be an object: {path}")
    return data


class JsonConfigStore:
    """ConfigStore backed by a JSON file, cached until the file changes."""

    def __init__(self, path: str, use_dotenv: bool = True) -> None:
        self._path = path
        if use_dotenv:
            load_dotenv()
        self._mtime: Optional[float] = None
        self._raw: dict = {}
        self._snapshot = ForwardingConfig(auth_token=_optional_str(os.getenv(AUTH_TOKEN_ENV)))
        self._loaded = False

    @property
    def path(self) -> str:
        return self._path

    def raw(self) -> dict:
        """Return the last successfully parsed JSON mapping."""

        self.snapshot()
        return dict(self._raw)

    def snapshot(self) -> ForwardingConfig:
        try:
            mtime: Optional[float] = os.stat(self._path).st_mtime
        except FileNotFoundError:
            mtime = None
        except OSError as exc:
            LOGGER.error("Cannot stat config %s: %s", self._path, exc)
            return self._snapshot

        if self._loaded and mtime == self._mtime:
            return self._snapshot

        try:
            data = load_json_config(self._path)
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError. Keep the previous snapshot.
            LOGGER.error("Cannot read config %s: %s", self._path, exc)
            return self._snapshot

        self._raw = data
        self._snapshot = parse_forwarding_config(data, os.getenv(AUTH_TOKEN_ENV))
        self._mtime = mtime
        self._loaded = True
        LOGGER.debug(
            "Config loaded from %s (forwarding %s)",
            self._path,
            "enabled" if self._snapshot.forwarding_enabled else "disabled",
        )
        return self._snapshot
