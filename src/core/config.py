"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Optional

DEFAULT_RETENTION_LIMIT = 1000


@dataclass(frozen=True)
class ForwardingConfig:
    """Read-only snapshot of the externally supplied configuration."""

    endpoint_url: Optional[str] = None
    auth_token: Optional[str] = None
    allow_list: Optional[FrozenSet[str]] = None
    retention_limit: int = DEFAULT_RETENTION_LIMIT
    outcome_limit: int = DEFAULT_RETENTION_LIMIT

    @property
    def forwarding_enabled(self) -> bool:
        return bool(self.endpoint_url)

    def is_allowed(self, source_id: str) -> bool:
        # An empty allow list behaves like an absent one.
        if not self.allow_list:
            return True
        return source_id in self.allow_list


@dataclass(frozen=True)
class DedupConfig:
    """Duplicate-suppression window settings."""

    window_seconds: float = 2.0
    capacity: int = 50


@dataclass(frozen=True)
class RetryConfig:
    """Retry and backoff settings for the forwarder."""

    max_retries: int = 3
    base_backoff_seconds: float = 1.0
    request_timeout_seconds: float = 15.0


@dataclass(frozen=True)
class QueueConfig:
    """Background forwarding worker settings."""

    capacity: int = 100
    workers: int = 1
    shutdown_grace_seconds: float = 5.0
