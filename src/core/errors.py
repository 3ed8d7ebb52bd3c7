"""Error taxonomy for the capture and forwarding pipeline.

None of these are fatal to the host process. Each one is caught and logged at
the component boundary where it happens.
"""

from __future__ import annotations


class NotifRelayError(Exception):
    """Base class for pipeline errors."""


class CaptureError(NotifRelayError):
    """A raw event could not be read; it is normalized to placeholders."""


class PersistenceError(NotifRelayError):
    """Writing the persisted history failed; in-memory state is kept."""


class ConfigMissing(NotifRelayError):
    """No endpoint is configured, so forwarding is skipped."""


class DeliveryError(NotifRelayError):
    """Transport failure or non-2xx response while forwarding a record."""

    def __init__(self, message: str, status: "int | None" = None) -> None:
        super().__init__(message)
        self.status = status
