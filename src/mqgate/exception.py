"""Exception hierarchy for broker gateway operations.

Validation errors are raised before any network call. Remote failures carry
the HTTP status when the broker answered at all.
"""

from __future__ import annotations

__all__ = (
    "BrokerError",
    "DuplicateIdError",
    "InactiveError",
    "InvalidArgumentError",
    "NotConnectedError",
    "NotFoundError",
    "RemoteCallFailedError",
)


class BrokerError(Exception):
    """Base exception for all gateway operations."""


class InvalidArgumentError(BrokerError, ValueError):
    """Malformed connection id or connection configuration."""


class DuplicateIdError(BrokerError):
    """A connection with the same id is already registered."""


class NotFoundError(BrokerError, LookupError):
    """No connection registered under the requested id."""


class InactiveError(BrokerError):
    """The connection is registered but its client reports disconnected."""


class NotConnectedError(BrokerError):
    """Operation attempted on a client that has not connected."""


class RemoteCallFailedError(BrokerError):
    """Network or HTTP-layer failure talking to the broker."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
