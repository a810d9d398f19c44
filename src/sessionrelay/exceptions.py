"""Custom exception hierarchy for sessionrelay."""

from __future__ import annotations


class SessionRelayError(Exception):
    """Base exception for all sessionrelay errors."""


class SessionRelayConfigError(SessionRelayError):
    """Invalid or missing configuration."""


class AcquisitionError(SessionRelayError):
    """The credential source is unreachable or holds no value."""


class ConfigUnavailableError(SessionRelayError):
    """The persisted key-value store could not be read or written.

    Callers degrade to memory-only operation when they see this.
    """


class DeliveryError(SessionRelayError):
    """Delivery of a token to the collector failed."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)


class DeliveryRejectedError(DeliveryError):
    """Collector answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        endpoint: str = "",
        body: str = "",
    ) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message, endpoint=endpoint)


class RelayTransportError(DeliveryError):
    """Network-level failure (connection refused, DNS, timeout)."""


class EmptyTokenError(DeliveryError, ValueError):
    """A forced delivery was requested without a token to send."""
