"""Custom exception hierarchy for pymaveo."""

from __future__ import annotations


class MaveoError(Exception):
    """Base exception for all pymaveo errors."""


class MaveoConfigError(MaveoError):
    """Invalid or missing configuration."""


class MaveoTransportError(MaveoError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class MaveoAuthenticationError(MaveoError):
    """One of the identity handshake steps failed.

    Transport failures, rejected requests and malformed responses are
    all reported through this single type; the message names the step
    and carries the upstream error body when there is one.
    """


class MaveoConnectionError(MaveoError):
    """The broker connection could not be opened or was refused."""


class MaveoConnectionTimeoutError(MaveoConnectionError):
    """No CONNACK arrived within the configured connect timeout."""


class MaveoNotConnectedError(MaveoConnectionError):
    """A command or status query was issued without a live connection."""


class MaveoReconnectExhaustedError(MaveoConnectionError):
    """The reconnect attempt ceiling was reached; no further attempts follow."""

    def __init__(self, message: str, *, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(message)


class MaveoProtocolError(MaveoError):
    """Malformed inbound payload or a publish/subscribe rejected by the broker."""


class MaveoStatusTimeoutError(MaveoError):
    """No status message arrived before the query deadline."""
