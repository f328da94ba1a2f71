"""Notifications emitted by the connection, the status correlator and the client.

Every component publishes a single :class:`MaveoEvent` type through its own
:class:`EventEmitter`.  Listeners register once and receive every kind;
they switch on :attr:`MaveoEvent.kind`.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pymaveo.models.status import DoorStatus

_logger = logging.getLogger(__name__)


class EventKind(StrEnum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"
    MESSAGE = "message"
    STATUS = "status"
    ERROR = "error"


class MaveoEvent(BaseModel):
    """A single notification.

    Only the fields relevant to ``kind`` are populated:

    * ``RECONNECTING``: ``attempt``, ``max_attempts``, ``delay`` (seconds)
    * ``MESSAGE``: ``topic``, ``payload``
    * ``STATUS``: ``status``
    * ``ERROR``: ``error``
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: EventKind
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    attempt: int | None = None
    max_attempts: int | None = None
    delay: float | None = None
    topic: str | None = None
    payload: dict[str, Any] | None = None
    status: DoorStatus | None = None
    error: Exception | None = None

    @property
    def message(self) -> str:
        """Error text for ``ERROR`` events, empty otherwise."""
        return str(self.error) if self.error is not None else ""

    @classmethod
    def connected(cls) -> MaveoEvent:
        return cls(kind=EventKind.CONNECTED)

    @classmethod
    def disconnected(cls) -> MaveoEvent:
        return cls(kind=EventKind.DISCONNECTED)

    @classmethod
    def reconnecting(cls, attempt: int, max_attempts: int, delay: float) -> MaveoEvent:
        return cls(kind=EventKind.RECONNECTING, attempt=attempt, max_attempts=max_attempts, delay=delay)

    @classmethod
    def inbound(cls, topic: str, payload: dict[str, Any]) -> MaveoEvent:
        return cls(kind=EventKind.MESSAGE, topic=topic, payload=payload)

    @classmethod
    def status_changed(cls, status: DoorStatus) -> MaveoEvent:
        return cls(kind=EventKind.STATUS, status=status)

    @classmethod
    def failure(cls, error: Exception) -> MaveoEvent:
        return cls(kind=EventKind.ERROR, error=error)


EventListener = Callable[[MaveoEvent], None]


class EventEmitter:
    """Fan-out of :class:`MaveoEvent` to any number of listeners.

    A listener that raises is logged and skipped; the remaining listeners
    still receive the event.
    """

    def __init__(self) -> None:
        self._listeners: dict[int, EventListener] = {}
        self._handles = itertools.count(1)

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        handle = next(self._handles)
        self._listeners[handle] = listener

        def _unsubscribe() -> None:
            self._listeners.pop(handle, None)

        return _unsubscribe

    def emit(self, event: MaveoEvent) -> None:
        for listener in list(self._listeners.values()):
            try:
                listener(event)
            except Exception:
                _logger.debug("Event listener failed for %s", event.kind, exc_info=True)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
