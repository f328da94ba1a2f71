"""Status correlation on top of the broker message stream.

Device responses on ``{device_id}/rsp`` carry no request id, so a status
message cannot be matched to the query that caused it.  The next status
message received after a query is registered answers it, and every query
pending at that moment receives the same value.

Owns:
- the last known :class:`DoorStatus`
- pending status waiters, keyed by a generated handle
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Protocol

from pymaveo._constants import DEFAULT_STATUS_TIMEOUT, STATUS_FIELD
from pymaveo.events import EventEmitter, EventKind, MaveoEvent
from pymaveo.exceptions import MaveoProtocolError, MaveoStatusTimeoutError
from pymaveo.models.status import DoorStatus

_logger = logging.getLogger(__name__)


class StatusSource(Protocol):
    """What the correlator needs from the connection."""

    @property
    def events(self) -> EventEmitter: ...

    def request_status(self) -> None: ...


class StatusCorrelator:
    def __init__(
        self,
        connection: StatusSource,
        *,
        timeout: float = DEFAULT_STATUS_TIMEOUT,
        logger: logging.Logger | None = None,
    ) -> None:
        self._connection = connection
        self._timeout = timeout
        self._logger = logger or _logger
        self._events = EventEmitter()
        self._current: DoorStatus | None = None
        self._pending: dict[int, asyncio.Future[DoorStatus]] = {}
        self._handles = itertools.count(1)
        self._unsubscribe = connection.events.subscribe(self._on_connection_event)

    @property
    def events(self) -> EventEmitter:
        """``STATUS`` and ``ERROR`` notifications."""
        return self._events

    @property
    def current_status(self) -> DoorStatus | None:
        """Last known status, or ``None`` before the first status message."""
        return self._current

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def close(self) -> None:
        """Detach from the connection and cancel every pending waiter."""
        self._unsubscribe()
        for fut in self._pending.values():
            if not fut.done():
                fut.cancel()
        self._pending.clear()

    async def query(self, timeout: float | None = None) -> DoorStatus:
        """Return the cached status, or request one and wait for it.

        Raises
        ------
        MaveoNotConnectedError
            The status request could not be published.
        MaveoStatusTimeoutError
            No status message arrived within *timeout* seconds.
        """
        if self._current is not None:
            return self._current
        return await self._wait_next(timeout, request=True, message="Status request timeout")

    async def wait_for_status(self, timeout: float | None = None) -> DoorStatus:
        """Like :meth:`query` but without publishing a status request."""
        if self._current is not None:
            return self._current
        return await self._wait_next(timeout, request=False, message="Timeout waiting for status")

    async def _wait_next(self, timeout: float | None, *, request: bool, message: str) -> DoorStatus:
        effective_timeout = timeout if timeout is not None else self._timeout
        loop = asyncio.get_running_loop()
        handle = next(self._handles)
        fut: asyncio.Future[DoorStatus] = loop.create_future()
        self._pending[handle] = fut
        try:
            if request:
                self._connection.request_status()
            return await asyncio.wait_for(fut, effective_timeout)
        except TimeoutError as exc:
            raise MaveoStatusTimeoutError(message) from exc
        finally:
            self._pending.pop(handle, None)

    def _on_connection_event(self, event: MaveoEvent) -> None:
        if event.kind is EventKind.MESSAGE and event.payload is not None:
            self.on_message(event.payload)

    def on_message(self, payload: dict[str, Any]) -> None:
        """Consume one inbound payload from the device response topic."""
        if STATUS_FIELD not in payload:
            self._logger.debug("Ignoring message without %s: %s", STATUS_FIELD, payload)
            return
        try:
            status = DoorStatus.from_payload_value(payload[STATUS_FIELD])
        except ValueError as exc:
            self._events.emit(MaveoEvent.failure(MaveoProtocolError(f"Failed to parse status: {exc}")))
            return

        self._current = status
        waiters = list(self._pending.values())
        self._pending.clear()
        for fut in waiters:
            if not fut.done():
                fut.set_result(status)
        self._logger.debug(
            "Door status %s (raw=%d) resolved %d waiter(s)",
            status.door_state.label,
            status.raw_value,
            len(waiters),
        )
        self._events.emit(MaveoEvent.status_changed(status))
