"""High-level async client for a Maveo garage door."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from pymaveo._client.status import StatusCorrelator
from pymaveo._mqtt import ClientFactory, ConnectionState, MqttConnection
from pymaveo._transport import CognitoTransport
from pymaveo.auth import CognitoAuth
from pymaveo.config import MaveoConfig
from pymaveo.events import EventEmitter, EventKind, EventListener, MaveoEvent
from pymaveo.exceptions import MaveoNotConnectedError, MaveoStatusTimeoutError
from pymaveo.models.commands import DoorCommand, LightCommand
from pymaveo.models.status import DoorStatus

_logger = logging.getLogger(__name__)

_FORWARDED_CONNECTION_EVENTS = frozenset(
    {EventKind.CONNECTED, EventKind.DISCONNECTED, EventKind.RECONNECTING, EventKind.ERROR}
)


class MaveoClient:
    """Async client for controlling a Maveo garage door via the Maveo cloud.

    Usage::

        async with MaveoClient(config) as client:
            client.subscribe(print)
            await client.connect()
            client.open()

    Commands are fire-and-forget: they raise :class:`MaveoNotConnectedError`
    when there is no connection and report broker-side failures as
    ``ERROR`` events.
    """

    def __init__(
        self,
        config: MaveoConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._transport = CognitoTransport(session, timeout=config.http_timeout)
        self._auth = CognitoAuth(
            config.username,
            config.password,
            self._transport,
            region=config.region,
            user_pool_id=config.user_pool_id,
            client_id=config.client_id,
            identity_pool_id=config.identity_pool_id,
        )
        self._connection = MqttConnection(
            self._auth,
            config,
            client_factory=client_factory,
            logger=logging.getLogger("pymaveo.mqtt"),
        )
        self._status = StatusCorrelator(self._connection, timeout=config.status_timeout)
        self._events = EventEmitter()
        self._connection.events.subscribe(self._forward_connection_event)
        self._status.events.subscribe(self._events.emit)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> MaveoClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        try:
            await self.disconnect()
        finally:
            self._status.close()
            await self._transport.close()

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Authenticate, connect to the broker and wait for the first status.

        Raises
        ------
        MaveoAuthenticationError
            The identity handshake failed.
        MaveoConnectionError
            The broker connection could not be established.
        MaveoStatusTimeoutError
            The device did not report its status within ``status_timeout``.
        """
        await self._connection.connect()
        try:
            await self._status.wait_for_status(self._config.status_timeout)
        except MaveoStatusTimeoutError as exc:
            raise MaveoStatusTimeoutError(
                "Timeout waiting for initial status. Maveo may have rate-limited your connection. "
                "Try again in 10 minutes."
            ) from exc

    async def disconnect(self) -> None:
        """Disconnect from the broker.  Safe to call when not connected."""
        await self._connection.disconnect()

    def is_connected(self) -> bool:
        return self._connection.is_connected()

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def connection(self) -> MqttConnection:
        return self._connection

    @property
    def auth(self) -> CognitoAuth:
        return self._auth

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register *listener* for every notification; returns an unsubscribe callable."""
        return self._events.subscribe(listener)

    def _forward_connection_event(self, event: MaveoEvent) -> None:
        if event.kind in _FORWARDED_CONNECTION_EVENTS:
            self._events.emit(event)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Open the garage door."""
        self._ensure_connected().send_door_command(DoorCommand.OPEN)

    def close(self) -> None:
        """Close the garage door."""
        self._ensure_connected().send_door_command(DoorCommand.CLOSE)

    def stop(self) -> None:
        """Stop the door movement."""
        self._ensure_connected().send_door_command(DoorCommand.STOP)

    def move_to_intermediate(self) -> None:
        """Move the door to its intermediate position."""
        self._ensure_connected().send_door_command(DoorCommand.INTERMEDIATE)

    def light_on(self) -> None:
        self._ensure_connected().send_light_command(LightCommand.ON)

    def light_off(self) -> None:
        self._ensure_connected().send_light_command(LightCommand.OFF)

    def request_status(self) -> None:
        """Ask the device for its status; the answer arrives as a ``STATUS`` event."""
        self._ensure_connected().request_status()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(self, *, timeout: float | None = None) -> DoorStatus:
        """Return the cached status, or request a fresh one and wait for it."""
        self._ensure_connected()
        return await self._status.query(timeout)

    @property
    def current_status(self) -> DoorStatus | None:
        """Cached status without contacting the device."""
        return self._status.current_status

    def _ensure_connected(self) -> MqttConnection:
        if not self._connection.is_connected():
            raise MaveoNotConnectedError("Not connected. Call connect() first.")
        return self._connection
