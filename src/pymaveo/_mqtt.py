"""MQTT-over-WebSocket connection to the Maveo IoT broker.

paho-mqtt runs its network loop on its own thread.  Its callbacks never
touch connection state directly; they are marshalled onto the asyncio loop
with ``call_soon_threadsafe`` and every state transition happens there.
Blocking socket work (connect, disconnect, joining the network thread)
runs in the loop's default executor.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt
from paho.mqtt.client import WebsocketConnectionError

from pymaveo._constants import COMMAND_TOPIC, IOT_PATH, IOT_SERVICE, RESPONSE_TOPIC
from pymaveo._crypto.signing import build_websocket_auth_headers
from pymaveo.config import MaveoConfig
from pymaveo.events import EventEmitter, MaveoEvent
from pymaveo.exceptions import (
    MaveoAuthenticationError,
    MaveoConnectionError,
    MaveoConnectionTimeoutError,
    MaveoNotConnectedError,
    MaveoProtocolError,
    MaveoReconnectExhaustedError,
)
from pymaveo.models.commands import CommandMessage, DoorCommand, LightCommand
from pymaveo.models.credentials import AuthResult, AwsCredentials

_logger = logging.getLogger(__name__)

# CONNACK reason codes that mean the broker rejected our credentials.
_NOT_AUTHORIZED_CODES = frozenset({134, 135})


class ConnectionState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class CredentialSource(Protocol):
    """What the connection needs from the credential broker."""

    @property
    def credentials(self) -> AwsCredentials | None: ...

    def is_credentials_expired(self) -> bool: ...

    async def authenticate(self) -> AuthResult: ...


ClientFactory = Callable[[str], mqtt.Client]


def create_paho_client(client_id: str) -> mqtt.Client:
    """MQTT 3.1.1 client over WebSockets with paho's own reconnect disabled."""
    return mqtt.Client(
        callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
        client_id=client_id,
        clean_session=True,
        protocol=mqtt.MQTTv311,
        transport="websockets",
        reconnect_on_failure=False,
    )


def _reason_value(reason_code: Any) -> int:
    return int(getattr(reason_code, "value", reason_code))


def _reason_failed(reason_code: Any) -> bool:
    return _reason_value(reason_code) >= 0x80


def _stop_client(client: mqtt.Client) -> None:
    try:
        client.disconnect()
    finally:
        client.loop_stop()


class MqttConnection:
    """Owns one broker connection for one device and reconnects it.

    Notifications (``CONNECTED``, ``DISCONNECTED``, ``RECONNECTING``,
    ``MESSAGE``, ``ERROR``) are delivered through :attr:`events`.  Errors
    raised on asynchronous paths never propagate into unrelated call
    stacks; they only arrive as ``ERROR`` events.
    """

    def __init__(
        self,
        auth: CredentialSource,
        config: MaveoConfig,
        *,
        client_factory: ClientFactory | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._auth = auth
        self._config = config
        self._client_factory = client_factory or create_paho_client
        self._logger = logger or _logger
        self._events = EventEmitter()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._client: mqtt.Client | None = None
        self._state = ConnectionState.IDLE
        self._connack: asyncio.Future[None] | None = None
        self._opening: asyncio.Future[None] | None = None
        self._subscribe_mid: int | None = None
        self._reconnect_attempts = 0
        self._keep_connected = True
        self._reauth_required = False
        self._reconnect_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def events(self) -> EventEmitter:
        return self._events

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_attempts(self) -> int:
        """Consecutive reconnect attempts since the last successful CONNACK."""
        return self._reconnect_attempts

    @property
    def response_topic(self) -> str:
        return RESPONSE_TOPIC.format(device_id=self._config.device_id)

    @property
    def command_topic(self) -> str:
        return COMMAND_TOPIC.format(device_id=self._config.device_id)

    def is_connected(self) -> bool:
        client = self._client
        return self._state is ConnectionState.CONNECTED and client is not None and client.is_connected()

    def is_credentials_expired(self) -> bool:
        return self._auth.is_credentials_expired()

    def reconnect_delay(self, attempt: int) -> float:
        """Backoff before reconnect *attempt* (1-indexed), in seconds."""
        return self._config.base_reconnect_delay * (2 ** (attempt - 1))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the broker connection.

        A no-op while already connected or while a connection attempt is in
        flight.

        Raises
        ------
        MaveoAuthenticationError
            The identity handshake failed.
        MaveoConnectionTimeoutError
            No CONNACK within ``connect_timeout``.
        MaveoConnectionError
            The transport could not be opened or the broker refused us.
        """
        if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            self._logger.debug("MQTT connect ignored in state=%s", self._state)
            return
        self._keep_connected = True
        await self._connect()

    async def disconnect(self) -> None:
        """Close the connection and stop any further reconnection."""
        self._keep_connected = False
        self._cancel_reconnect()

        connack = self._connack
        if connack is not None and not connack.done():
            connack.set_exception(MaveoConnectionError("Disconnected while connecting"))

        client = self._client
        if client is None:
            self._state = ConnectionState.IDLE
            return

        self._logger.debug("MQTT disconnect requested")
        pending_open = self._opening
        self._state = ConnectionState.DISCONNECTING
        self._client = None
        self._subscribe_mid = None
        loop = asyncio.get_running_loop()
        try:
            await self._wait_for_open(pending_open)
            await loop.run_in_executor(None, _stop_client, client)
        finally:
            self._state = ConnectionState.IDLE
        self._events.emit(MaveoEvent.disconnected())

    async def _connect(self) -> None:
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._state = ConnectionState.CONNECTING
        try:
            credentials = await self._resolve_credentials()
            if not self._keep_connected:
                raise MaveoConnectionError("Disconnected while connecting")

            headers = build_websocket_auth_headers(
                credentials,
                host=self._config.iot_host,
                region=self._config.region,
                service=IOT_SERVICE,
                path=IOT_PATH,
            )
            client = self._client_factory(self._config.device_id)
            self._configure_client(client, headers)
            self._client = client
            self._connack = loop.create_future()

            self._logger.debug(
                "MQTT connecting host=%s port=%s client_id=%s",
                self._config.iot_host,
                self._config.iot_port,
                self._config.device_id,
            )
            try:
                async with asyncio.timeout(self._config.connect_timeout):
                    opening = self._opening = loop.run_in_executor(None, self._open_blocking, client)
                    # Shielded so the worker is still tracked after a timeout.
                    await asyncio.shield(opening)
                    await self._connack
            except TimeoutError as exc:
                raise MaveoConnectionTimeoutError("Connection timeout") from exc
            except WebsocketConnectionError as exc:
                self._reauth_required = True
                raise MaveoConnectionError(f"WebSocket handshake rejected: {exc}") from exc
            except OSError as exc:
                raise MaveoConnectionError(
                    f"Failed to connect to {self._config.iot_host}:{self._config.iot_port}: {exc}"
                ) from exc
        except BaseException:
            await self._discard_client()
            if self._state is ConnectionState.CONNECTING:
                self._state = ConnectionState.IDLE
            raise
        finally:
            self._opening = None
            connack = self._connack
            self._connack = None
            if connack is not None and connack.done() and not connack.cancelled():
                # Mark the outcome retrieved even when cancellation won the race.
                connack.exception()

    async def _resolve_credentials(self) -> AwsCredentials:
        if self._reauth_required or self._auth.is_credentials_expired():
            self._logger.debug("Credentials expired or rejected; authenticating")
            await self._auth.authenticate()
            self._reauth_required = False
        credentials = self._auth.credentials
        if credentials is None:
            raise MaveoAuthenticationError("No credentials available")
        return credentials

    def _configure_client(self, client: mqtt.Client, headers: dict[str, str]) -> None:
        client.enable_logger(self._logger)
        client.ws_set_options(path=IOT_PATH, headers=headers)
        client.tls_set()
        client.connect_timeout = self._config.connect_timeout
        client.on_connect = self._on_connect
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message
        client.on_publish = self._on_publish
        client.on_disconnect = self._on_disconnect

    def _open_blocking(self, client: mqtt.Client) -> None:
        client.connect(self._config.iot_host, self._config.iot_port, keepalive=self._config.keepalive)
        client.loop_start()

    async def _discard_client(self) -> None:
        client = self._client
        self._client = None
        self._subscribe_mid = None
        if client is None:
            return
        await self._wait_for_open(self._opening)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _stop_client, client)
        except Exception:
            self._logger.debug("MQTT client teardown failed", exc_info=True)

    async def _wait_for_open(self, pending_open: asyncio.Future[None] | None) -> None:
        """Let an abandoned blocking open finish so it cannot start a loop after teardown."""
        if pending_open is None or pending_open.done():
            return
        try:
            await pending_open
        except Exception:
            self._logger.debug("MQTT open finished after the attempt was abandoned", exc_info=True)

    # ------------------------------------------------------------------
    # Reconnection
    # ------------------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        task = self._reconnect_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            return

        self._reconnect_attempts += 1
        max_attempts = self._config.max_reconnect_attempts
        if self._reconnect_attempts > max_attempts:
            self._state = ConnectionState.STOPPED
            self._keep_connected = False
            self._reconnect_task = None
            self._logger.warning("MQTT giving up after %d reconnect attempts", max_attempts)
            self._events.emit(
                MaveoEvent.failure(
                    MaveoReconnectExhaustedError("Max reconnection attempts reached", attempts=max_attempts)
                )
            )
            return

        attempt = self._reconnect_attempts
        delay = self.reconnect_delay(attempt)
        self._state = ConnectionState.RECONNECTING
        self._logger.debug("MQTT reconnecting in %.3fs (attempt %d/%d)", delay, attempt, max_attempts)
        self._events.emit(MaveoEvent.reconnecting(attempt, max_attempts, delay))

        loop = self._loop or asyncio.get_running_loop()
        self._reconnect_task = loop.create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if not self._keep_connected or self._state is not ConnectionState.RECONNECTING:
            return
        try:
            await self._connect()
        except Exception as exc:
            # A failed attempt closes that attempt's transport; it counts
            # toward the ceiling like any other closure.
            self._logger.debug("MQTT reconnect attempt %d failed: %s", self._reconnect_attempts, exc)
            self._events.emit(MaveoEvent.failure(exc))
            if self._keep_connected:
                self._schedule_reconnect()

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    # ------------------------------------------------------------------
    # paho callbacks (network thread) -> event loop
    # ------------------------------------------------------------------

    def _dispatch(self, handler: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(handler, *args)

    def _on_connect(
        self,
        client: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        self._dispatch(self._handle_connect, client, reason_code)

    def _on_subscribe(
        self,
        client: mqtt.Client,
        _userdata: Any,
        mid: int,
        reason_code_list: Any,
        _properties: Any,
    ) -> None:
        self._dispatch(self._handle_subscribe, client, mid, list(reason_code_list))

    def _on_message(self, client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        self._dispatch(self._handle_message, client, msg.topic, bytes(msg.payload))

    def _on_publish(
        self,
        client: mqtt.Client,
        _userdata: Any,
        mid: int,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        self._dispatch(self._handle_publish, client, mid, reason_code)

    def _on_disconnect(
        self,
        client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        self._dispatch(self._handle_disconnect, client, reason_code)

    # ------------------------------------------------------------------
    # Event-loop handlers
    # ------------------------------------------------------------------

    def _handle_connect(self, client: mqtt.Client, reason_code: Any) -> None:
        if client is not self._client:
            return
        connack = self._connack
        if _reason_failed(reason_code):
            self._logger.warning("MQTT connect refused: %s", reason_code)
            if _reason_value(reason_code) in _NOT_AUTHORIZED_CODES:
                self._reauth_required = True
            if connack is not None and not connack.done():
                connack.set_exception(MaveoConnectionError(f"Connection refused: {reason_code}"))
            return

        self._logger.debug("MQTT connected reason=%s", reason_code)
        self._state = ConnectionState.CONNECTED
        self._reconnect_attempts = 0
        self._subscribe(client)
        self._events.emit(MaveoEvent.connected())
        if connack is not None and not connack.done():
            connack.set_result(None)

    def _subscribe(self, client: mqtt.Client) -> None:
        topic = self.response_topic
        self._logger.debug("MQTT subscribing topic=%s", topic)
        result, mid = client.subscribe(topic, qos=1)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._events.emit(
                MaveoEvent.failure(
                    MaveoProtocolError(f"Failed to subscribe to {topic}: {mqtt.error_string(result)}")
                )
            )
            return
        self._subscribe_mid = mid

    def _handle_subscribe(self, client: mqtt.Client, mid: int, reason_codes: list[Any]) -> None:
        if client is not self._client or mid != self._subscribe_mid:
            return
        self._subscribe_mid = None
        topic = self.response_topic
        if not reason_codes or any(_reason_failed(rc) for rc in reason_codes):
            self._events.emit(
                MaveoEvent.failure(MaveoProtocolError(f"Failed to subscribe to {topic}: {reason_codes}"))
            )
            return
        self._logger.debug("MQTT subscribed topic=%s", topic)
        try:
            self.request_status()
        except MaveoNotConnectedError as exc:
            self._events.emit(MaveoEvent.failure(exc))

    def _handle_message(self, client: mqtt.Client, topic: str, raw: bytes) -> None:
        if client is not self._client:
            return
        try:
            payload = json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            self._events.emit(MaveoEvent.failure(MaveoProtocolError(f"Failed to parse message: {exc}")))
            return
        if not isinstance(payload, dict):
            self._events.emit(
                MaveoEvent.failure(MaveoProtocolError(f"Failed to parse message: not a JSON object: {payload!r}"))
            )
            return
        self._logger.debug("Received PUBLISH topic=%s payload=%s", topic, payload)
        self._events.emit(MaveoEvent.inbound(topic, payload))

    def _handle_publish(self, client: mqtt.Client, mid: int, reason_code: Any) -> None:
        if client is not self._client or not _reason_failed(reason_code):
            return
        self._events.emit(
            MaveoEvent.failure(MaveoProtocolError(f"Failed to publish command (mid={mid}): {reason_code}"))
        )

    def _handle_disconnect(self, client: mqtt.Client, reason_code: Any) -> None:
        if client is not self._client:
            return
        self._logger.debug("MQTT connection closed: %s", reason_code)

        if self._state is ConnectionState.CONNECTING:
            # _connect() owns teardown while the attempt is in flight.
            connack = self._connack
            if connack is not None and not connack.done():
                connack.set_exception(MaveoConnectionError(f"Connection closed before CONNACK: {reason_code}"))
            return

        self._client = None
        self._subscribe_mid = None
        self._spawn(self._teardown(client))
        self._state = ConnectionState.IDLE
        self._events.emit(MaveoEvent.disconnected())

        if self._keep_connected:
            self._schedule_reconnect()

    async def _teardown(self, client: mqtt.Client) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _stop_client, client)
        except Exception:
            self._logger.debug("MQTT client teardown failed", exc_info=True)

    def _spawn(self, coro: Any) -> None:
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, message: CommandMessage) -> None:
        """Fire-and-forget publish on the device command topic.

        Raises
        ------
        MaveoNotConnectedError
            When there is no live connection.  Broker-side failures are
            reported as ``ERROR`` events instead.
        """
        client = self._client
        if client is None or not self.is_connected():
            raise MaveoNotConnectedError("Not connected to MQTT broker")

        topic = self.command_topic
        payload = json.dumps(message.to_payload(), separators=(",", ":"))
        self._logger.debug("Publishing to %s: %s", topic, payload)
        info = client.publish(topic, payload, qos=1)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._events.emit(
                MaveoEvent.failure(MaveoProtocolError(f"Failed to publish command: {mqtt.error_string(info.rc)}"))
            )

    def send_door_command(self, command: DoorCommand) -> None:
        self.publish(CommandMessage.for_door(command))

    def send_light_command(self, command: LightCommand) -> None:
        self.publish(CommandMessage.for_light(command))

    def request_status(self) -> None:
        self.publish(CommandMessage.for_status())
