from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any

import pytest

from pymaveo.config import MaveoConfig
from pymaveo.events import MaveoEvent
from pymaveo.models.credentials import AuthResult, AwsCredentials


class FakeMqttClient:
    """Stands in for ``paho.mqtt.client.Client``.

    ``loop_start`` answers with a CONNACK carrying *connack* (``None`` means
    the broker never answers) and ``subscribe`` answers with a SUBACK
    carrying *suback*.  Both call the registered callbacks synchronously,
    like paho does from its network thread.
    """

    def __init__(
        self,
        client_id: str,
        *,
        connack: int | None = 0,
        suback: int | None = 1,
        connect_error: BaseException | None = None,
        connect_delay: float = 0.0,
        publish_rc: int = 0,
    ) -> None:
        self.client_id = client_id
        self.connack = connack
        self.suback = suback
        self.connect_error = connect_error
        self.connect_delay = connect_delay
        self.publish_rc = publish_rc

        self.on_connect: Callable[..., None] | None = None
        self.on_subscribe: Callable[..., None] | None = None
        self.on_message: Callable[..., None] | None = None
        self.on_publish: Callable[..., None] | None = None
        self.on_disconnect: Callable[..., None] | None = None
        self.connect_timeout: float | None = None

        self.logger: Any = None
        self.ws_path: str | None = None
        self.ws_headers: dict[str, str] | None = None
        self.tls = False
        self.connect_args: tuple[str, int, int] | None = None
        self.loop_started = False
        self.loop_stopped = False
        self.disconnect_calls = 0
        self.calls: list[str] = []
        self.subscriptions: list[tuple[str, int]] = []
        self.published: list[tuple[str, dict[str, Any], int]] = []
        self._connected = False
        self._mid = 0

    # paho surface

    def enable_logger(self, logger: Any = None) -> None:
        self.logger = logger

    def ws_set_options(self, path: str = "/mqtt", headers: dict[str, str] | None = None) -> None:
        self.ws_path = path
        self.ws_headers = headers

    def tls_set(self) -> None:
        self.tls = True

    def connect(self, host: str, port: int = 1883, keepalive: int = 60) -> None:
        self.connect_args = (host, port, keepalive)
        if self.connect_delay:
            time.sleep(self.connect_delay)
        self.calls.append("connect")
        if self.connect_error is not None:
            raise self.connect_error

    def loop_start(self) -> None:
        self.calls.append("loop_start")
        self.loop_started = True
        if self.connack is None:
            return
        self._connected = self.connack == 0
        assert self.on_connect is not None
        self.on_connect(self, None, {}, self.connack, None)

    def loop_stop(self) -> None:
        self.calls.append("loop_stop")
        self.loop_stopped = True

    def disconnect(self) -> None:
        self.calls.append("disconnect")
        self.disconnect_calls += 1
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def subscribe(self, topic: str, qos: int = 0) -> tuple[int, int]:
        self._mid += 1
        self.subscriptions.append((topic, qos))
        if self.suback is not None:
            assert self.on_subscribe is not None
            self.on_subscribe(self, None, self._mid, [self.suback], None)
        return 0, self._mid

    def publish(self, topic: str, payload: str, qos: int = 0) -> SimpleNamespace:
        self._mid += 1
        self.published.append((topic, json.loads(payload), qos))
        return SimpleNamespace(rc=self.publish_rc, mid=self._mid)

    # test drivers

    def drop(self, reason: int = 7) -> None:
        """Simulate the broker closing the connection."""
        self._connected = False
        assert self.on_disconnect is not None
        self.on_disconnect(self, None, {}, reason, None)

    def deliver(self, topic: str, payload: dict[str, Any] | bytes) -> None:
        raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        assert self.on_message is not None
        self.on_message(self, None, SimpleNamespace(topic=topic, payload=raw))

    def reject_publish(self, mid: int, reason: int = 0x80) -> None:
        assert self.on_publish is not None
        self.on_publish(self, None, mid, reason, None)


class FakeClientFactory:
    """Builds :class:`FakeMqttClient` instances from queued or default options."""

    def __init__(self) -> None:
        self.default: dict[str, Any] = {}
        self.plans: list[dict[str, Any]] = []
        self.clients: list[FakeMqttClient] = []

    def queue(self, **options: Any) -> None:
        self.plans.append(options)

    def __call__(self, client_id: str) -> FakeMqttClient:
        options = self.plans.pop(0) if self.plans else self.default
        client = FakeMqttClient(client_id, **options)
        self.clients.append(client)
        return client

    @property
    def latest(self) -> FakeMqttClient:
        return self.clients[-1]


class FakeAuth:
    """Credential broker double that counts handshakes."""

    def __init__(
        self,
        *,
        expires_in: float = 3600.0,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.expires_in = expires_in
        self.delay = delay
        self.error = error
        self.calls = 0
        self._credentials: AwsCredentials | None = None

    @property
    def credentials(self) -> AwsCredentials | None:
        return self._credentials

    def is_credentials_expired(self) -> bool:
        return self._credentials is None or self._credentials.is_expired

    async def authenticate(self) -> AuthResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self._credentials = AwsCredentials(
            access_key_id="AKIDEXAMPLE",
            secret_access_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
            session_token="session-token",
            expiration=datetime.now(UTC) + timedelta(seconds=self.expires_in),
        )
        return AuthResult(credentials=self._credentials, identity_id="eu-central-1:identity")


class EventRecorder:
    """Listener that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[MaveoEvent] = []

    def __call__(self, event: MaveoEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [str(e.kind) for e in self.events]

    def of(self, kind: str) -> list[MaveoEvent]:
        return [e for e in self.events if e.kind == kind]


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)


@pytest.fixture
def config() -> MaveoConfig:
    return MaveoConfig(
        username="user@example.com",
        password="secret",
        device_id="SERIAL123",
        connect_timeout=1.0,
        status_timeout=0.5,
        max_reconnect_attempts=3,
        base_reconnect_delay=0.01,
    )


@pytest.fixture
def factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture
def fake_auth() -> FakeAuth:
    return FakeAuth()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    return _wait_until


@pytest.fixture
def make_auth() -> type[FakeAuth]:
    return FakeAuth
