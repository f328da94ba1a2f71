from __future__ import annotations

import asyncio

import pytest

from pymaveo._mqtt import ConnectionState
from pymaveo.client import MaveoClient
from pymaveo.events import EventKind
from pymaveo.exceptions import MaveoNotConnectedError, MaveoStatusTimeoutError


def _client(config, factory, fake_auth) -> MaveoClient:
    client = MaveoClient(config, client_factory=factory)
    # Skip the Cognito round trips.
    client._connection._auth = fake_auth  # type: ignore[attr-defined]
    return client


async def _connect_with_status(client: MaveoClient, factory, wait_until, raw_status: int = 4) -> None:
    task = asyncio.create_task(client.connect())
    await wait_until(lambda: factory.clients and factory.latest.published)
    factory.latest.deliver("SERIAL123/rsp", {"StoA_s": raw_status})
    await task


@pytest.mark.parametrize(
    "action",
    ["open", "close", "stop", "move_to_intermediate", "light_on", "light_off", "request_status"],
)
def test_commands_require_connection(config, factory, fake_auth, action: str) -> None:
    client = _client(config, factory, fake_auth)

    with pytest.raises(MaveoNotConnectedError, match=r"Not connected\. Call connect\(\) first\."):
        getattr(client, action)()


@pytest.mark.asyncio
async def test_get_status_requires_connection(config, factory, fake_auth) -> None:
    client = _client(config, factory, fake_auth)

    with pytest.raises(MaveoNotConnectedError):
        await client.get_status()
    assert client.current_status is None
    assert client.is_connected() is False


@pytest.mark.asyncio
async def test_connect_waits_for_initial_status(config, factory, fake_auth, recorder, wait_until) -> None:
    client = _client(config, factory, fake_auth)
    client.subscribe(recorder)

    await _connect_with_status(client, factory, wait_until)

    assert client.is_connected() is True
    assert client.state is ConnectionState.CONNECTED
    assert client.current_status is not None
    assert client.current_status.is_closed is True
    assert recorder.kinds() == ["connected", "status"]

    await client.disconnect()
    assert client.is_connected() is False
    assert recorder.kinds()[-1] == "disconnected"


@pytest.mark.asyncio
async def test_commands_publish_to_device(config, factory, fake_auth, wait_until) -> None:
    client = _client(config, factory, fake_auth)
    await _connect_with_status(client, factory, wait_until)
    mqtt_client = factory.latest

    client.open()
    client.close()
    client.stop()
    client.move_to_intermediate()
    client.light_on()
    client.light_off()
    client.request_status()

    assert [payload for _, payload, _ in mqtt_client.published] == [
        {"AtoS_s": 0},
        {"AtoS_g": 1},
        {"AtoS_g": 2},
        {"AtoS_g": 0},
        {"AtoS_g": 3},
        {"AtoS_l": 1},
        {"AtoS_l": 0},
        {"AtoS_s": 0},
    ]
    await client.disconnect()


@pytest.mark.asyncio
async def test_get_status_returns_cached_value(config, factory, fake_auth, wait_until) -> None:
    client = _client(config, factory, fake_auth)
    await _connect_with_status(client, factory, wait_until, raw_status=3)
    published_before = len(factory.latest.published)

    status = await client.get_status()

    assert status.is_open is True
    assert len(factory.latest.published) == published_before
    await client.disconnect()


@pytest.mark.asyncio
async def test_status_updates_are_forwarded(config, factory, fake_auth, recorder, wait_until) -> None:
    client = _client(config, factory, fake_auth)
    await _connect_with_status(client, factory, wait_until)
    client.subscribe(recorder)

    factory.latest.deliver("SERIAL123/rsp", {"StoA_s": 1})
    await wait_until(lambda: recorder.of(EventKind.STATUS))

    assert recorder.of(EventKind.STATUS)[0].status.is_opening is True
    assert client.current_status is not None
    assert client.current_status.is_opening is True
    assert recorder.of(EventKind.MESSAGE) == []
    await client.disconnect()


@pytest.mark.asyncio
async def test_missing_initial_status_reports_rate_limit_hint(config, factory, fake_auth) -> None:
    client = _client(config, factory, fake_auth)

    with pytest.raises(MaveoStatusTimeoutError, match="rate-limited"):
        await client.connect()

    await client.disconnect()


@pytest.mark.asyncio
async def test_context_manager_disconnects(config, factory, fake_auth, wait_until) -> None:
    async with _client(config, factory, fake_auth) as client:
        await _connect_with_status(client, factory, wait_until)
        mqtt_client = factory.latest
        assert client.connection.events.listener_count == 2

    assert client.state is ConnectionState.IDLE
    assert mqtt_client.loop_stopped is True
    # The status correlator detached from the connection on exit.
    assert client.connection.events.listener_count == 1
