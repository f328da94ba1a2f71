from __future__ import annotations

import pytest

from pymaveo.config import MaveoConfig
from pymaveo.exceptions import MaveoConfigError

_ENV_KEYS = (
    "MAVEO_USERNAME",
    "MAVEO_PASSWORD",
    "MAVEO_DEVICE_ID",
    "MAVEO_REGION",
    "MAVEO_IOT_HOST",
    "MAVEO_CONNECT_TIMEOUT",
    "MAVEO_STATUS_TIMEOUT",
    "MAVEO_MAX_RECONNECT_ATTEMPTS",
    "MAVEO_BASE_RECONNECT_DELAY",
    "MAVEO_KEEPALIVE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = MaveoConfig(username="user@example.com", password="secret", device_id="SERIAL123")

    assert config.region == "eu-central-1"
    assert config.iot_host == "eu-central-1.iot-prod.marantec-cloud.de"
    assert config.iot_port == 443
    assert config.connect_timeout == 30.0
    assert config.status_timeout == 10.0
    assert config.max_reconnect_attempts == 10
    assert config.base_reconnect_delay == 1.0
    assert config.keepalive == 60


@pytest.mark.parametrize("field", ["username", "password", "device_id"])
@pytest.mark.parametrize("value", ["", "   "])
def test_required_fields(field: str, value: str) -> None:
    kwargs = {"username": "user@example.com", "password": "secret", "device_id": "SERIAL123", field: value}

    with pytest.raises(MaveoConfigError, match=f"MaveoConfig: {field} is required"):
        MaveoConfig(**kwargs)


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"connect_timeout": 0}, "connect_timeout must be positive"),
        ({"status_timeout": -1.0}, "status_timeout must be positive"),
        ({"max_reconnect_attempts": -1}, "max_reconnect_attempts must not be negative"),
        ({"base_reconnect_delay": -0.5}, "base_reconnect_delay must not be negative"),
    ],
)
def test_numeric_bounds(overrides: dict[str, float], message: str) -> None:
    with pytest.raises(MaveoConfigError, match=message):
        MaveoConfig(username="user@example.com", password="secret", device_id="SERIAL123", **overrides)


def test_zero_reconnect_attempts_is_allowed() -> None:
    config = MaveoConfig(username="u", password="p", device_id="d", max_reconnect_attempts=0)

    assert config.max_reconnect_attempts == 0


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAVEO_USERNAME", "env@example.com")
    monkeypatch.setenv("MAVEO_PASSWORD", "env-secret")
    monkeypatch.setenv("MAVEO_DEVICE_ID", "ENVSERIAL")
    monkeypatch.setenv("MAVEO_STATUS_TIMEOUT", "2.5")
    monkeypatch.setenv("MAVEO_MAX_RECONNECT_ATTEMPTS", "4")

    config = MaveoConfig.from_env()

    assert config.username == "env@example.com"
    assert config.password == "env-secret"
    assert config.device_id == "ENVSERIAL"
    assert config.status_timeout == 2.5
    assert config.max_reconnect_attempts == 4


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAVEO_USERNAME", "env@example.com")
    monkeypatch.setenv("MAVEO_PASSWORD", "env-secret")
    monkeypatch.setenv("MAVEO_DEVICE_ID", "ENVSERIAL")
    monkeypatch.setenv("MAVEO_KEEPALIVE", "not-a-number")

    config = MaveoConfig.from_env(device_id="OTHER", keepalive=30)

    assert config.device_id == "OTHER"
    assert config.keepalive == 30


def test_from_env_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAVEO_USERNAME", "env@example.com")
    monkeypatch.setenv("MAVEO_PASSWORD", "env-secret")
    monkeypatch.setenv("MAVEO_DEVICE_ID", "ENVSERIAL")
    monkeypatch.setenv("MAVEO_CONNECT_TIMEOUT", "soon")

    with pytest.raises(MaveoConfigError, match="MAVEO_CONNECT_TIMEOUT must be a number"):
        MaveoConfig.from_env()


def test_from_env_without_credentials_fails() -> None:
    with pytest.raises(MaveoConfigError, match="username is required"):
        MaveoConfig.from_env()
