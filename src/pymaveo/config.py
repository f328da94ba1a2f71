"""Client configuration for pymaveo."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pymaveo._constants import (
    AWS_REGION,
    CLIENT_ID,
    DEFAULT_BASE_RECONNECT_DELAY,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_KEEPALIVE,
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_STATUS_TIMEOUT,
    IDENTITY_POOL_ID,
    IOT_HOST,
    IOT_PORT,
    USER_POOL_ID,
)
from pymaveo.exceptions import MaveoConfigError


@dataclasses.dataclass(frozen=True)
class MaveoConfig:
    """Client configuration.

    Parameters
    ----------
    username : str
        Maveo account email.
    password : str
        Maveo account password.
    device_id : str
        Device serial number as shown in the Maveo app.  Used as the MQTT
        client id and as the topic prefix.
    region : str
        AWS region hosting the Cognito pools and the IoT endpoint.
    user_pool_id : str
        Cognito user pool id (login provider).
    client_id : str
        Cognito app client id.
    identity_pool_id : str
        Cognito identity pool id.
    iot_host : str
        AWS IoT broker host name.
    iot_port : int
        AWS IoT broker WebSocket port.
    connect_timeout : float
        Seconds to wait for the broker CONNACK.
    status_timeout : float
        Seconds to wait for a status message in ``get_status`` and after
        connecting.
    max_reconnect_attempts : int
        Consecutive reconnect attempts before giving up permanently.
    base_reconnect_delay : float
        Delay in seconds before the first reconnect attempt.  Doubles with
        every further attempt.
    keepalive : int
        MQTT keepalive in seconds.
    http_timeout : float
        Total timeout in seconds for each identity handshake request.
    """

    username: str
    password: str
    device_id: str
    region: str = AWS_REGION
    user_pool_id: str = USER_POOL_ID
    client_id: str = CLIENT_ID
    identity_pool_id: str = IDENTITY_POOL_ID
    iot_host: str = IOT_HOST
    iot_port: int = IOT_PORT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    status_timeout: float = DEFAULT_STATUS_TIMEOUT
    max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS
    base_reconnect_delay: float = DEFAULT_BASE_RECONNECT_DELAY
    keepalive: int = DEFAULT_KEEPALIVE
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self) -> None:
        for field_name in ("username", "password", "device_id"):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value.strip():
                raise MaveoConfigError(f"MaveoConfig: {field_name} is required")
        for field_name in ("connect_timeout", "status_timeout", "keepalive", "http_timeout"):
            if getattr(self, field_name) <= 0:
                raise MaveoConfigError(f"MaveoConfig: {field_name} must be positive")
        if self.max_reconnect_attempts < 0:
            raise MaveoConfigError("MaveoConfig: max_reconnect_attempts must not be negative")
        if self.base_reconnect_delay < 0:
            raise MaveoConfigError("MaveoConfig: base_reconnect_delay must not be negative")

    @classmethod
    def from_env(cls, **overrides: Any) -> MaveoConfig:
        """Create configuration from environment variables.

        Reads ``MAVEO_USERNAME``, ``MAVEO_PASSWORD``, ``MAVEO_DEVICE_ID``
        and the optional ``MAVEO_*`` timing variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        MaveoConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "MAVEO_USERNAME": "username",
            "MAVEO_PASSWORD": "password",
            "MAVEO_DEVICE_ID": "device_id",
            "MAVEO_REGION": "region",
            "MAVEO_IOT_HOST": "iot_host",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # Numeric settings need conversion
        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "MAVEO_CONNECT_TIMEOUT": ("connect_timeout", float),
            "MAVEO_STATUS_TIMEOUT": ("status_timeout", float),
            "MAVEO_MAX_RECONNECT_ATTEMPTS": ("max_reconnect_attempts", int),
            "MAVEO_BASE_RECONNECT_DELAY": ("base_reconnect_delay", float),
            "MAVEO_KEEPALIVE": ("keepalive", int),
        }
        for env_key, (field_name, convert) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = convert(val)
            except ValueError as exc:
                raise MaveoConfigError(f"{env_key} must be a number, got {val!r}") from exc

        config_kwargs.update(overrides)
        config_kwargs.setdefault("username", "")
        config_kwargs.setdefault("password", "")
        config_kwargs.setdefault("device_id", "")

        return cls(**config_kwargs)
