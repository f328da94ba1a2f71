"""pymaveo - Async Python client for Maveo garage door controllers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pymaveo")
except PackageNotFoundError:
    __version__ = "0+local"
from pymaveo._mqtt import ConnectionState, MqttConnection
from pymaveo.auth import CognitoAuth
from pymaveo.client import MaveoClient
from pymaveo.config import MaveoConfig
from pymaveo.events import EventEmitter, EventKind, MaveoEvent
from pymaveo.exceptions import (
    MaveoAuthenticationError,
    MaveoConfigError,
    MaveoConnectionError,
    MaveoConnectionTimeoutError,
    MaveoError,
    MaveoNotConnectedError,
    MaveoProtocolError,
    MaveoReconnectExhaustedError,
    MaveoStatusTimeoutError,
    MaveoTransportError,
)
from pymaveo.models import (
    AuthResult,
    AwsCredentials,
    CommandMessage,
    DoorCommand,
    DoorState,
    DoorStatus,
    LightCommand,
)

__all__ = [
    "__version__",
    "AuthResult",
    "AwsCredentials",
    "CognitoAuth",
    "CommandMessage",
    "ConnectionState",
    "DoorCommand",
    "DoorState",
    "DoorStatus",
    "EventEmitter",
    "EventKind",
    "LightCommand",
    "MaveoAuthenticationError",
    "MaveoClient",
    "MaveoConfig",
    "MaveoConfigError",
    "MaveoConnectionError",
    "MaveoConnectionTimeoutError",
    "MaveoError",
    "MaveoEvent",
    "MaveoNotConnectedError",
    "MaveoProtocolError",
    "MaveoReconnectExhaustedError",
    "MaveoStatusTimeoutError",
    "MaveoTransportError",
    "MqttConnection",
]
