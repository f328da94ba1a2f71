"""Data models for Maveo cloud payloads."""

from pymaveo.models._base import EpochTimestamp, MaveoBaseModel, parse_epoch_timestamp
from pymaveo.models.commands import CommandMessage, DoorCommand, LightCommand
from pymaveo.models.credentials import AuthResult, AwsCredentials
from pymaveo.models.status import DoorState, DoorStatus

__all__ = [
    "AuthResult",
    "AwsCredentials",
    "CommandMessage",
    "DoorCommand",
    "DoorState",
    "DoorStatus",
    "EpochTimestamp",
    "LightCommand",
    "MaveoBaseModel",
    "parse_epoch_timestamp",
]
