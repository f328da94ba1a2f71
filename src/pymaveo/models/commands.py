"""Outbound command payloads.

Every publish on ``{device_id}/cmd`` carries exactly one field:
``AtoS_g`` (door), ``AtoS_l`` (light) or ``AtoS_s`` (status request).
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pymaveo._constants import DOOR_FIELD, LIGHT_FIELD, STATUS_REQUEST_FIELD


class DoorCommand(enum.IntEnum):
    """Door command values."""

    STOP = 0
    OPEN = 1
    CLOSE = 2
    INTERMEDIATE = 3


class LightCommand(enum.IntEnum):
    """Light command values."""

    OFF = 0
    ON = 1


class CommandMessage(BaseModel):
    """A single command published to the device."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    door: DoorCommand | None = Field(default=None, alias=DOOR_FIELD)
    light: LightCommand | None = Field(default=None, alias=LIGHT_FIELD)
    status_request: int | None = Field(default=None, alias=STATUS_REQUEST_FIELD)

    @model_validator(mode="after")
    def _exactly_one_field(self) -> CommandMessage:
        set_fields = [v for v in (self.door, self.light, self.status_request) if v is not None]
        if len(set_fields) != 1:
            raise ValueError("CommandMessage must set exactly one of door, light, status_request")
        if self.status_request not in (None, 0):
            raise ValueError("status_request must be 0")
        return self

    @classmethod
    def for_door(cls, command: DoorCommand) -> CommandMessage:
        return cls(door=command)

    @classmethod
    def for_light(cls, command: LightCommand) -> CommandMessage:
        return cls(light=command)

    @classmethod
    def for_status(cls) -> CommandMessage:
        return cls(status_request=0)

    def to_payload(self) -> dict[str, Any]:
        """Wire dict, e.g. ``{"AtoS_g": 1}``."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
