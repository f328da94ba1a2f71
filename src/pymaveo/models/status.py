"""Door status model."""

from __future__ import annotations

import enum
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict

_logger = logging.getLogger(__name__)


class DoorState(enum.IntEnum):
    """Door state values reported in ``StoA_s``.

    Codes without a mapped member resolve to ``STOPPED`` instead of
    raising ``ValueError``.
    """

    STOPPED = 0
    OPENING = 1
    CLOSING = 2
    OPEN = 3
    CLOSED = 4

    @classmethod
    def _missing_(cls, value: object) -> DoorState:
        return cls.STOPPED

    @property
    def label(self) -> str:
        """Human-readable state name."""
        return self.name.capitalize()


class DoorStatus(BaseModel):
    """Parsed status from a device response.

    Parameters
    ----------
    door_state : DoorState
        Current door state.
    raw_value : int
        Numeric code as sent by the device, kept even when it did not map
        onto a known state.
    """

    model_config = ConfigDict(frozen=True)

    door_state: DoorState
    raw_value: int

    @classmethod
    def from_raw(cls, raw_value: int) -> DoorStatus:
        """Build a status from the device's numeric code."""
        if raw_value not in DoorState._value2member_map_:
            _logger.debug("Unknown door state value: %d, defaulting to STOPPED", raw_value)
        return cls(door_state=DoorState(raw_value), raw_value=raw_value)

    @classmethod
    def from_payload_value(cls, value: Any) -> DoorStatus:
        """Validate a ``StoA_s`` value and build a status from it.

        Raises
        ------
        ValueError
            If *value* is not an integer (booleans and numeric strings are
            rejected too).
        """
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"status value must be an integer, got {value!r}")
        return cls.from_raw(value)

    @property
    def is_stopped(self) -> bool:
        """True if the door is stopped in an intermediate position."""
        return self.door_state is DoorState.STOPPED

    @property
    def is_opening(self) -> bool:
        return self.door_state is DoorState.OPENING

    @property
    def is_closing(self) -> bool:
        return self.door_state is DoorState.CLOSING

    @property
    def is_open(self) -> bool:
        """True if the door is fully open."""
        return self.door_state is DoorState.OPEN

    @property
    def is_closed(self) -> bool:
        """True if the door is fully closed."""
        return self.door_state is DoorState.CLOSED
