"""Base model and shared field types for Maveo cloud payloads.

Cognito responses use PascalCase keys (``AccessKeyId``, ``IdentityId``),
so :class:`MaveoBaseModel` maps them onto snake_case fields with
``alias_generator=to_pascal``.  Models are frozen: a new handshake or a
new status message always produces a new instance.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_pascal

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_epoch_timestamp(value: Any) -> datetime:
    """Convert an epoch timestamp (seconds **or** milliseconds) to a UTC datetime.

    Cognito sends ``Expiration`` as fractional epoch seconds.  Datetimes
    pass through; naive ones are assumed to be UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
    ts = float(value)
    if ts >= _MS_THRESHOLD:
        ts = ts / 1000
    return datetime.fromtimestamp(ts, tz=UTC)


EpochTimestamp = Annotated[datetime, BeforeValidator(parse_epoch_timestamp)]
"""Annotated type that coerces epoch numbers (seconds or ms) to UTC datetimes."""


class MaveoBaseModel(BaseModel):
    """Base for models parsed from Cognito responses."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_pascal,
    )
