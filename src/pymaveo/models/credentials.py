"""Temporary AWS credentials model."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from pymaveo.models._base import EpochTimestamp, MaveoBaseModel


class AwsCredentials(MaveoBaseModel):
    """Short-lived credentials returned by ``GetCredentialsForIdentity``.

    Parameters
    ----------
    access_key_id : str
        AWS access key id (``AccessKeyId``).
    secret_access_key : str
        AWS secret key (``SecretKey`` on the wire).
    session_token : str
        Session token sent as ``X-Amz-Security-Token``.
    expiration : datetime
        Absolute UTC expiry.  The wire value is epoch seconds.
    """

    access_key_id: str = Field(min_length=1)
    secret_access_key: str = Field(alias="SecretKey", min_length=1, repr=False)
    session_token: str = Field(default="", repr=False)
    expiration: EpochTimestamp

    @property
    def is_expired(self) -> bool:
        """Whether the current time is at or past ``expiration``."""
        return datetime.now(UTC) >= self.expiration

    @property
    def remaining(self) -> float:
        """Seconds until expiry (negative once expired)."""
        return (self.expiration - datetime.now(UTC)).total_seconds()


class AuthResult(BaseModel):
    """Outcome of a successful identity handshake."""

    model_config = ConfigDict(frozen=True)

    credentials: AwsCredentials
    identity_id: str
