"""Cognito identity handshake calls.

Operations:
  - InitiateAuth (user pool)           -> IdToken
  - GetId (identity pool)              -> IdentityId
  - GetCredentialsForIdentity          -> temporary AWS credentials

Each call fails fast with :class:`MaveoAuthenticationError`.  Transport
failures, rejected requests and missing response fields are not told apart
beyond the message text.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from pymaveo._constants import (
    TARGET_GET_CREDENTIALS,
    TARGET_GET_ID,
    TARGET_INITIATE_AUTH,
    cognito_identity_endpoint,
    cognito_idp_endpoint,
)
from pymaveo._redact import redact_for_log
from pymaveo._transport import Transport
from pymaveo.exceptions import MaveoAuthenticationError, MaveoTransportError
from pymaveo.models.credentials import AwsCredentials

_logger = logging.getLogger(__name__)


def build_logins(region: str, user_pool_id: str, id_token: str) -> dict[str, str]:
    """Login map keyed by ``{provider-host}/{pool-id}``."""
    return {f"cognito-idp.{region}.amazonaws.com/{user_pool_id}": id_token}


async def _call(
    transport: Transport,
    url: str,
    target: str,
    body: dict[str, Any],
    step: str,
) -> dict[str, Any]:
    try:
        response = await transport.post_json(url, target, body)
    except MaveoTransportError as exc:
        raise MaveoAuthenticationError(f"{step} failed: {exc}") from exc
    _logger.debug("%s response parsed=%s", step, redact_for_log(response))
    return response


async def initiate_auth(
    transport: Transport,
    *,
    region: str,
    client_id: str,
    username: str,
    password: str,
) -> str:
    """Log in with username and password; return the bearer ``IdToken``."""
    body = {
        "AuthFlow": "USER_PASSWORD_AUTH",
        "ClientId": client_id,
        "AuthParameters": {
            "USERNAME": username,
            "PASSWORD": password,
        },
    }
    response = await _call(transport, cognito_idp_endpoint(region), TARGET_INITIATE_AUTH, body, "InitiateAuth")

    result = response.get("AuthenticationResult")
    id_token = result.get("IdToken") if isinstance(result, dict) else None
    if not isinstance(id_token, str) or not id_token:
        raise MaveoAuthenticationError("No IdToken in authentication response")
    return id_token


async def get_identity_id(
    transport: Transport,
    *,
    region: str,
    identity_pool_id: str,
    logins: dict[str, str],
) -> str:
    """Exchange the login map for an opaque identity id."""
    body = {
        "IdentityPoolId": identity_pool_id,
        "Logins": logins,
    }
    response = await _call(transport, cognito_identity_endpoint(region), TARGET_GET_ID, body, "GetId")

    identity_id = response.get("IdentityId")
    if not isinstance(identity_id, str) or not identity_id:
        raise MaveoAuthenticationError("No IdentityId in response")
    return identity_id


async def get_credentials_for_identity(
    transport: Transport,
    *,
    region: str,
    identity_id: str,
    logins: dict[str, str],
) -> AwsCredentials:
    """Exchange identity id plus login map for temporary AWS credentials."""
    body = {
        "IdentityId": identity_id,
        "Logins": logins,
    }
    response = await _call(
        transport,
        cognito_identity_endpoint(region),
        TARGET_GET_CREDENTIALS,
        body,
        "GetCredentialsForIdentity",
    )

    raw = response.get("Credentials")
    if not isinstance(raw, dict):
        raise MaveoAuthenticationError("No credentials in response")
    try:
        return AwsCredentials.model_validate(raw)
    except ValidationError as exc:
        missing = ", ".join(str(err["loc"][0]) for err in exc.errors() if err.get("loc"))
        raise MaveoAuthenticationError(f"Malformed credentials in response: {missing}") from exc
