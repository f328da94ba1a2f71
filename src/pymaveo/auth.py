"""Cognito credential broker.

Turns a username/password pair into short-lived AWS credentials and tracks
their expiry.  The broker never retries on its own; the connection layer
decides when to authenticate again.
"""

from __future__ import annotations

import logging

from pymaveo._api import cognito as _cognito_api
from pymaveo._constants import AWS_REGION, CLIENT_ID, IDENTITY_POOL_ID, USER_POOL_ID
from pymaveo._transport import Transport
from pymaveo.models.credentials import AuthResult, AwsCredentials

_logger = logging.getLogger(__name__)


class CognitoAuth:
    """Federated identity handshake against the Maveo Cognito pools.

    Usage::

        auth = CognitoAuth(username, password, transport)
        result = await auth.authenticate()
        result.credentials.access_key_id

    ``identity_id`` and ``credentials`` are set by a successful
    :meth:`authenticate` and replaced wholesale by the next one.
    """

    def __init__(
        self,
        username: str,
        password: str,
        transport: Transport,
        *,
        region: str = AWS_REGION,
        user_pool_id: str = USER_POOL_ID,
        client_id: str = CLIENT_ID,
        identity_pool_id: str = IDENTITY_POOL_ID,
    ) -> None:
        self._username = username
        self._password = password
        self._transport = transport
        self._region = region
        self._user_pool_id = user_pool_id
        self._client_id = client_id
        self._identity_pool_id = identity_pool_id
        self._credentials: AwsCredentials | None = None
        self._identity_id: str | None = None

    @property
    def username(self) -> str:
        return self._username

    @property
    def credentials(self) -> AwsCredentials | None:
        """Last stored credentials, or ``None`` before the first handshake."""
        return self._credentials

    @property
    def identity_id(self) -> str | None:
        """Last stored identity id, or ``None`` before the first handshake."""
        return self._identity_id

    def is_credentials_expired(self) -> bool:
        """True when no credentials are held or they are past expiry."""
        if self._credentials is None:
            return True
        return self._credentials.is_expired

    async def authenticate(self) -> AuthResult:
        """Run the three-step handshake and store the result.

        Raises
        ------
        MaveoAuthenticationError
            If any step fails.  Previously stored credentials are kept
            untouched in that case.
        """
        id_token = await _cognito_api.initiate_auth(
            self._transport,
            region=self._region,
            client_id=self._client_id,
            username=self._username,
            password=self._password,
        )
        _logger.debug("Cognito step 1: got id token")

        logins = _cognito_api.build_logins(self._region, self._user_pool_id, id_token)
        identity_id = await _cognito_api.get_identity_id(
            self._transport,
            region=self._region,
            identity_pool_id=self._identity_pool_id,
            logins=logins,
        )
        self._identity_id = identity_id
        _logger.debug("Cognito step 2: got identity id %s", identity_id)

        credentials = await _cognito_api.get_credentials_for_identity(
            self._transport,
            region=self._region,
            identity_id=identity_id,
            logins=logins,
        )
        self._credentials = credentials
        _logger.debug(
            "Cognito step 3: got credentials expiring at %s (in %.0fs)",
            credentials.expiration.isoformat(),
            credentials.remaining,
        )

        return AuthResult(credentials=credentials, identity_id=identity_id)
