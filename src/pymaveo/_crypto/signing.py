"""AWS Signature Version 4 headers for the IoT WebSocket upgrade.

The broker authenticates the ``GET /mqtt`` upgrade request from signed
headers.  Everything here is a pure function of (credentials, host,
timestamp) so the output can be checked deterministically; callers that
omit ``now`` get a fresh timestamp on every call.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pymaveo._constants import IOT_PATH, IOT_SERVICE
from pymaveo._crypto.hashing import EMPTY_PAYLOAD_SHA256, hmac_sha256, hmac_sha256_hex, sha256_hex
from pymaveo.models.credentials import AwsCredentials

ALGORITHM = "AWS4-HMAC-SHA256"
SIGNED_HEADERS = "host;x-amz-date"


def format_amz_date(now: datetime) -> tuple[str, str]:
    """Return ``(amz_date, datestamp)``, e.g. ``("20240101T120000Z", "20240101")``."""
    utc = now.astimezone(UTC) if now.tzinfo is not None else now.replace(tzinfo=UTC)
    amz_date = utc.strftime("%Y%m%dT%H%M%SZ")
    return amz_date, amz_date[:8]


def credential_scope(datestamp: str, region: str, service: str) -> str:
    return f"{datestamp}/{region}/{service}/aws4_request"


def build_canonical_request(host: str, amz_date: str, *, path: str = IOT_PATH) -> str:
    """Canonical request for a body-less ``GET`` with host and date headers."""
    canonical_headers = f"host:{host}\nx-amz-date:{amz_date}\n"
    return f"GET\n{path}\n\n{canonical_headers}\n{SIGNED_HEADERS}\n{EMPTY_PAYLOAD_SHA256}"


def build_string_to_sign(canonical_request: str, amz_date: str, scope: str) -> str:
    return f"{ALGORITHM}\n{amz_date}\n{scope}\n{sha256_hex(canonical_request)}"


def derive_signing_key(secret_access_key: str, datestamp: str, region: str, service: str) -> bytes:
    """Four-step HMAC chain: secret -> date -> region -> service -> ``aws4_request``."""
    k_date = hmac_sha256(f"AWS4{secret_access_key}".encode(), datestamp)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, "aws4_request")


def build_websocket_auth_headers(
    credentials: AwsCredentials,
    *,
    host: str,
    region: str,
    service: str = IOT_SERVICE,
    path: str = IOT_PATH,
    now: datetime | None = None,
) -> dict[str, str]:
    """Build the signed header set for the WebSocket upgrade.

    Parameters
    ----------
    credentials : AwsCredentials
        Credential snapshot to sign with.
    host : str
        Broker host name, signed as the ``host`` header.
    region : str
        Signing region.
    service : str
        Signing service name.
    path : str
        Request path of the upgrade.
    now : datetime or None
        Signing time.  Defaults to the current UTC time.

    Returns
    -------
    dict[str, str]
        ``Host``, ``X-Amz-Date``, ``Authorization`` and, when the
        credentials carry a session token, ``X-Amz-Security-Token``.
    """
    amz_date, datestamp = format_amz_date(now or datetime.now(UTC))
    scope = credential_scope(datestamp, region, service)

    canonical_request = build_canonical_request(host, amz_date, path=path)
    string_to_sign = build_string_to_sign(canonical_request, amz_date, scope)
    signing_key = derive_signing_key(credentials.secret_access_key, datestamp, region, service)
    signature = hmac_sha256_hex(signing_key, string_to_sign)

    headers: dict[str, str] = {
        "Host": host,
        "X-Amz-Date": amz_date,
        "Authorization": (
            f"{ALGORITHM} Credential={credentials.access_key_id}/{scope}, "
            f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
        ),
    }
    if credentials.session_token:
        headers["X-Amz-Security-Token"] = credentials.session_token
    return headers
