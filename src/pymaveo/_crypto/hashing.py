"""Hash primitives for AWS Signature Version 4."""

from __future__ import annotations

import hashlib
import hmac

#: SHA-256 of the empty string; the WebSocket upgrade has no body.
EMPTY_PAYLOAD_SHA256 = hashlib.sha256(b"").hexdigest()


def sha256_hex(value: str) -> str:
    """Compute SHA-256 of a UTF-8 string, returning lowercase hex.

    Parameters
    ----------
    value : str
        The string to hash.

    Returns
    -------
    str
        64-character lowercase hex digest.
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def hmac_sha256(key: bytes, message: str) -> bytes:
    """Keyed SHA-256 of a UTF-8 message, returning the raw digest."""
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def hmac_sha256_hex(key: bytes, message: str) -> str:
    """Keyed SHA-256 of a UTF-8 message, returning lowercase hex."""
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).hexdigest()
