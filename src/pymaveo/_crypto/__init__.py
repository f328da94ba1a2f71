"""Cryptographic primitives for signing the broker connection."""

from __future__ import annotations

from pymaveo._crypto.hashing import hmac_sha256, hmac_sha256_hex, sha256_hex
from pymaveo._crypto.signing import build_websocket_auth_headers, derive_signing_key

__all__ = [
    "build_websocket_auth_headers",
    "derive_signing_key",
    "hmac_sha256",
    "hmac_sha256_hex",
    "sha256_hex",
]
