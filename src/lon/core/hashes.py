"""SRI hashes (sha256-<base64>) as stored in lon.lock."""

from __future__ import annotations

import base64
import binascii

SRI_SHA256_PREFIX = "sha256-"
SHA256_SIZE = 32


def is_sri_sha256(value: str) -> bool:
    """Check that value is "sha256-" followed by the base64 encoding of 32 bytes."""
    if not value.startswith(SRI_SHA256_PREFIX):
        return False
    try:
        digest = base64.b64decode(value[len(SRI_SHA256_PREFIX) :], validate=True)
    except binascii.Error:
        return False
    return len(digest) == SHA256_SIZE


def sri_sha256(digest: bytes) -> str:
    return SRI_SHA256_PREFIX + base64.b64encode(digest).decode("ascii")
