# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""SHA-256 and HMAC-SHA256 primitives used by the signer."""

import hashlib
import hmac


def _to_bytes(data: str | bytes) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return data


def sha256(data: str | bytes) -> bytes:
    """SHA-256 digest of ``data`` (text is UTF-8 encoded)."""
    return hashlib.sha256(_to_bytes(data)).digest()


def hmac_sha256(key: str | bytes, message: str | bytes) -> bytes:
    """HMAC-SHA256 of ``message`` under ``key``.

    Args:
        key: Raw key bytes (e.g. output of a previous HMAC) or text.
        message: Message bytes or text.

    Returns:
        32-byte MAC.
    """
    return hmac.new(_to_bytes(key), _to_bytes(message), hashlib.sha256).digest()


def to_hex(data: bytes) -> str:
    """Lowercase hex, two digits per byte, no separators."""
    return data.hex()


def sha256_hex(data: str | bytes) -> str:
    """Hex-encoded SHA-256 digest."""
    return to_hex(sha256(data))


#: Hex digest of the empty payload.
EMPTY_SHA256 = sha256_hex(b"")
