# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""RFC 3986 percent-encoding for SigV4 canonicalization.

Generic encoders leave ``! ' ( ) *`` literal.  SigV4 requires those to be
percent-encoded too, so every encoded path or query component is passed
through :func:`encode_rfc3986` as a final step.
"""

import re
import urllib.parse


_RFC3986_RESERVED_RE = re.compile(r"[!'()*]")


def encode_rfc3986(url_encoded: str) -> str:
    """Re-encode the characters generic encoders leave literal.

    ``%`` is never touched, so already-encoded sequences are not
    double-encoded.

    Args:
        url_encoded: String already passed through a generic encoder.

    Returns:
        String with ``! ' ( ) *`` replaced by uppercase ``%XX``.
    """
    return _RFC3986_RESERVED_RE.sub(
        lambda m: f"%{ord(m.group(0)):02X}", url_encoded
    )


def uri_encode(value: str, *, safe: str = "") -> str:
    """Percent-encode ``value`` strictly per RFC 3986.

    Unreserved characters (``A-Z a-z 0-9 - _ . ~``) pass through, as do
    any characters in ``safe``; everything else becomes ``%XX`` with
    uppercase hex.  Spaces are encoded as ``%20``, never ``+``.

    Args:
        value: Decoded string to encode.
        safe: Extra characters to leave literal (``"/"`` for paths).

    Returns:
        Encoded string.
    """
    return encode_rfc3986(urllib.parse.quote(value, safe=safe))
