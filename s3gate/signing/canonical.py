# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Canonical request construction for SigV4.

Every function here is a pure transform: inputs are never mutated and the
same inputs always produce byte-identical output.  A single differing byte
(encoding, ordering, whitespace) makes the upstream store compute a
different signature and reject the request.
"""

import urllib.parse
from dataclasses import dataclass

from werkzeug.datastructures import Headers

from s3gate.signing.digest import sha256_hex
from s3gate.signing.encoding import encode_rfc3986, uri_encode


#: Headers never included in the signature unless ``all_headers`` is set.
#: Proxies and clients rewrite these freely in transit.
UNSIGNABLE_HEADERS = frozenset(
    {
        "authorization",
        "content-type",
        "content-length",
        "user-agent",
        "presigned-expires",
        "expect",
        "x-amzn-trace-id",
        "x-forwarded-proto",
        "range",
    }
)

CONTENT_SHA256_HEADER = "X-Amz-Content-Sha256"

#: Payload hash sentinel for bodies that are not part of the signature.
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class CanonicalRequest:
    """The six components of a SigV4 canonical request.

    Attributes:
        method: HTTP method.
        uri: Canonical (encoded) path.
        query: Canonical query string.
        headers: Canonical headers block, one ``name:value`` per line,
            with a trailing newline.
        signed_headers: Semicolon-separated signed header names.
        payload_hash: Hex payload hash or a sentinel such as
            ``UNSIGNED-PAYLOAD``.
    """

    method: str
    uri: str
    query: str
    headers: str
    signed_headers: str
    payload_hash: str

    def __str__(self) -> str:
        return "\n".join(
            [
                self.method,
                self.uri,
                self.query,
                self.headers,
                self.signed_headers,
                self.payload_hash,
            ]
        )

    @property
    def hash(self) -> str:
        """Hex SHA-256 of the canonical request string."""
        return sha256_hex(str(self))


def url_host(url: str) -> str:
    """Return the ``host[:port]`` of an absolute URL.

    The port is kept only when it differs from the scheme default, which
    is what HTTP clients send in the ``Host`` header.
    """
    parts = urllib.parse.urlsplit(url)
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme):
        host = f"{host}:{port}"
    return host


def canonical_uri(path: str, *, single_encode: bool = False) -> str:
    """Build the canonical URI from a (possibly encoded) URL path.

    The path is decoded to bytes first (``+`` counts as an encoded space),
    then encoded once more with ``/`` preserved, so byte sequences that
    are not valid UTF-8 keep their original escapes.  With
    ``single_encode`` the re-encoding step is skipped and only the RFC 3986
    fixups are applied to the decoded text.

    Args:
        path: URL path as it appears in the request URL.
        single_encode: Skip the second percent-encoding pass.

    Returns:
        Canonical URI.
    """
    if not path:
        path = "/"

    decoded = urllib.parse.unquote_to_bytes(path.replace("+", " "))
    if single_encode:
        encoded = decoded.decode("utf-8", errors="replace")
    else:
        encoded = urllib.parse.quote(decoded, safe="/")
    return encode_rfc3986(encoded)


def parse_query(query: str) -> list[tuple[str, str]]:
    """Decode a raw query string into ordered ``(key, value)`` pairs."""
    return urllib.parse.parse_qsl(query, keep_blank_values=True)


def canonical_query_string(
    pairs: list[tuple[str, str]], *, is_s3: bool = True
) -> str:
    """Build the canonical query string from decoded query pairs.

    Pairs with an empty key are dropped.  For S3 only the first
    occurrence of each key is kept; later duplicates are silently
    dropped, matching how S3 itself reads the query.

    Args:
        pairs: Decoded ``(key, value)`` pairs in URL order.
        is_s3: Apply the S3 first-value-wins de-duplication.

    Returns:
        Encoded pairs sorted by key then value, joined with ``&``.
    """
    seen: set[str] = set()
    kept: list[tuple[str, str]] = []
    for key, value in pairs:
        if not key:
            continue
        if is_s3:
            if key in seen:
                continue
            seen.add(key)
        kept.append((uri_encode(key), uri_encode(value)))

    kept.sort()
    return "&".join(f"{k}={v}" for k, v in kept)


def normalize_header_value(value: str) -> str:
    """Trim a header value and collapse internal whitespace runs."""
    return " ".join(value.split())


def signed_header_names(
    headers: Headers, *, all_headers: bool = False
) -> list[str]:
    """Return the sorted, lower-cased names of headers to sign.

    ``host`` is always included; its value comes from the URL.
    """
    names = {"host"} | {name.lower() for name in headers.keys()}
    if not all_headers:
        names -= UNSIGNABLE_HEADERS
    return sorted(names)


def canonical_headers_string(
    names: list[str], headers: Headers, host: str
) -> str:
    """Build the canonical headers block.

    Args:
        names: Sorted signed header names (lowercase).
        headers: Request headers.
        host: Value for the synthetic ``host`` header.

    Returns:
        ``name:value`` lines joined with newlines, plus a trailing newline.
    """
    lines: list[str] = []
    for name in names:
        if name == "host":
            value = host
        else:
            value = ", ".join(headers.getlist(name))
        lines.append(f"{name}:{normalize_header_value(value)}")
    return "\n".join(lines) + "\n"


def payload_hash(headers: Headers, body: bytes | None) -> str:
    """Return the payload hash for the canonical request.

    An explicit ``X-Amz-Content-Sha256`` header wins (this is how
    ``UNSIGNED-PAYLOAD`` and precomputed hashes are passed through);
    otherwise the body is hashed.
    """
    explicit = headers.get(CONTENT_SHA256_HEADER)
    if explicit is not None:
        return explicit
    return sha256_hex(body or b"")


def build_canonical_request(
    method: str,
    url: str,
    headers: Headers,
    body: bytes | None = None,
    *,
    query_pairs: list[tuple[str, str]] | None = None,
    is_s3: bool = True,
    all_headers: bool = False,
    single_encode: bool = False,
) -> CanonicalRequest:
    """Build the canonical request for an absolute URL.

    Args:
        method: HTTP method.
        url: Absolute request URL.
        headers: Request headers (``Host`` is ignored; the URL host is
            signed instead).
        body: Request body, hashed when no explicit content hash is set.
        query_pairs: Decoded query pairs to sign instead of the URL's own
            query (used while building a presigned URL).
        is_s3: Apply S3-specific query de-duplication.
        all_headers: Sign every header, including the unsignable set.
        single_encode: Skip double percent-encoding of the path.

    Returns:
        CanonicalRequest.
    """
    parts = urllib.parse.urlsplit(url)
    if query_pairs is None:
        query_pairs = parse_query(parts.query)

    names = signed_header_names(headers, all_headers=all_headers)

    return CanonicalRequest(
        method=method,
        uri=canonical_uri(parts.path, single_encode=single_encode),
        query=canonical_query_string(query_pairs, is_s3=is_s3),
        headers=canonical_headers_string(names, headers, url_host(url)),
        signed_headers=";".join(names),
        payload_hash=payload_hash(headers, body),
    )
