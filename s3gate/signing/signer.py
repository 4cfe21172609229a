# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS SigV4 request signer.

Signs a request either with an ``Authorization`` header (header mode) or
with signed query parameters (query mode, i.e. a presigned URL).  Signing
produces a new :class:`SigningRequest`; the input request is not modified.

Usage:
    config = SignerConfig(
        access_key_id="AKIA...",
        secret_access_key="...",
        region="eu-west-1",
    )
    signed = AwsV4Signer(SigningRequest(url), config).sign()
"""

import logging
import re
import urllib.parse
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from werkzeug.datastructures import Headers

from s3gate.signing.canonical import (
    CONTENT_SHA256_HEADER,
    UNSIGNED_PAYLOAD,
    CanonicalRequest,
    build_canonical_request,
    parse_query,
    signed_header_names,
)
from s3gate.signing.digest import hmac_sha256, sha256_hex, to_hex
from s3gate.signing.errors import SigningConfigError
from s3gate.signing.key_cache import SigningKeyCache


logger = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"

#: Presigned URL lifetime used for S3 when the caller sets none (24 hours).
DEFAULT_PRESIGN_EXPIRES = 86400

_AMZ_DATE_RE = re.compile(r"^\d{8}T\d{6}Z$")


def format_amz_date(moment: datetime) -> str:
    """Format a datetime as ISO 8601 basic UTC (``YYYYMMDDTHHMMSSZ``)."""
    return moment.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")


@dataclass(frozen=True)
class SignerConfig:
    """Credentials and options for one signing operation.

    Attributes:
        access_key_id: AWS access key ID.
        secret_access_key: AWS secret access key.
        region: Region the request is scoped to.
        session_token: Optional STS session token.
        service: Service name in the credential scope.
        timestamp: Fixed ``YYYYMMDDTHHMMSSZ`` signing time; current time
            when None.
        sign_query: Presign via query parameters instead of a header.
        append_session_token: In query mode, add the session token after
            signing so it is not part of the signed material.
        all_headers: Sign every header, including the unsignable set.
        single_encode: Skip double percent-encoding of the path.
        unsigned_payload: For S3, sign ``UNSIGNED-PAYLOAD`` instead of
            hashing the body when no content hash was supplied.
    """

    access_key_id: str
    secret_access_key: str
    region: str
    session_token: str | None = None
    service: str = "s3"
    timestamp: str | None = None
    sign_query: bool = False
    append_session_token: bool = False
    all_headers: bool = False
    single_encode: bool = False
    unsigned_payload: bool = True

    def __post_init__(self) -> None:
        """Validate required credentials.

        Raises:
            SigningConfigError: If credentials or the timestamp are invalid.
        """
        if not self.access_key_id:
            raise SigningConfigError("access_key_id is a required option")
        if not self.secret_access_key:
            raise SigningConfigError("secret_access_key is a required option")
        if not self.region:
            raise SigningConfigError("region is a required option")
        if self.timestamp is not None and not _AMZ_DATE_RE.match(
            self.timestamp
        ):
            raise SigningConfigError(
                f"timestamp must be YYYYMMDDTHHMMSSZ: {self.timestamp!r}"
            )


@dataclass
class SigningRequest:
    """An HTTP request to be signed, or the result of signing one.

    Attributes:
        url: Absolute request URL.
        method: HTTP method; defaults to POST when a body is present,
            GET otherwise.
        headers: Case-insensitive, order-preserving header multimap.
        body: Buffered request body.
    """

    url: str
    method: str = ""
    headers: Headers = field(default_factory=Headers)
    body: bytes | None = None

    def __post_init__(self) -> None:
        if not self.method:
            self.method = "POST" if self.body else "GET"
        self.method = self.method.upper()
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)


def _set_param(pairs: list[tuple[str, str]], key: str, value: str) -> None:
    """Set a query parameter, replacing every existing occurrence."""
    for i, (k, _) in enumerate(pairs):
        if k == key:
            pairs[i] = (key, value)
            pairs[i + 1 :] = [p for p in pairs[i + 1 :] if p[0] != key]
            return
    pairs.append((key, value))


def _has_param(pairs: list[tuple[str, str]], key: str) -> bool:
    return any(k == key for k, _ in pairs)


class AwsV4Signer:
    """Signs a single request with AWS Signature Version 4.

    All signing material (credential scope, signed headers, canonical
    request) is computed in the constructor from copies of the request's
    headers and query; :meth:`sign` only derives the signature and emits
    the signed request.
    """

    def __init__(
        self,
        request: SigningRequest,
        config: SignerConfig,
        cache: SigningKeyCache | None = None,
    ) -> None:
        """Prepare a request for signing.

        Args:
            request: Request to sign.  Not modified.
            config: Credentials and signing options.
            cache: Signing-key cache; a private cache is created when None.

        Raises:
            SigningConfigError: If the URL is missing or not absolute.
        """
        if not request.url:
            raise SigningConfigError("url is a required option")
        parts = urllib.parse.urlsplit(request.url)
        if not parts.scheme or not parts.netloc:
            raise SigningConfigError(f"url must be absolute: {request.url!r}")

        self.request = request
        self.config = config
        self.cache = cache if cache is not None else SigningKeyCache()
        self.timestamp = config.timestamp or format_amz_date(datetime.now(UTC))
        self.is_s3 = config.service == "s3"

        headers = Headers(request.headers)
        # The host is always taken from the URL.
        headers.remove("Host")
        query_pairs = parse_query(parts.query)

        if self.is_s3 and CONTENT_SHA256_HEADER not in headers:
            if config.unsigned_payload:
                content_sha256 = UNSIGNED_PAYLOAD
            else:
                content_sha256 = sha256_hex(request.body or b"")
            headers.set(CONTENT_SHA256_HEADER, content_sha256)

        if config.sign_query:
            _set_param(query_pairs, "X-Amz-Date", self.timestamp)
            if config.session_token and not config.append_session_token:
                _set_param(
                    query_pairs, "X-Amz-Security-Token", config.session_token
                )
        else:
            headers.set("X-Amz-Date", self.timestamp)
            if config.session_token and not config.append_session_token:
                headers.set("X-Amz-Security-Token", config.session_token)

        self.credential_scope = "/".join(
            [self.timestamp[:8], config.region, config.service, "aws4_request"]
        )
        self.signed_headers = ";".join(
            signed_header_names(headers, all_headers=config.all_headers)
        )

        if config.sign_query:
            if self.is_s3 and not _has_param(query_pairs, "X-Amz-Expires"):
                _set_param(
                    query_pairs, "X-Amz-Expires", str(DEFAULT_PRESIGN_EXPIRES)
                )
            _set_param(query_pairs, "X-Amz-Algorithm", ALGORITHM)
            _set_param(
                query_pairs,
                "X-Amz-Credential",
                f"{config.access_key_id}/{self.credential_scope}",
            )
            _set_param(query_pairs, "X-Amz-SignedHeaders", self.signed_headers)

        self.headers = headers
        self.query_pairs = query_pairs
        self.canonical_request: CanonicalRequest = build_canonical_request(
            request.method,
            request.url,
            headers,
            request.body,
            query_pairs=query_pairs,
            is_s3=self.is_s3,
            all_headers=config.all_headers,
            single_encode=config.single_encode,
        )

    def string_to_sign(self) -> str:
        """Build the SigV4 string to sign."""
        return "\n".join(
            [
                ALGORITHM,
                self.timestamp,
                self.credential_scope,
                self.canonical_request.hash,
            ]
        )

    def signature(self) -> str:
        """Compute the hex signature using the cached signing key."""
        signing_key = self.cache.get_signing_key(
            self.config.secret_access_key,
            self.timestamp[:8],
            self.config.region,
            self.config.service,
        )
        return to_hex(hmac_sha256(signing_key, self.string_to_sign()))

    def auth_header(self) -> str:
        """Build the ``Authorization`` header value."""
        return ", ".join(
            [
                f"{ALGORITHM} Credential="
                f"{self.config.access_key_id}/{self.credential_scope}",
                f"SignedHeaders={self.signed_headers}",
                f"Signature={self.signature()}",
            ]
        )

    def sign(self) -> SigningRequest:
        """Sign the request.

        Returns:
            A new SigningRequest carrying the ``Authorization`` header
            (header mode) or the signed query string (query mode).
        """
        headers = Headers(self.headers)
        url = self.request.url

        if self.config.sign_query:
            pairs = list(self.query_pairs)
            _set_param(pairs, "X-Amz-Signature", self.signature())
            if self.config.session_token and self.config.append_session_token:
                _set_param(
                    pairs, "X-Amz-Security-Token", self.config.session_token
                )
            parts = urllib.parse.urlsplit(url)
            query = urllib.parse.urlencode(pairs, quote_via=urllib.parse.quote)
            url = urllib.parse.urlunsplit(parts._replace(query=query))
        else:
            headers.set("Authorization", self.auth_header())

        logger.debug(
            "Signed %s %s (signed headers: %s, canonical request hash: %s)",
            self.request.method,
            self.canonical_request.uri,
            self.signed_headers,
            self.canonical_request.hash,
        )

        return SigningRequest(
            url=url,
            method=self.request.method,
            headers=headers,
            body=self.request.body,
        )


def sign_request(
    request: SigningRequest,
    config: SignerConfig,
    cache: SigningKeyCache | None = None,
) -> SigningRequest:
    """Sign ``request`` and return the signed copy."""
    return AwsV4Signer(request, config, cache).sign()


def presign_url(
    url: str,
    config: SignerConfig,
    *,
    method: str = "GET",
    expires: int = DEFAULT_PRESIGN_EXPIRES,
    cache: SigningKeyCache | None = None,
) -> str:
    """Return a presigned URL valid for ``expires`` seconds.

    Args:
        url: Absolute object URL.
        config: Credentials; ``sign_query`` is forced on.
        method: HTTP method the URL will be used with.
        expires: Lifetime in seconds.
        cache: Optional signing-key cache.

    Returns:
        URL carrying the ``X-Amz-*`` signature parameters.
    """
    if expires < 1:
        raise SigningConfigError(f"expires must be >= 1: {expires}")
    parts = urllib.parse.urlsplit(url)
    pairs = parse_query(parts.query)
    _set_param(pairs, "X-Amz-Expires", str(expires))
    query = urllib.parse.urlencode(pairs, quote_via=urllib.parse.quote)
    request = SigningRequest(
        url=urllib.parse.urlunsplit(parts._replace(query=query)),
        method=method,
    )
    signed = sign_request(request, replace(config, sign_query=True), cache)
    return signed.url
