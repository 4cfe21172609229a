# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Sign inbound requests for forwarding to an S3 bucket.

:class:`S3Client` is the entry point used by the proxy.  It accepts either
a bare URL or a full inbound request, rewrites the target onto the
configured bucket endpoint, signs it, and merges the client's own headers
back in so they survive the trip upstream.
"""

import logging
import urllib.parse
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from werkzeug.datastructures import Headers

from s3gate.endpoint import S3Endpoint
from s3gate.signing import (
    DEFAULT_PRESIGN_EXPIRES,
    SignerConfig,
    SigningKeyCache,
    SigningRequest,
    UnsupportedInputError,
    presign_url,
    sign_request,
)


if TYPE_CHECKING:
    from s3gate.config import ProxyConfig


logger = logging.getLogger(__name__)

#: Inbound headers that are never forwarded upstream.
DROPPED_HEADERS = frozenset(
    {
        "host",
        "authorization",
        "connection",
        "keep-alive",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "content-length",
    }
)

#: Methods whose body is never read or forwarded.
BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


@dataclass(frozen=True)
class RawUrl:
    """A bare URL to sign as a GET request."""

    url: str


@dataclass(frozen=True)
class FullRequest:
    """An inbound request to rewrite, sign and forward.

    Attributes:
        method: HTTP method.
        url: Request URL (absolute, or path plus query).
        headers: Inbound headers.
        body: Buffered request body.
    """

    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    body: bytes | None = None


SignInput = RawUrl | FullRequest


class S3Client:
    """Signs requests against one bucket with one credential set.

    The signing-key cache is owned by the client and shared by every
    request it signs.
    """

    def __init__(
        self,
        *,
        access_key_id: str,
        secret_access_key: str,
        endpoint: S3Endpoint,
        session_token: str | None = None,
        cache: SigningKeyCache | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            access_key_id: AWS access key ID.
            secret_access_key: AWS secret access key.
            endpoint: Target bucket endpoint.
            session_token: Optional STS session token.
            cache: Signing-key cache; a fresh one is created when None.

        Raises:
            SigningConfigError: If a credential is missing.
        """
        self.endpoint = endpoint
        self.cache = cache if cache is not None else SigningKeyCache()
        self._config = SignerConfig(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region=endpoint.region,
        )

    @classmethod
    def from_config(cls, config: "ProxyConfig") -> "S3Client":
        """Build a client from loaded proxy configuration.

        Raises:
            ConfigError: If the endpoint settings are invalid.
        """
        return cls(
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            session_token=config.session_token,
            endpoint=config.endpoint(),
        )

    @property
    def access_key_id(self) -> str:
        return self._config.access_key_id

    def signer_config(self, **overrides: Any) -> SignerConfig:
        """Return the client's signer config with ``overrides`` applied."""
        return replace(self._config, **overrides)

    def sign(
        self,
        target: SignInput,
        *,
        headers: Headers | None = None,
        **overrides: Any,
    ) -> SigningRequest:
        """Rewrite ``target`` onto the bucket endpoint and sign it.

        Inbound ``x-amz-*`` headers are signed (S3 rejects unsigned ones);
        all other inbound headers are merged in after signing, except
        hop-by-hop headers and those the signer itself set.

        Args:
            target: A RawUrl or FullRequest.
            headers: Extra headers to include in the signature.
            **overrides: SignerConfig fields to override for this request
                (``sign_query``, ``timestamp``, ``all_headers``, ...).

        Returns:
            Signed request ready for dispatch.

        Raises:
            UnsupportedInputError: If ``target`` is not a RawUrl or
                FullRequest.
        """
        inbound = Headers()
        match target:
            case RawUrl(url=url):
                method = ""
                body = None
            case FullRequest(
                method=method, url=url, headers=raw_headers, body=body
            ):
                method = method.upper()
                inbound = Headers(raw_headers)
                if method in BODYLESS_METHODS:
                    body = None
            case _:
                raise UnsupportedInputError(
                    "Runtime error - can only sign URLs or Requests"
                )

        signing_headers = Headers(headers or ())
        for name, value in inbound.items():
            if name.lower().startswith("x-amz-"):
                signing_headers.add(name, value)

        request = SigningRequest(
            url=self.endpoint.rewrite(url),
            method=method,
            headers=signing_headers,
            body=body,
        )
        signed = sign_request(
            request, self.signer_config(**overrides), self.cache
        )

        signer_set = {name.lower() for name in signed.headers.keys()}
        for name, value in inbound.items():
            lower = name.lower()
            if lower in DROPPED_HEADERS or lower.startswith("x-amz-"):
                continue
            if lower not in signer_set:
                signed.headers.add(name, value)

        logger.debug("Prepared %s %s", signed.method, signed.url)
        return signed

    def presign(
        self,
        key: str,
        *,
        method: str = "GET",
        expires: int = DEFAULT_PRESIGN_EXPIRES,
        **overrides: Any,
    ) -> str:
        """Return a presigned URL for an object key.

        Args:
            key: Object key, with or without a leading slash.
            method: HTTP method the URL will be used with.
            expires: Lifetime in seconds.
            **overrides: SignerConfig fields to override.

        Returns:
            Presigned URL.
        """
        path = "/" + urllib.parse.quote(key.lstrip("/"), safe="/")
        url = self.endpoint.rewrite(path)
        return presign_url(
            url,
            self.signer_config(**overrides),
            method=method,
            expires=expires,
            cache=self.cache,
        )
