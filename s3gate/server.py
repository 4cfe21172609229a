# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Signing proxy HTTP server.

Provides a WSGI application that answers CORS preflight requests, signs
every other request for the configured bucket and forwards it upstream.
Upstream failures above a threshold status are replaced by a generic
"not ready" response so clients never see raw store errors.
"""

import logging
import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from werkzeug.wrappers.response import StartResponse

import httpx
from werkzeug.datastructures import Headers
from werkzeug.serving import make_server
from werkzeug.wrappers import Request, Response

from s3gate.client import DROPPED_HEADERS, FullRequest, S3Client
from s3gate.config import (
    DEFAULT_HOST,
    DEFAULT_NOT_READY_MESSAGE,
    DEFAULT_NOT_READY_STATUS,
    DEFAULT_PORT,
    DEFAULT_UPSTREAM_TIMEOUT,
    ProxyConfig,
)
from s3gate.signing import SigningRequest, UnsupportedInputError


logger = logging.getLogger(__name__)

#: Headers sent in reply to a CORS preflight request.
CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,OPTIONS,POST",
    "Access-Control-Max-Age": "86400",
}

#: Upstream response headers not copied to the client.  httpx decodes
#: the body, so its encoding and length no longer apply.
_RESPONSE_DROPPED_HEADERS = DROPPED_HEADERS | {"content-encoding"}


class SigningProxy:
    """WSGI proxy that signs and forwards requests to an S3 bucket.

    Runs in a background thread (``start``) or in the foreground
    (``serve_forever``).
    """

    def __init__(
        self,
        client: S3Client,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        *,
        upstream_timeout: float = DEFAULT_UPSTREAM_TIMEOUT,
        not_ready_status: int = DEFAULT_NOT_READY_STATUS,
        not_ready_message: str = DEFAULT_NOT_READY_MESSAGE,
        cors_enabled: bool = True,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the proxy.

        Args:
            client: Signing client for the target bucket.
            host: Host to bind to.
            port: Port to bind to.
            upstream_timeout: Upstream request timeout in seconds.
            not_ready_status: Upstream statuses above this are replaced by
                the not-ready response.
            not_ready_message: Body of the not-ready response.
            cors_enabled: Answer ``OPTIONS`` preflight requests locally.
            http_client: httpx client for upstream dispatch; one is created
                when None.
        """
        self.client = client
        self.host = host
        self.port = port
        self.not_ready_status = not_ready_status
        self.not_ready_message = not_ready_message
        self.cors_enabled = cors_enabled
        self._http = http_client or httpx.Client(timeout=upstream_timeout)
        self._server: Any = None
        self._thread: threading.Thread | None = None

    @classmethod
    def from_config(cls, config: ProxyConfig) -> "SigningProxy":
        """Build a proxy from loaded configuration."""
        return cls(
            S3Client.from_config(config),
            config.host,
            config.port,
            upstream_timeout=config.upstream_timeout,
            not_ready_status=config.not_ready_status,
            not_ready_message=config.not_ready_message,
            cors_enabled=config.cors_enabled,
        )

    def _make_server(self) -> Any:
        return make_server(self.host, self.port, self.wsgi_app, threaded=True)

    def start(self) -> None:
        """Start the proxy in a background thread."""
        self._server = self._make_server()
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            daemon=True,
            name="SigningProxy",
        )
        self._thread.start()
        logger.info(
            "Signing proxy started at http://%s:%d/ -> %s",
            self.host,
            self.port,
            self.client.endpoint.host,
        )

    def serve_forever(self) -> None:
        """Run the proxy in the calling thread until interrupted."""
        self._server = self._make_server()
        logger.info(
            "Signing proxy listening at http://%s:%d/ -> %s",
            self.host,
            self.port,
            self.client.endpoint.host,
        )
        try:
            self._server.serve_forever()
        finally:
            self._http.close()

    def stop(self) -> None:
        """Stop the proxy and release the upstream client."""
        if self._server:
            self._server.shutdown()
            logger.info("Signing proxy stopped")
        self._http.close()

    def wsgi_app(
        self,
        environ: dict[str, Any],
        start_response: "StartResponse",
    ) -> Iterable[bytes]:
        """WSGI application entry point."""
        request = Request(environ)
        response = self._dispatch(request)
        return response(environ, start_response)

    def _dispatch(self, request: Request) -> Response:
        """Handle one inbound request.

        Args:
            request: Incoming request.

        Returns:
            Response to send.
        """
        try:
            if request.method == "OPTIONS" and self.cors_enabled:
                return self._preflight()
            return self._forward(request)
        except Exception:
            logger.exception("Error handling request %s", request.path)
            return Response("Internal Server Error", status=500)

    def _preflight(self) -> Response:
        return Response("", headers=CORS_PREFLIGHT_HEADERS)

    def _forward(self, request: Request) -> Response:
        """Sign ``request`` and dispatch it upstream."""
        body = request.get_data(cache=False) or None
        try:
            signed = self.client.sign(
                FullRequest(
                    method=request.method,
                    url=_inbound_url(request),
                    headers=Headers(request.headers),
                    body=body,
                )
            )
        except UnsupportedInputError as e:
            return Response(str(e), status=400)

        try:
            upstream = self._send(signed)
        except httpx.HTTPError as e:
            logger.warning(
                "Upstream request %s %s failed: %s",
                signed.method,
                request.path,
                e,
            )
            return Response("Bad Gateway", status=502)

        if upstream.status_code > self.not_ready_status:
            logger.warning(
                "Upstream returned %d for %s %s",
                upstream.status_code,
                signed.method,
                request.path,
            )
            return Response(self.not_ready_message, mimetype="text/plain")

        logger.info(
            "%s %s -> %d", signed.method, request.path, upstream.status_code
        )
        return _to_response(upstream, head=signed.method == "HEAD")

    def _send(self, signed: SigningRequest) -> httpx.Response:
        return self._http.request(
            signed.method,
            signed.url,
            headers=list(signed.headers.items()),
            content=signed.body,
        )


def _inbound_url(request: Request) -> str:
    """Return the inbound URL with the path exactly as the client sent it.

    ``Request.url`` is rebuilt from the decoded path, which would change
    the meaning of encoded slashes in object keys.
    """
    raw_uri = request.environ.get("RAW_URI") or request.environ.get(
        "REQUEST_URI"
    )
    if raw_uri:
        return request.host_url.rstrip("/") + raw_uri
    return request.url


def _to_response(upstream: httpx.Response, *, head: bool = False) -> Response:
    """Convert an upstream httpx response to a werkzeug response."""
    headers = Headers(
        [
            (name, value)
            for name, value in upstream.headers.multi_items()
            if name.lower() not in _RESPONSE_DROPPED_HEADERS
        ]
    )
    response = Response(
        upstream.content, status=upstream.status_code, headers=headers
    )
    if head and "content-length" in upstream.headers:
        response.headers["Content-Length"] = upstream.headers["content-length"]
    return response
