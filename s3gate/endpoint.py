# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Rewrite inbound request URLs into S3 endpoint URLs.

Two addressing styles are supported:

- Virtual-hosted-style: ``https://<bucket>.s3.<region>.amazonaws.com/<key>``
- Path-style: ``https://s3-<region>.amazonaws.com/<bucket>/<key>``, with
  the legacy rule that ``us-east-1`` has no region segment
  (``https://s3.amazonaws.com/<bucket>/<key>``).

A custom endpoint host (MinIO, R2 and other S3-compatible stores) always
uses path-style addressing.
"""

import urllib.parse
from dataclasses import dataclass
from enum import Enum


#: Regions served from the region-less legacy path-style host.
LEGACY_US_EAST_REGIONS = frozenset({"us-east-1", "us-east"})


class AddressingStyle(Enum):
    """How the bucket name is embedded in the endpoint URL."""

    VIRTUAL = "virtual"
    PATH = "path"


def virtual_hosted_host(bucket: str, region: str) -> str:
    """Return the virtual-hosted-style host for a bucket."""
    return f"{bucket}.s3.{region}.amazonaws.com"


def path_style_host(region: str) -> str:
    """Return the legacy path-style host for a region."""
    if region in LEGACY_US_EAST_REGIONS:
        return "s3.amazonaws.com"
    return f"s3-{region}.amazonaws.com"


@dataclass(frozen=True)
class S3Endpoint:
    """Target bucket and addressing rules for rewritten requests.

    Attributes:
        bucket: Bucket name.
        region: AWS region of the bucket.
        style: Addressing style for AWS hosts.
        custom_host: ``host[:port]`` of an S3-compatible store.  When set,
            path-style addressing on this host is used.
        scheme: URL scheme of the upstream endpoint.
    """

    bucket: str
    region: str
    style: AddressingStyle = AddressingStyle.VIRTUAL
    custom_host: str | None = None
    scheme: str = "https"

    def __post_init__(self) -> None:
        """Validate the endpoint.

        Raises:
            ValueError: If bucket or region is empty or malformed.
        """
        if not self.bucket:
            raise ValueError("bucket is required")
        if "/" in self.bucket:
            raise ValueError(f"bucket must not contain '/': {self.bucket!r}")
        if not self.region:
            raise ValueError("region is required")
        if self.scheme not in ("http", "https"):
            raise ValueError(f"scheme must be http or https: {self.scheme!r}")

    @property
    def host(self) -> str:
        """Upstream host for this endpoint."""
        if self.custom_host:
            return self.custom_host
        if self.style is AddressingStyle.VIRTUAL:
            return virtual_hosted_host(self.bucket, self.region)
        return path_style_host(self.region)

    @property
    def is_path_style(self) -> bool:
        return bool(self.custom_host) or self.style is AddressingStyle.PATH

    def rewrite(self, url: str) -> str:
        """Rewrite an inbound URL to target this endpoint.

        The scheme and host are replaced (any inbound port is dropped), the
        bucket is prepended to the path for path-style addressing, and the
        query string is kept as-is.

        Args:
            url: Inbound request URL (absolute, or a bare path).

        Returns:
            Absolute upstream URL.
        """
        parts = urllib.parse.urlsplit(url)
        path = parts.path or "/"
        if not path.startswith("/"):
            path = "/" + path
        if self.is_path_style:
            path = f"/{self.bucket}{path}"
        return urllib.parse.urlunsplit(
            (self.scheme, self.host, path, parts.query, "")
        )
