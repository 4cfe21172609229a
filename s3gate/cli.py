# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""s3gate CLI: multi-command entry point.

Subcommands:

* ``serve``: run the signing proxy
* ``presign``: print a presigned URL for an object key
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from s3gate.config import ConfigError, ProxyConfig
from s3gate.logging import configure_logging
from s3gate.signing import DEFAULT_PRESIGN_EXPIRES, SigningError


logger = logging.getLogger(__name__)

_USAGE = """\
Usage: s3gate <command> [options]

Commands:
  serve      Run the signing proxy
  presign    Print a presigned URL for an object key

Run 's3gate <command> --help' for command options."""


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help=(
            "Path to s3gate.yaml config file"
            " (default: ~/.config/s3gate/s3gate.yaml, then environment)"
        ),
    )


# ── serve subcommand ────────────────────────────────────────────────


def cmd_serve(argv: list[str]) -> int:
    """Run the signing proxy in the foreground.

    Args:
        argv: Subcommand arguments.

    Returns:
        Exit code (0=clean shutdown, 1=config error).
    """
    from s3gate.server import SigningProxy

    parser = argparse.ArgumentParser(
        prog="s3gate serve",
        description="Sign and forward requests to an S3 bucket",
    )
    _add_config_argument(parser)
    parser.add_argument("--host", default=None, help="Address to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(argv)

    configure_logging(level=logging.DEBUG if args.debug else logging.INFO)

    try:
        config = ProxyConfig.load(args.config)
        proxy = SigningProxy.from_config(config)
    except (ConfigError, SigningError) as e:
        logger.critical("Configuration error: %s", e)
        return 1

    if args.host is not None:
        proxy.host = args.host
    if args.port is not None:
        proxy.port = args.port

    try:
        proxy.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


# ── presign subcommand ──────────────────────────────────────────────


def cmd_presign(argv: list[str]) -> int:
    """Print a presigned URL for an object key.

    Args:
        argv: Subcommand arguments.

    Returns:
        Exit code (0=success, 1=config error).
    """
    from s3gate.client import S3Client

    parser = argparse.ArgumentParser(
        prog="s3gate presign",
        description="Print a presigned URL for an object key",
    )
    parser.add_argument("key", help="Object key")
    _add_config_argument(parser)
    parser.add_argument(
        "--expires",
        type=int,
        default=DEFAULT_PRESIGN_EXPIRES,
        metavar="SECONDS",
        help=f"URL lifetime (default: {DEFAULT_PRESIGN_EXPIRES})",
    )
    parser.add_argument(
        "--method",
        default="GET",
        help="HTTP method the URL will be used with (default: GET)",
    )
    args = parser.parse_args(argv)

    configure_logging(level=logging.WARNING)

    try:
        config = ProxyConfig.load(args.config)
        client = S3Client.from_config(config)
        url = client.presign(
            args.key, method=args.method, expires=args.expires
        )
    except (ConfigError, SigningError) as e:
        logger.error("%s", e)
        return 1

    print(url)
    return 0


# ── CLI plumbing ────────────────────────────────────────────────────


_DISPATCH: dict[str, str] = {
    "serve": "cmd_serve",
    "presign": "cmd_presign",
}


def cli() -> None:
    """Entry point for ``s3gate``.

    Requires an explicit subcommand; with no arguments prints usage.
    """
    argv = sys.argv[1:]

    if not argv or argv[0] in ("-h", "--help"):
        print(_USAGE)
        sys.exit(0)

    if argv[0] not in _DISPATCH:
        print(f"s3gate: unknown command '{argv[0]}'", file=sys.stderr)
        print(_USAGE, file=sys.stderr)
        sys.exit(2)

    # Look up handler by name so tests can mock individual commands.
    import s3gate.cli as _self

    handler = getattr(_self, _DISPATCH[argv[0]])
    sys.exit(handler(argv[1:]))
