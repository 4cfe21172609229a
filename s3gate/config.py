# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Configuration for the s3gate proxy.

Configuration is loaded from a YAML file.  The default location follows
the XDG Base Directory Specification:

    ``$XDG_CONFIG_HOME/s3gate/s3gate.yaml``
    (typically ``~/.config/s3gate/s3gate.yaml``)

``!env`` tags resolve values from environment variables.  Example::

    credentials:
      access_key_id: !env ACCESS_KEY_ID
      secret_access_key: !env SECRET_ACCESS_KEY
      session_token: !env SESSION_TOKEN
    s3:
      bucket: my-bucket
      region: eu-west-1
      addressing_style: virtual   # or "path"
      endpoint: minio.internal:9000   # optional S3-compatible host
      endpoint_scheme: https
    server:
      host: 127.0.0.1
      port: 8787
      upstream_timeout: 30
      not_ready_status: 400
      not_ready_message: Setup not yet complete!
      cors: true

When no config file exists the same settings are read from plain
environment variables (``ACCESS_KEY_ID``, ``SECRET_ACCESS_KEY``,
``SESSION_TOKEN``, ``S3_REGION``, ``S3_BUCKET_NAME``, ...).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar, overload

import yaml
from platformdirs import user_config_path

from s3gate.dotenv_loader import load_dotenv_once
from s3gate.endpoint import AddressingStyle, S3Endpoint
from s3gate.logging import SecretFilter


logger = logging.getLogger(__name__)

#: Application name for XDG path resolution.
_APP_NAME = "s3gate"

DEFAULT_REGION = "us-east-1"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8787
DEFAULT_UPSTREAM_TIMEOUT = 30.0
DEFAULT_NOT_READY_STATUS = 400
DEFAULT_NOT_READY_MESSAGE = "Setup not yet complete!"

_BOOL_TRUTHY = frozenset({"true", "1", "yes", "on"})
_BOOL_FALSY = frozenset({"false", "0", "no", "off"})


def get_config_path() -> Path:
    """Return the default config file path (XDG)."""
    return user_config_path(_APP_NAME) / "s3gate.yaml"


def get_dotenv_path() -> Path:
    """Return the default ``.env`` path inside the XDG config directory."""
    return user_config_path(_APP_NAME) / ".env"


class ConfigError(Exception):
    """Base exception for configuration errors."""


# ---------------------------------------------------------------------------
# YAML tag placeholders
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


# ---------------------------------------------------------------------------
# Value resolution
# ---------------------------------------------------------------------------


def _coerce_bool(value: object) -> bool:
    """Coerce a value to bool, handling string representations."""
    if isinstance(value, bool):
        return value
    s = str(value).lower().strip()
    if s in _BOOL_TRUTHY:
        return True
    if s in _BOOL_FALSY:
        return False
    raise ConfigError(f"Cannot convert {value!r} to bool")


def _raw_resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its string value, or stringify literals.

    Returns None if the value is None or the env var is not set.
    """
    if isinstance(value, _EnvVar):
        return os.environ.get(value.var_name)
    if value is None:
        return None
    return str(value)


_MISSING = object()

_T = TypeVar("_T")


@overload
def _resolve(value: object, coerce: type[_T], *, default: _T) -> _T: ...


@overload
def _resolve(
    value: object,
    coerce: type[_T],
    *,
    required: str,
) -> _T: ...


@overload
def _resolve(value: object, coerce: type[_T]) -> _T | None: ...


def _resolve(
    value: object,
    coerce: type[Any],
    *,
    default: object = _MISSING,
    required: str = "",
) -> Any:
    """Resolve a YAML value, handling ``!env`` tags and type coercion.

    Empty strings count as absent, so an env var set to ``""`` falls back
    to the default (or fails a required check).

    Args:
        value: Raw value from YAML (may be ``_EnvVar``, None, or a
            literal already parsed by PyYAML).
        coerce: Target type (``str``, ``int``, ``float``, ``bool``).
        default: Default when value is absent.
        required: Human-readable field name.  When set, raises
            ``ConfigError`` if the value is absent.

    Returns:
        The resolved, coerced value, or None when optional and absent.
    """
    if not isinstance(value, _EnvVar) and value is not None:
        if coerce is bool:
            return _coerce_bool(value)
        if isinstance(value, coerce) and value != "":
            return value

    resolved = _raw_resolve(value)

    if resolved is None or resolved == "":
        if required:
            if isinstance(value, _EnvVar):
                raise ConfigError(
                    f"Required config '{required}': environment variable "
                    f"'{value.var_name}' is not set"
                )
            raise ConfigError(f"Required config '{required}' is missing")
        if default is not _MISSING:
            return default
        return None

    if coerce is bool:
        return _coerce_bool(resolved)
    try:
        return coerce(resolved)
    except ValueError as e:
        raise ConfigError(
            f"Cannot convert {resolved!r} to {coerce.__name__}"
        ) from e


def _resolve_style(value: object) -> AddressingStyle:
    raw = _resolve(value, str, default=AddressingStyle.VIRTUAL.value)
    try:
        return AddressingStyle(raw.lower())
    except ValueError:
        raise ConfigError(
            f"addressing_style must be 'virtual' or 'path', got {raw!r}"
        ) from None


def _section(raw: dict, name: str) -> dict:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a YAML mapping")
    return section


# ---------------------------------------------------------------------------
# Proxy configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProxyConfig:
    """Complete proxy configuration.

    Attributes:
        access_key_id: AWS access key ID.
        secret_access_key: AWS secret access key.
        bucket: Target bucket name.
        region: Bucket region.
        session_token: Optional STS session token.
        addressing_style: Virtual-hosted-style or path-style.
        endpoint_host: ``host[:port]`` of an S3-compatible store.
        endpoint_scheme: Scheme used for the upstream endpoint.
        host: Address the proxy listens on.
        port: Port the proxy listens on.
        upstream_timeout: Upstream request timeout in seconds.
        not_ready_status: Upstream statuses above this are replaced by
            the not-ready response.
        not_ready_message: Body of the not-ready response.
        cors_enabled: Answer CORS preflight ``OPTIONS`` requests locally.
    """

    access_key_id: str
    secret_access_key: str
    bucket: str
    region: str = DEFAULT_REGION
    session_token: str | None = None
    addressing_style: AddressingStyle = AddressingStyle.VIRTUAL
    endpoint_host: str | None = None
    endpoint_scheme: str = "https"
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    upstream_timeout: float = DEFAULT_UPSTREAM_TIMEOUT
    not_ready_status: int = DEFAULT_NOT_READY_STATUS
    not_ready_message: str = DEFAULT_NOT_READY_MESSAGE
    cors_enabled: bool = True

    def __post_init__(self) -> None:
        """Validate settings and register secrets for log redaction.

        Raises:
            ConfigError: If validation fails.
        """
        if not self.access_key_id:
            raise ConfigError("access_key_id is required")
        if not self.secret_access_key:
            raise ConfigError("secret_access_key is required")
        if not self.bucket:
            raise ConfigError("bucket is required")
        if not self.region:
            raise ConfigError("region is required")
        if self.endpoint_scheme not in ("http", "https"):
            raise ConfigError(
                f"endpoint_scheme must be http or https: "
                f"{self.endpoint_scheme!r}"
            )
        if not 0 < self.port < 65536:
            raise ConfigError(f"port out of range: {self.port}")
        if self.upstream_timeout <= 0:
            raise ConfigError(
                f"upstream_timeout must be > 0: {self.upstream_timeout}"
            )

        SecretFilter.register_secret(self.secret_access_key)
        SecretFilter.register_secret(self.session_token)

    def endpoint(self) -> S3Endpoint:
        """Build the upstream endpoint for the configured bucket."""
        try:
            return S3Endpoint(
                bucket=self.bucket,
                region=self.region,
                style=self.addressing_style,
                custom_host=self.endpoint_host,
                scheme=self.endpoint_scheme,
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> "ProxyConfig":
        """Load configuration from a YAML file.

        A ``.env`` file is loaded first if present, then ``!env`` tags are
        resolved from the environment.

        Args:
            config_path: Path to YAML config file.  Defaults to
                ``~/.config/s3gate/s3gate.yaml`` (XDG).

        Returns:
            ProxyConfig instance.

        Raises:
            ConfigError: If the file is missing or required values are
                absent.
        """
        load_dotenv_once()

        if config_path is None:
            config_path = get_config_path()

        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            raw = yaml.load(f, Loader=_make_loader())

        if not isinstance(raw, dict):
            raise ConfigError(
                f"Config file must be a YAML mapping: {config_path}"
            )

        config = cls._from_raw(raw)
        logger.info(
            "Config loaded from %s: bucket=%s region=%s",
            config_path,
            config.bucket,
            config.region,
        )
        return config

    @classmethod
    def _from_raw(cls, raw: dict) -> "ProxyConfig":
        """Build config from parsed (but unresolved) YAML dict."""
        credentials = _section(raw, "credentials")
        s3 = _section(raw, "s3")
        server = _section(raw, "server")

        return cls(
            access_key_id=_resolve(
                credentials.get("access_key_id"),
                str,
                required="credentials.access_key_id",
            ),
            secret_access_key=_resolve(
                credentials.get("secret_access_key"),
                str,
                required="credentials.secret_access_key",
            ),
            session_token=_resolve(credentials.get("session_token"), str),
            bucket=_resolve(s3.get("bucket"), str, required="s3.bucket"),
            region=_resolve(s3.get("region"), str, default=DEFAULT_REGION),
            addressing_style=_resolve_style(s3.get("addressing_style")),
            endpoint_host=_resolve(s3.get("endpoint"), str),
            endpoint_scheme=_resolve(
                s3.get("endpoint_scheme"), str, default="https"
            ),
            host=_resolve(server.get("host"), str, default=DEFAULT_HOST),
            port=_resolve(server.get("port"), int, default=DEFAULT_PORT),
            upstream_timeout=_resolve(
                server.get("upstream_timeout"),
                float,
                default=DEFAULT_UPSTREAM_TIMEOUT,
            ),
            not_ready_status=_resolve(
                server.get("not_ready_status"),
                int,
                default=DEFAULT_NOT_READY_STATUS,
            ),
            not_ready_message=_resolve(
                server.get("not_ready_message"),
                str,
                default=DEFAULT_NOT_READY_MESSAGE,
            ),
            cors_enabled=_resolve(server.get("cors"), bool, default=True),
        )

    @classmethod
    def from_env(cls) -> "ProxyConfig":
        """Load configuration from plain environment variables.

        Reads ``ACCESS_KEY_ID``, ``SECRET_ACCESS_KEY``, ``SESSION_TOKEN``,
        ``S3_BUCKET_NAME``, ``S3_REGION`` (default ``us-east-1``),
        ``S3_ADDRESSING_STYLE``, ``S3_ENDPOINT``, ``S3_ENDPOINT_SCHEME``,
        ``S3GATE_HOST`` and ``S3GATE_PORT``.

        Raises:
            ConfigError: If required variables are unset.
        """
        load_dotenv_once()
        env = os.environ.get

        return cls(
            access_key_id=_resolve(
                env("ACCESS_KEY_ID"), str, required="ACCESS_KEY_ID"
            ),
            secret_access_key=_resolve(
                env("SECRET_ACCESS_KEY"), str, required="SECRET_ACCESS_KEY"
            ),
            session_token=_resolve(env("SESSION_TOKEN"), str),
            bucket=_resolve(
                env("S3_BUCKET_NAME"), str, required="S3_BUCKET_NAME"
            ),
            region=_resolve(env("S3_REGION"), str, default=DEFAULT_REGION),
            addressing_style=_resolve_style(env("S3_ADDRESSING_STYLE")),
            endpoint_host=_resolve(env("S3_ENDPOINT"), str),
            endpoint_scheme=_resolve(
                env("S3_ENDPOINT_SCHEME"), str, default="https"
            ),
            host=_resolve(env("S3GATE_HOST"), str, default=DEFAULT_HOST),
            port=_resolve(env("S3GATE_PORT"), int, default=DEFAULT_PORT),
        )

    @classmethod
    def load(cls, config_path: Path | None = None) -> "ProxyConfig":
        """Load from ``config_path``, the default file, or the environment.

        An explicit ``config_path`` must exist.  Without one, the default
        XDG file is used when present and the environment otherwise.
        """
        if config_path is not None:
            return cls.from_yaml(config_path)
        if get_config_path().exists():
            return cls.from_yaml()
        return cls.from_env()
