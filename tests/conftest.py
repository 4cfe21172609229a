# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across multiple test packages."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from s3gate.dotenv_loader import reset_dotenv_state
from s3gate.endpoint import S3Endpoint
from s3gate.logging import SecretFilter
from tests.vectors import ACCESS_KEY_ID, SECRET_ACCESS_KEY


_ENV_VARS = (
    "ACCESS_KEY_ID",
    "SECRET_ACCESS_KEY",
    "SESSION_TOKEN",
    "S3_BUCKET_NAME",
    "S3_REGION",
    "S3_ADDRESSING_STYLE",
    "S3_ENDPOINT",
    "S3_ENDPOINT_SCHEME",
    "S3GATE_HOST",
    "S3GATE_PORT",
)


@pytest.fixture(autouse=True)
def _isolate_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    """Keep tests away from the real environment and config directory.

    Clears the proxy's environment variables, points the XDG config
    directory at ``tmp_path`` and resets process-wide state (dotenv
    loading and registered log secrets).
    """
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    reset_dotenv_state()
    SecretFilter.clear_secrets()
    yield
    SecretFilter.clear_secrets()
    reset_dotenv_state()


@pytest.fixture
def endpoint() -> S3Endpoint:
    """Virtual-hosted endpoint for ``bucket`` in us-east-1."""
    return S3Endpoint(bucket="bucket", region="us-east-1")


@pytest.fixture
def s3_client(endpoint: S3Endpoint):
    """S3Client for the test bucket with the documentation credentials."""
    from s3gate.client import S3Client

    return S3Client(
        access_key_id=ACCESS_KEY_ID,
        secret_access_key=SECRET_ACCESS_KEY,
        endpoint=endpoint,
    )
