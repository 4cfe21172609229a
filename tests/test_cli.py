# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for s3gate/cli.py, the multi-command CLI."""

import logging
import urllib.parse
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from s3gate.cli import cli, cmd_presign, cmd_serve
from tests.vectors import ACCESS_KEY_ID, SECRET_ACCESS_KEY


_CONFIG = f"""\
credentials:
  access_key_id: {ACCESS_KEY_ID}
  secret_access_key: {SECRET_ACCESS_KEY}
s3:
  bucket: bucket
  region: eu-west-1
server:
  port: 9001
"""


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "s3gate.yaml"
    path.write_text(_CONFIG)
    return path


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# ── serve ───────────────────────────────────────────────────────────


class TestCmdServe:
    @patch("s3gate.server.SigningProxy.serve_forever")
    def test_serves_with_config(
        self, mock_serve: MagicMock, config_path: Path
    ) -> None:
        assert cmd_serve(["--config", str(config_path)]) == 0
        mock_serve.assert_called_once()

    def test_host_and_port_overrides(self, config_path: Path) -> None:
        proxies = []

        def fake_serve(self) -> None:
            proxies.append(self)

        with patch(
            "s3gate.server.SigningProxy.serve_forever", fake_serve
        ):
            cmd_serve(
                [
                    "--config",
                    str(config_path),
                    "--host",
                    "0.0.0.0",
                    "--port",
                    "9100",
                ]
            )

        assert proxies[0].host == "0.0.0.0"
        assert proxies[0].port == 9100

    def test_port_from_config(self, config_path: Path) -> None:
        proxies = []

        def fake_serve(self) -> None:
            proxies.append(self)

        with patch(
            "s3gate.server.SigningProxy.serve_forever", fake_serve
        ):
            cmd_serve(["--config", str(config_path)])

        assert proxies[0].port == 9001

    def test_debug_logging(self, config_path: Path) -> None:
        with patch("s3gate.server.SigningProxy.serve_forever"):
            cmd_serve(["--config", str(config_path), "--debug"])
        assert logging.getLogger().level == logging.DEBUG

    def test_config_error(self, tmp_path: Path) -> None:
        assert cmd_serve(["--config", str(tmp_path / "missing.yaml")]) == 1

    @patch(
        "s3gate.server.SigningProxy.serve_forever",
        side_effect=KeyboardInterrupt,
    )
    def test_keyboard_interrupt(
        self, mock_serve: MagicMock, config_path: Path
    ) -> None:
        assert cmd_serve(["--config", str(config_path)]) == 0


# ── presign ─────────────────────────────────────────────────────────


class TestCmdPresign:
    def test_prints_url(
        self, config_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = cmd_presign(
            [
                "path/to/key.txt",
                "--config",
                str(config_path),
                "--expires",
                "60",
            ]
        )

        assert code == 0
        url = capsys.readouterr().out.strip()
        parts = urllib.parse.urlsplit(url)
        params = dict(urllib.parse.parse_qsl(parts.query))
        assert parts.netloc == "bucket.s3.eu-west-1.amazonaws.com"
        assert parts.path == "/path/to/key.txt"
        assert params["X-Amz-Expires"] == "60"
        assert params["X-Amz-Credential"].startswith(ACCESS_KEY_ID + "/")

    def test_invalid_expires(self, config_path: Path) -> None:
        assert (
            cmd_presign(["k", "--config", str(config_path), "--expires", "0"])
            == 1
        )

    def test_config_error(self, tmp_path: Path) -> None:
        assert cmd_presign(["k", "--config", str(tmp_path / "no.yaml")]) == 1


# ── cli ─────────────────────────────────────────────────────────────


class TestCli:
    def test_no_args_prints_usage(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with (
            patch("s3gate.cli.sys.argv", ["s3gate"]),
            pytest.raises(SystemExit) as exc_info,
        ):
            cli()
        assert exc_info.value.code == 0
        assert "Usage: s3gate" in capsys.readouterr().out

    def test_unknown_command_exits_with_error(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with (
            patch("s3gate.cli.sys.argv", ["s3gate", "proxy"]),
            pytest.raises(SystemExit) as exc_info,
        ):
            cli()
        assert exc_info.value.code == 2
        err = capsys.readouterr().err
        assert "unknown command 'proxy'" in err
        assert "presign" in err

    @patch("s3gate.cli.sys.exit")
    @patch("s3gate.cli.cmd_serve", return_value=0)
    def test_dispatch_serve(
        self, mock_serve: MagicMock, mock_exit: MagicMock
    ) -> None:
        with patch("s3gate.cli.sys.argv", ["s3gate", "serve", "--debug"]):
            cli()
        mock_serve.assert_called_once_with(["--debug"])
        mock_exit.assert_called_once_with(0)

    @patch("s3gate.cli.sys.exit")
    @patch("s3gate.cli.cmd_presign", return_value=1)
    def test_dispatch_presign(
        self, mock_presign: MagicMock, mock_exit: MagicMock
    ) -> None:
        with patch("s3gate.cli.sys.argv", ["s3gate", "presign", "k"]):
            cli()
        mock_presign.assert_called_once_with(["k"])
        mock_exit.assert_called_once_with(1)
