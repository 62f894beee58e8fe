"""
Unit tests for the command-line entry point.
"""

import io

import pytest

from minihttp import HTTPServer, ServerConfig, __version__
from minihttp.__main__ import build_parser, main, register_demo_handlers
from minihttp.http.request import HTTPRequest


class TestCLI:
    """Tests for argument parsing and startup errors."""

    def test_defaults(self):
        args = build_parser(ServerConfig()).parse_args([])

        assert args.host == "127.0.0.1"
        assert args.port == 9999
        assert args.root == "public"
        assert args.workers == 64
        assert args.grace_period == 5.0
        assert args.no_control is False

    def test_flags(self):
        args = build_parser(ServerConfig()).parse_args(
            ["--port", "8080", "--root", "./site", "-w", "4", "--log-level", "DEBUG", "--no-control"]
        )

        assert args.port == 8080
        assert args.root == "./site"
        assert args.workers == 4
        assert args.log_level == "DEBUG"
        assert args.no_control is True

    def test_env_provides_defaults(self, monkeypatch):
        """Test that environment settings become flag defaults."""
        monkeypatch.setenv("HTTP_PORT", "7000")

        args = build_parser(ServerConfig.from_env()).parse_args([])

        assert args.port == 7000

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser(ServerConfig()).parse_args(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_invalid_config_exit_code(self, capsys):
        """Test that a bad setting is reported and returns 2."""
        assert main(["--workers", "0", "--no-control"]) == 2
        assert "max_workers" in capsys.readouterr().err

    def test_invalid_env_exit_code(self, monkeypatch, capsys):
        """Test that a bad environment setting is reported and returns 2."""
        monkeypatch.setenv("HTTP_PORT", "not-a-port")

        assert main(["--no-control"]) == 2
        assert "invalid environment setting" in capsys.readouterr().err


class TestDemoHandlers:
    """Tests for the /messages endpoints."""

    @pytest.mark.parametrize("method", ["GET", "POST"])
    def test_messages(self, method: str):
        server = HTTPServer(ServerConfig(port=0))
        register_demo_handlers(server)
        out = io.BytesIO()

        server.routes.resolve(method, "/messages").handle(HTTPRequest(method, "/messages"), out)

        assert out.getvalue().startswith(b"HTTP/1.1 200 OK\r\n")
        assert out.getvalue().endswith(f"Messages handler called with {method} method".encode())

    def test_only_get_and_post(self):
        server = HTTPServer(ServerConfig(port=0))
        register_demo_handlers(server)

        assert server.routes.routes() == [("GET", "/messages"), ("POST", "/messages")]
