"""
pytest configuration and fixtures.
"""

import socket
import sys
import threading
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from minihttp import HTTPServer, ServerConfig


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request with a repeated query parameter."""
    return (
        b"GET /messages?last=10&tag=a&tag=b HTTP/1.1\r\n"
        b"Host: localhost:9999\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/plain\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body and Content-Length."""
    body = b"title=hello&text=world"
    return (
        b"POST /messages HTTP/1.1\r\n"
        b"Host: localhost:9999\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def public_dir(tmp_path: Path) -> Path:
    """
    A static root with a few files, a subdirectory, a templated page, and
    a secret file next to (not inside) the root.
    """
    root = tmp_path / "public"
    root.mkdir()

    (root / "index.html").write_text("<h1>Index</h1>")
    (root / "a.html").write_text("<p>A</p>")
    (root / "b.css").write_text("body { color: red; }")
    (root / "app.js").write_text("console.log('hi');")
    (root / "data.bin").write_bytes(bytes(range(256)))
    (root / "notes.unknownext").write_text("?")
    (root / "classic.html").write_text("<p>Now: {time}</p>")
    (root / "img").mkdir()
    (root / "img" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\nfake")

    (tmp_path / "secret.txt").write_text("top secret")

    return root


def http_exchange(port: int, raw: bytes, timeout: float = 5.0, half_close: bool = False) -> bytes:
    """Send raw bytes, read until the server closes, return everything read."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as sock:
        sock.sendall(raw)
        if half_close:
            sock.shutdown(socket.SHUT_WR)

        chunks = []
        while True:
            try:
                chunk = sock.recv(65536)
            except ConnectionResetError:
                break
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)


def parse_response(data: bytes) -> tuple[str, dict, bytes]:
    """Split a raw response into (status line, headers, body)."""
    head, _, body = data.partition(b"\r\n\r\n")
    lines = head.decode("iso-8859-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(": ")
        headers[name] = value
    return lines[0], headers, body


class RunningServer:
    """Runs HTTPServer.start() on a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self) -> "RunningServer":
        self._thread = threading.Thread(target=self.server.start, daemon=True)
        self._thread.start()
        if not self.server.wait_until_running(timeout=5.0):
            raise RuntimeError("Server failed to start")
        return self

    def request(self, raw: bytes, **kwargs) -> bytes:
        return http_exchange(self.port, raw, **kwargs)

    def stop(self):
        self.server.stop()
        if self._thread is not None:
            self._thread.join(timeout=10.0)


@pytest.fixture
def make_server(public_dir: Path) -> Generator[Callable[..., RunningServer], None, None]:
    """Factory for background servers; all are stopped on teardown."""
    started: list[RunningServer] = []

    def factory(**overrides) -> RunningServer:
        settings = dict(
            host="127.0.0.1",
            port=0,  # Let OS pick a free port
            static_root=str(public_dir),
            max_workers=4,
            queue_size=8,
            grace_period=2.0,
            close_timeout=0.2,
            log_level="WARNING",
        )
        settings.update(overrides)
        running = RunningServer(HTTPServer(ServerConfig(**settings)))
        started.append(running)
        return running

    yield factory

    for running in started:
        running.stop()
