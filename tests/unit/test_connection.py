"""
Unit tests for Connection, over a local socket pair.
"""

import socket
import time

import pytest

from minihttp.core.connection import Connection, ConnectionState
from minihttp.http.request import RequestParser


@pytest.fixture
def pair():
    server_side, client_side = socket.socketpair()
    conn = Connection(socket=server_side, address=("127.0.0.1", 50000), close_timeout=0.2)
    yield conn, client_side
    conn.close()
    client_side.close()


class TestConnectionReads:
    """Tests for the stream methods."""

    def test_read_line_across_chunks(self, pair):
        """Test that a line split over several sends is reassembled."""
        conn, client = pair
        client.sendall(b"GET / HT")
        client.sendall(b"TP/1.1\r\nHost: a\r\n")

        assert conn.read_line() == b"GET / HTTP/1.1"
        assert conn.read_line() == b"Host: a"
        assert conn.state == ConnectionState.READING

    def test_read_line_at_eof(self, pair):
        """Test partial line then None once the peer closes."""
        conn, client = pair
        client.sendall(b"partial")
        client.shutdown(socket.SHUT_WR)

        assert conn.read_line() == b"partial"
        assert conn.read_line() is None

    def test_read_line_limit(self, pair):
        """Test that an endless line is rejected."""
        conn, client = pair
        client.sendall(b"x" * 100)

        with pytest.raises(ValueError):
            conn.read_line(limit=10)

    def test_read_exact(self, pair):
        """Test fixed-size reads, including a short read at EOF."""
        conn, client = pair
        client.sendall(b"hello world")
        client.shutdown(socket.SHUT_WR)

        assert conn.read_exact(5) == b"hello"
        assert conn.read_exact(100) == b" world"

    def test_read_available_does_not_block(self, pair):
        """Test that nothing pending returns immediately with no data."""
        conn, _ = pair

        begin = time.monotonic()
        assert conn.read_available() == b""
        assert time.monotonic() - begin < 0.5

    def test_read_available_returns_pending(self, pair):
        """Test that already-sent bytes are collected."""
        conn, client = pair
        client.sendall(b"line\nrest")

        assert conn.read_line() == b"line"
        time.sleep(0.05)
        assert conn.read_available() == b"rest"

    def test_parse_without_waiting_for_eof(self, pair):
        """Test that a request is parsed while the client keeps the socket open."""
        conn, client = pair
        client.settimeout(2.0)
        client.sendall(b"GET /messages HTTP/1.1\r\nHost: a\r\n\r\n")

        request = RequestParser().parse(conn, conn.address)

        assert request.path == "/messages"
        assert request.body == b""


class TestConnectionClose:
    """Tests for close() and abort()."""

    def test_close_flushes_output(self, pair):
        """Test that buffered output reaches the peer before EOF."""
        conn, client = pair
        client.settimeout(2.0)
        conn.output.write(b"response bytes")
        client.shutdown(socket.SHUT_WR)

        conn.close()

        received = b""
        while True:
            chunk = client.recv(1024)
            if not chunk:
                break
            received += chunk
        assert received == b"response bytes"
        assert conn.state == ConnectionState.CLOSED

    def test_close_idempotent(self, pair):
        """Test that closing twice is harmless."""
        conn, client = pair
        client.shutdown(socket.SHUT_WR)

        conn.close()
        conn.close()

        assert conn.state == ConnectionState.CLOSED

    def test_context_manager_closes(self, pair):
        conn, client = pair
        client.shutdown(socket.SHUT_WR)

        with conn:
            pass

        assert conn.state == ConnectionState.CLOSED

    def test_abort_untouched_connection(self, pair):
        """Test that aborting a connection nobody read from closes it."""
        conn, _ = pair

        conn.abort()

        assert conn.state == ConnectionState.CLOSED

    def test_abort_wakes_reader(self, pair):
        """Test that abort() ends a blocked read with EOF."""
        conn, client = pair
        client.sendall(b"GET")
        assert conn.read_exact(3) == b"GET"

        conn.abort()

        assert conn.read_line() is None
        assert conn.state == ConnectionState.READING

    def test_properties(self, pair):
        conn, _ = pair

        assert conn.client_ip == "127.0.0.1"
        assert conn.client_port == 50000
        assert len(conn.id) == 8
        assert conn.age >= 0
