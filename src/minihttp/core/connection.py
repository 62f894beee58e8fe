"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with the reading and writing API the
request parser and the response writer need.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP does NOT preserve message boundaries. A client that sends

    "GET /messages HTTP/1.1\r\nHost: x\r\n\r\n"

in one write may be received as

    recv() → "GET /mess"
    recv() → "ages HTTP/1.1\r\nHo"
    recv() → "st: x\r\n\r\n"

so we keep a buffer, append every chunk to it, and cut lines out of it
when a "\n" shows up. Whatever is left over after the headers (the start
of the body, possibly all of it) stays in the buffer for the body read.

=============================================================================
THREE WAYS TO READ
=============================================================================

    read_line(limit)     Blocks until a full line (or EOF). Used for the
                         request line and headers.

    read_exact(n)        Blocks until n bytes (or EOF). Used when the
                         client announced Content-Length: n.

    read_available()     NEVER blocks. Returns the buffer plus whatever
                         the kernel already holds for this socket, found
                         with a zero-timeout select(). Used when there is
                         no Content-Length, so a client that sent no body
                         doesn't make us wait for one.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    ┌─────────┐  read_*()  ┌─────────┐  parsed  ┌────────────┐
    │   NEW   │───────────►│ READING │─────────►│ PROCESSING │
    └────┬────┘            └────┬────┘          └─────┬──────┘
         │                      │                     │
         │ abort()              │ close()             │ close()
         ▼                      ▼                     ▼
    ┌────────────────────────────────────────────────────────┐
    │                 CLOSING  ──►  CLOSED                    │
    └────────────────────────────────────────────────────────┘

There is no keep-alive state: one request per connection, then close.

=============================================================================
CLOSING WITHOUT LOSING THE RESPONSE
=============================================================================

If we close() a socket that still has unread client data in its receive
buffer, the kernel sends RST instead of FIN, and the client may discard
the response it hasn't read yet. So close() does:

    1. flush the output          (response bytes handed to the kernel)
    2. shutdown(SHUT_WR)         (FIN: "no more data from us")
    3. drain briefly             (read and discard what the client sent)
    4. close()                   (release the file descriptor)

=============================================================================
"""

import logging
import select
import socket
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, for logging and close/abort bookkeeping."""

    NEW = "new"                # Accepted, nothing read yet
    READING = "reading"        # Reading request data
    PROCESSING = "processing"  # Request parsed, handler or resolver running
    CLOSING = "closing"        # Shutdown sequence in progress
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    One accepted client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used to prefix log lines.
        state: Current ConnectionState.
        created_at: When the connection was accepted.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 8192
    timeout: Optional[float] = None     # None = block until the peer acts
    close_timeout: float = 0.5          # Drain budget in close()

    _buffer: bytes = field(default=b"", repr=False)
    _output: Optional[BinaryIO] = field(default=None, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        self.socket.settimeout(self.timeout)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def client_port(self) -> int:
        return self.address[1] if self.address else 0

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    @property
    def output(self) -> BinaryIO:
        """
        Buffered binary writer over the socket: the response sink.

        Created on first use. Callers write and flush; send_response()
        always flushes before it returns.
        """
        if self._output is None:
            self._output = self.socket.makefile("wb", buffering=self.buffer_size)
        return self._output

    # =========================================================================
    # READING
    # =========================================================================

    def read_line(self, limit: int = 65536) -> Optional[bytes]:
        """
        Read one line, without its line terminator ("\\r\\n" or "\\n").

        Args:
            limit: Longest acceptable line in bytes.

        Returns:
            The line, or None if the peer closed before sending anything.
            If the peer closes mid-line, the partial line is returned.

        Raises:
            ValueError: If the line exceeds `limit`.
            OSError: On socket errors (including a configured timeout).
        """
        self._mark_reading()

        while True:
            end = self._buffer.find(b"\n")
            if end != -1:
                line = self._buffer[:end]
                self._buffer = self._buffer[end + 1:]
                break

            if len(self._buffer) > limit:
                raise ValueError(f"Line too long: more than {limit} bytes")

            chunk = self._recv()
            if not chunk:
                if not self._buffer:
                    return None
                line, self._buffer = self._buffer, b""
                break

            self._buffer += chunk

        if len(line) > limit:
            raise ValueError(f"Line too long: {len(line)} bytes")

        return line[:-1] if line.endswith(b"\r") else line

    def read_exact(self, n: int) -> bytes:
        """
        Read exactly n bytes, blocking as needed.

        Returns fewer than n bytes only if the peer closed first.
        """
        self._mark_reading()

        while len(self._buffer) < n:
            chunk = self._recv()
            if not chunk:
                break
            self._buffer += chunk

        data = self._buffer[:n]
        self._buffer = self._buffer[n:]
        return data

    def read_available(self, limit: Optional[int] = None) -> bytes:
        """
        Return buffered data plus anything readable right now. Never blocks.

        Args:
            limit: Stop collecting after this many bytes.
        """
        self._mark_reading()

        data, self._buffer = self._buffer, b""

        while (limit is None or len(data) < limit) and self._readable_now():
            chunk = self._recv()
            if not chunk:
                break
            data += chunk

        if limit is not None and len(data) > limit:
            data, self._buffer = data[:limit], data[limit:]

        return data

    def _readable_now(self) -> bool:
        try:
            readable, _, _ = select.select([self.socket], [], [], 0)
        except (OSError, ValueError):
            # ValueError: the socket was closed under us (fileno -1).
            return False
        return bool(readable)

    def _recv(self) -> bytes:
        """
        socket.recv() that reports a reset connection as end of stream.

        Timeouts are NOT swallowed: with a request_timeout configured, a
        silent client surfaces as socket.timeout and ends the connection.
        """
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _mark_reading(self):
        if self.state == ConnectionState.NEW:
            self.state = ConnectionState.READING

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Flush, half-close, drain and release the socket. Idempotent.
        """
        with self._lock:
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return
            self.state = ConnectionState.CLOSING

        if self._output is not None:
            try:
                self._output.close()  # Flushes anything still buffered
            except OSError as e:
                logger.debug(f"[{self.id}] Flush on close failed: {e}")

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        # Read and discard what the client still sends, so the kernel sends
        # FIN rather than RST. Bounded by close_timeout overall.
        deadline = time.monotonic() + self.close_timeout
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                if not self.socket.recv(1024):
                    break
        except OSError:
            pass  # Timeout or reset; we're closing anyway

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def abort(self):
        """
        Cut the connection off immediately. Safe to call from another thread.

        Used by forced shutdown. shutdown(SHUT_RDWR) wakes a worker blocked
        in recv() on this socket; the worker then runs its normal close().
        A connection no worker has touched yet is closed outright.
        """
        with self._lock:
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return
            untouched = self.state == ConnectionState.NEW

        logger.debug(f"[{self.id}] Aborting connection")

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

        if untouched:
            with self._lock:
                self.state = ConnectionState.CLOSED
            try:
                self.socket.close()
            except OSError:
                pass

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        """
        Allows:

            with conn:
                request = parser.parse(conn)
                ...
            # closed here, whatever happened
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
