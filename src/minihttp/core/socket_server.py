"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. Knows nothing about HTTP:
every accepted socket is wrapped in a Connection and handed to a
callback (HTTPServer submits it to the worker pool).

=============================================================================
SOCKET LIFECYCLE
=============================================================================

    socket()  ──►  setsockopt()  ──►  bind()  ──►  listen()
                   SO_REUSEADDR       host:port    backlog
                                                      │
                            ┌─────────────────────────┘
                            ▼
                   ┌──────────────────┐
                   │  accept() loop   │◄──── times out every accept_timeout
                   │                  │      to re-check the closed flag
                   └────────┬─────────┘
                            │ close() from another thread
                            ▼
                   shutdown() + close()   → later connects are REFUSED

=============================================================================
WHY A TIMEOUT ON ACCEPT?
=============================================================================

Closing a listening socket from another thread is supposed to kick a
blocked accept() out with an error. On Linux, close() alone doesn't;
shutdown(SHUT_RDWR) does; on other platforms neither is guaranteed. A
short timeout makes the loop check the closed flag regularly no matter
what the platform does, and close() still tries shutdown() first so the
loop usually exits immediately.

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection

logger = logging.getLogger(__name__)


class SocketServer:
    """
    Listening socket plus accept loop.

    Usage:
        server = SocketServer(config)
        server.bind()
        server.serve_forever(handle_connection)  # Blocks until close()

    close() may be called from any thread, or from a signal handler.
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._closed = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port). With port=0 in the config this is the
        port the OS actually picked.
        """
        if self._socket is not None:
            try:
                host, port = self._socket.getsockname()[:2]
                return host, port
            except OSError:
                pass
        return self.config.host, self.config.port

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # SO_REUSEADDR: rebinding right after a restart must not fail with
        # "Address already in use" while old sockets sit in TIME_WAIT.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        sock.settimeout(self.config.accept_timeout)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create the socket, bind and listen.

        Returns:
            The bound address.

        Raises:
            OSError: If the address can't be bound (in use, no permission).
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._closed.clear()
        return self.address

    def serve_forever(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until close() is called.

        Accept errors while open are logged and the loop continues. Errors
        after close() are the expected way out and are not logged.

        Args:
            connection_handler: Called with each new Connection, on this
                                thread. It must not block for long.
        """
        if self._socket is None:
            raise RuntimeError("serve_forever() called before bind()")

        listener = self._socket

        while not self._closed.is_set():
            try:
                client_socket, client_address = listener.accept()
            except socket.timeout:
                continue  # Periodic wake-up to check the closed flag
            except OSError as e:
                if self._closed.is_set():
                    break
                logger.error(f"Accept error: {e}")
                if listener.fileno() == -1:
                    break  # Socket is gone for good
                # Back off briefly so a persistent error (e.g. EMFILE)
                # doesn't spin the loop.
                self._closed.wait(0.05)
                continue

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.request_timeout,
                close_timeout=self.config.close_timeout,
            )
            logger.debug(f"[{conn.id}] Accepted connection from {client_address[0]}:{client_address[1]}")

            connection_handler(conn)

    def close(self):
        """
        Stop accepting. Idempotent, callable from any thread.

        After this returns, connection attempts are refused by the OS.
        """
        if self._closed.is_set():
            return
        self._closed.set()

        sock = self._socket
        if sock is None:
            return

        try:
            sock.shutdown(socket.SHUT_RDWR)  # Wakes a blocked accept() on Linux
        except OSError:
            pass  # Not connected, which is normal for a listener on some OSes

        try:
            sock.close()
        except OSError:
            pass

        logger.info("Listening socket closed")

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def install_signal_handlers(self, on_signal: Callable[[], None]) -> bool:
        """
        Route SIGINT and SIGTERM to `on_signal`.

        SIGTERM comes from `kill`, systemd and `docker stop`; SIGINT from
        Ctrl+C. Only the main thread may install signal handlers, so this
        is a no-op (returning False) anywhere else, e.g. when the server
        runs on a background thread in tests.
        """
        if threading.current_thread() is not threading.main_thread():
            return False

        def handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
            on_signal()

        for sig in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[sig] = signal.signal(sig, handler)
        return True

    def restore_signal_handlers(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()
