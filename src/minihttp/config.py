"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the server.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   1. Code          ServerConfig(port=9999, max_workers=8)            │
    │   2. Environment   ServerConfig.from_env()   (HTTP_PORT=9999 ...)    │
    │   3. CLI           python -m minihttp --port 9999                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

There are no config files. Everything has a default that works for local
development: serve ./public on 127.0.0.1:9999 with 64 workers.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK       host, port, backlog, buffer_size
    CONCURRENCY   max_workers, queue_size, grace_period
    TIMEOUTS      accept_timeout, request_timeout, close_timeout
    PARSER LIMITS max_line_size, max_header_count, max_body_size
    STATIC FILES  static_root, template_paths, template_token, allowed_paths
    CONTROL       shutdown_command
    LOGGING       log_level

    =========================================================================
    """

    # -------------------------------------------------------------------------
    # NETWORK SETTINGS
    # -------------------------------------------------------------------------

    host: str = "127.0.0.1"
    """IP address to bind to. "0.0.0.0" for all interfaces."""

    port: int = 9999
    """Port to listen on. 0 lets the OS pick a free one (see HTTPServer.address)."""

    backlog: int = 128
    """
    Maximum number of connections the kernel queues before accept().
    When the worker pool and its queue are both full, clients wait here.
    """

    buffer_size: int = 8192
    """recv() chunk size and output buffer size per connection, in bytes."""

    # -------------------------------------------------------------------------
    # CONCURRENCY
    # -------------------------------------------------------------------------

    max_workers: int = 64
    """Fixed number of worker threads. One connection per worker at a time."""

    queue_size: int = 128
    """
    Accepted connections that may wait for a free worker. When full, the
    accept loop blocks until a worker frees up.
    """

    grace_period: float = 5.0
    """Seconds stop() waits for in-flight connections before cancelling them."""

    # -------------------------------------------------------------------------
    # TIMEOUTS
    # -------------------------------------------------------------------------

    accept_timeout: float = 0.5
    """How often the accept loop wakes up to check for shutdown, in seconds."""

    request_timeout: Optional[float] = None
    """
    Socket timeout for reading a request. None (the default) means a slow
    client may hold its worker until it disconnects or shutdown cancels it.
    """

    close_timeout: float = 0.5
    """How long close() drains unread client data before releasing the socket."""

    # -------------------------------------------------------------------------
    # PARSER LIMITS
    # -------------------------------------------------------------------------

    max_line_size: int = 8192
    max_header_count: int = 100
    max_body_size: int = 10 * 1024 * 1024  # 10 MB

    # -------------------------------------------------------------------------
    # STATIC FILES
    # -------------------------------------------------------------------------

    static_root: str = "public"
    """Directory served when no route matches."""

    template_paths: Tuple[str, ...] = ("/classic.html",)
    """URL paths whose `template_token` is replaced with the current time."""

    template_token: str = "{time}"

    allowed_paths: Optional[Tuple[str, ...]] = None
    """Optional allow-list of static URL paths. None = any file under root."""

    # -------------------------------------------------------------------------
    # CONTROL AND LOGGING
    # -------------------------------------------------------------------------

    shutdown_command: str = "\\exit"
    """Operator command (case-insensitive) that stops the server."""

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST          Server host (default: 127.0.0.1)
        HTTP_PORT          Server port (default: 9999)
        HTTP_WORKERS       Worker threads (default: 64)
        HTTP_STATIC_ROOT   Static files directory (default: public)
        HTTP_GRACE_PERIOD  Shutdown grace period in seconds (default: 5)
        HTTP_LOG_LEVEL     Logging level (default: INFO)

        =====================================================================
        """
        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "9999")),
            max_workers=int(os.getenv("HTTP_WORKERS", "64")),
            static_root=os.getenv("HTTP_STATIC_ROOT", "public"),
            grace_period=float(os.getenv("HTTP_GRACE_PERIOD", "5")),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values. Raises ValueError on the first
        problem, so a bad config fails at construction rather than on
        the first request.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.grace_period < 0:
            raise ValueError("grace_period must be >= 0")

        if self.accept_timeout <= 0:
            raise ValueError("accept_timeout must be > 0")

        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")

        if not self.shutdown_command.strip():
            raise ValueError("shutdown_command must not be empty")
