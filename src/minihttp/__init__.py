"""
=============================================================================
MINIHTTP - A Minimal HTTP/1.1 Server
=============================================================================

Serves static files from a sandboxed directory, and dispatches requests
for registered (method, path) pairs to application handlers. Built on raw
sockets and a fixed thread pool; one request per connection.

=============================================================================
QUICK START
=============================================================================

    from minihttp import HTTPServer, ServerConfig, send_text

    server = HTTPServer(ServerConfig(port=9999, static_root="public"))

    @server.get("/messages")
    def messages(request, out):
        send_text(out, "200 OK", "Messages handler called with GET method")

    server.start()  # Blocks; type \\exit on stdin (CLI) or send SIGINT to stop

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    minihttp/
    ├── __init__.py      ← You are here (public API)
    ├── __main__.py      ← CLI: python -m minihttp
    ├── config.py        ← ServerConfig
    ├── control.py       ← ControlChannel (operator shutdown command)
    ├── server.py        ← HTTPServer, ConnectionHandler
    │
    ├── core/            ← Sockets and threads
    │   ├── socket_server.py
    │   ├── connection.py
    │   └── thread_pool.py
    │
    ├── http/            ← Protocol
    │   ├── request.py
    │   ├── response.py
    │   ├── status_codes.py
    │   ├── router.py
    │   └── mime_types.py
    │
    └── handlers/        ← Built-in request handling
        └── static.py

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .control import ControlChannel
from .server import HTTPServer, ConnectionHandler, ServerState
from .http import (
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    HTTPParseError,
    RequestParser,
    Handler,
    FunctionHandler,
    RouteTable,
    send_response,
    send_text,
    send_not_found,
)
from .handlers import StaticFileResolver, StaticResult

__all__ = [
    # Server
    "HTTPServer",
    "ServerConfig",
    "ServerState",
    "ConnectionHandler",
    "ControlChannel",
    # Request / response
    "HTTPRequest",
    "HTTPResponse",
    "HTTPStatus",
    "HTTPParseError",
    "RequestParser",
    "send_response",
    "send_text",
    "send_not_found",
    # Routing and static files
    "Handler",
    "FunctionHandler",
    "RouteTable",
    "StaticFileResolver",
    "StaticResult",
    # Metadata
    "__version__",
]
