"""
=============================================================================
ROUTE TABLE
=============================================================================

Maps (method, path) pairs to handlers. Exact match only.

=============================================================================
HOW MATCHING WORKS
=============================================================================

There is no pattern syntax. A route is the pair of strings the client
must send, byte for byte:

    register("GET",  "/messages", list_messages)
    register("POST", "/messages", add_message)

    GET  /messages          → list_messages
    POST /messages          → add_message
    GET  /messages/         → no route (trailing slash is a different path)
    get  /messages          → no route (methods are case-sensitive)
    GET  /Messages          → no route (paths are case-sensitive)
    GET  /messages?page=2   → list_messages (query string isn't part of path)

A miss isn't an error: the connection handler falls through to the static
file resolver, which may still find a file at that path.

Registering the same pair twice replaces the first handler.

=============================================================================
HANDLERS
=============================================================================

A handler is anything with a handle(request, out) method. It receives the
parsed request and the connection's output sink, and is fully
responsible for writing a response (normally via send_response()):

    class Messages(Handler):
        def handle(self, request, out):
            send_text(out, "200 OK", "Messages handler called with GET method")

Plain functions with the same signature work too; register() wraps them
in a FunctionHandler.

=============================================================================
THREAD SAFETY
=============================================================================

Every worker thread reads the table; registration normally happens before
start() but is allowed afterwards. A single lock guards both sides. The
critical sections are a dict lookup, so contention is negligible.

=============================================================================
"""

import threading
from abc import ABC, abstractmethod
from typing import BinaryIO, Callable, Dict, List, Optional, Tuple, Union

from .request import HTTPRequest


class Handler(ABC):
    """Application logic bound to a route."""

    @abstractmethod
    def handle(self, request: HTTPRequest, out: BinaryIO) -> None:
        """Write a complete response for `request` to `out`."""


HandlerFunc = Callable[[HTTPRequest, BinaryIO], None]


class FunctionHandler(Handler):
    """Adapts a plain function to the Handler interface."""

    def __init__(self, func: HandlerFunc):
        self.func = func

    def handle(self, request: HTTPRequest, out: BinaryIO) -> None:
        self.func(request, out)

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", repr(self.func))
        return f"FunctionHandler({name})"


RouteKey = Tuple[str, str]


class RouteTable:
    """
    Exact (method, path) → Handler mapping.

    Usage:
        routes = RouteTable()
        routes.register("GET", "/messages", messages_handler)

        handler = routes.resolve("GET", "/messages")
        if handler is not None:
            handler.handle(request, out)
    """

    def __init__(self):
        self._routes: Dict[RouteKey, Handler] = {}
        self._lock = threading.Lock()

    def register(self, method: str, path: str, handler: Union[Handler, HandlerFunc]) -> Handler:
        """
        Add or replace the handler for (method, path).

        Args:
            method: HTTP method, compared case-sensitively.
            path: Exact request path, compared case-sensitively.
            handler: Handler instance or a function(request, out).

        Returns:
            The stored Handler (the wrapper, if a function was given).
        """
        if not isinstance(handler, Handler):
            if not callable(handler):
                raise TypeError(f"Handler must be a Handler or callable, got {handler!r}")
            handler = FunctionHandler(handler)

        with self._lock:
            self._routes[(method, path)] = handler
        return handler

    def resolve(self, method: str, path: str) -> Optional[Handler]:
        """Return the handler for exactly (method, path), or None."""
        with self._lock:
            return self._routes.get((method, path))

    def routes(self) -> List[RouteKey]:
        """Snapshot of registered keys, sorted by path then method."""
        with self._lock:
            keys = list(self._routes)
        return sorted(keys, key=lambda key: (key[1], key[0]))

    def __contains__(self, key: RouteKey) -> bool:
        with self._lock:
            return key in self._routes

    def __len__(self) -> int:
        with self._lock:
            return len(self._routes)
