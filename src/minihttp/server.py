"""
=============================================================================
MAIN HTTP SERVER
=============================================================================

Ties the components together: the socket server accepts, the thread pool
runs, the connection handler parses, routes, resolves and responds.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. CLIENT CONNECTS
       SocketServer.accept() → Connection

    2. QUEUE FOR PROCESSING
       HTTPServer._dispatch() → ThreadPool.submit()
       (blocks while all 64 workers are busy and the queue is full)

    3. PARSE REQUEST (worker thread)
       RequestParser.parse(conn) → HTTPRequest
       malformed? → close silently, no response

    4. ROUTE
       RouteTable.resolve(method, path)
       hit  → handler.handle(request, conn.output)
       miss → StaticFileResolver.resolve(path) → send_response()

    5. CLOSE
       Always. One request per connection.

=============================================================================
LIFECYCLE STATES
=============================================================================

    ┌─────────┐ start() ┌─────────┐ stop()  ┌──────────┐  pool   ┌─────────┐
    │ CREATED │────────►│ RUNNING │────────►│ STOPPING │────────►│ STOPPED │
    └────┬────┘         └─────────┘         └──────────┘  done   └─────────┘
         │                                                            ▲
         └───────────────────────── stop() ───────────────────────────┘

stop() can come from a worker, the control channel thread, a signal
handler, or the application. It's idempotent: only the first call does
anything.

=============================================================================
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Tuple, Union

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .handlers import StaticFileResolver
from .http import (
    HTTPParseError,
    RequestParser,
    RouteTable,
    Handler,
    send_response,
)
from .http.router import HandlerFunc

logger = logging.getLogger(__name__)


class ServerState(Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ConnectionHandler:
    """
    Serves exactly one request on one connection, then closes it.

    Errors stay inside the connection: a parse failure drops it without a
    response, an I/O failure or a crashing handler is logged and aborts
    it. Nothing propagates to the worker pool or the accept loop.
    """

    def __init__(
        self,
        routes: RouteTable,
        resolver: StaticFileResolver,
        parser: Optional[RequestParser] = None,
    ):
        self.routes = routes
        self.resolver = resolver
        self.parser = parser or RequestParser()

    def handle(self, conn: Connection) -> None:
        with conn:
            try:
                self._serve(conn)
            except OSError as e:
                logger.error(f"[{conn.id}] I/O error, aborting connection: {e}")
            except Exception as e:
                logger.exception(f"[{conn.id}] Unhandled error, aborting connection: {e}")

    def _serve(self, conn: Connection) -> None:
        try:
            request = self.parser.parse(conn, conn.address)
        except HTTPParseError as e:
            logger.debug(f"[{conn.id}] Dropping connection from {conn.client_ip}: {e}")
            return

        conn.state = ConnectionState.PROCESSING

        handler = self.routes.resolve(request.method, request.path)
        if handler is not None:
            handler.handle(request, conn.output)
            outcome = repr(handler)
        else:
            result = self.resolver.resolve(request.path)
            send_response(
                conn.output,
                result.status,
                result.content_length,
                result.mime_type,
                result.body,
            )
            outcome = str(result.status)

        logger.info(f'[{conn.id}] {conn.client_ip} "{request.method} {request.path}" {outcome}')


class HTTPServer:
    """
    Minimal HTTP/1.1 server: registered handlers plus static files.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(port=9999, static_root="public"))

        @server.get("/messages")
        def messages(request, out):
            send_text(out, "200 OK", "Messages handler called with GET method")

        server.add_handler("POST", "/messages", post_messages)

        server.start()   # Blocks until stop()

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        routes: Optional[RouteTable] = None,
        resolver: Optional[StaticFileResolver] = None,
    ):
        """
        Args:
            config: Server configuration. Defaults if not provided.
            routes: Route table to serve from. A fresh one if not provided.
            resolver: Static file resolver. Built from config if not provided.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail fast on invalid config

        self.routes = routes if routes is not None else RouteTable()
        self.resolver = resolver or StaticFileResolver(
            self.config.static_root,
            template_paths=self.config.template_paths,
            template_token=self.config.template_token,
            allowed_paths=self.config.allowed_paths,
        )

        self._connection_handler = ConnectionHandler(
            self.routes,
            self.resolver,
            RequestParser(
                max_line_size=self.config.max_line_size,
                max_header_count=self.config.max_header_count,
                max_body_size=self.config.max_body_size,
            ),
        )
        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )

        self._state = ServerState.CREATED
        self._state_lock = threading.Lock()
        self._running = threading.Event()
        self._stopped = threading.Event()

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_handler(self, method: str, path: str, handler: Union[Handler, HandlerFunc]) -> Handler:
        """
        Register a handler for exactly (method, path). Replaces any
        handler already registered for the same pair.
        """
        return self.routes.register(method, path, handler)

    def route(self, method: str, path: str) -> Callable[[HandlerFunc], HandlerFunc]:
        """
        Decorator form of add_handler():

            @server.route("PUT", "/messages")
            def put_messages(request, out): ...
        """
        def decorator(func: HandlerFunc) -> HandlerFunc:
            self.add_handler(method, path, func)
            return func
        return decorator

    def get(self, path: str):
        """Register a GET handler."""
        return self.route("GET", path)

    def post(self, path: str):
        """Register a POST handler."""
        return self.route("POST", path)

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port even if config.port is 0."""
        return self._socket_server.address

    def wait_until_running(self, timeout: Optional[float] = None) -> bool:
        return self._running.wait(timeout)

    def wait_until_stopped(self, timeout: Optional[float] = None) -> bool:
        return self._stopped.wait(timeout)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self):
        """
        Bind, start the workers and accept connections. Blocks until the
        server is STOPPED.

        Raises:
            RuntimeError: If the server was already started or stopped.
            OSError: If the port can't be bound. The server is then STOPPED.
        """
        with self._state_lock:
            if self._state is not ServerState.CREATED:
                raise RuntimeError(f"Cannot start a server that is {self._state.value}")

        self._setup_logging()

        try:
            self._socket_server.bind()
        except OSError:
            self._set_stopped()
            raise

        self._thread_pool.start()

        with self._state_lock:
            if self._state is not ServerState.CREATED:
                # stop() won the race while we were binding.
                aborted = True
            else:
                self._state = ServerState.RUNNING
                aborted = False

        if aborted:
            self._socket_server.close()
            self._thread_pool.shutdown(grace_period=0)
            self._set_stopped()
            return

        self._socket_server.install_signal_handlers(self.stop)
        self._log_startup()
        self._running.set()

        try:
            self._socket_server.serve_forever(self._dispatch)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._socket_server.restore_signal_handlers()
            self.stop()
            self._stopped.wait()

    def stop(self):
        """
        Graceful shutdown. Idempotent, callable from any thread.

        =====================================================================
        SHUTDOWN SEQUENCE
        =====================================================================

        1. RUNNING → STOPPING
        2. Close the listening socket: accept loop exits, new connection
           attempts are refused
        3. Stop taking new work; let queued and in-flight connections
           finish, for up to config.grace_period seconds
        4. Cancel whatever is still running (sockets are shut down)
        5. STOPPING → STOPPED

        =====================================================================
        """
        with self._state_lock:
            if self._state in (ServerState.STOPPING, ServerState.STOPPED):
                return
            if self._state is ServerState.CREATED:
                self._state = ServerState.STOPPED
                self._stopped.set()
                return
            self._state = ServerState.STOPPING

        logger.info("Stopping server...")

        self._socket_server.close()

        clean = self._thread_pool.shutdown(grace_period=self.config.grace_period)
        if not clean:
            logger.warning("Some connections were cancelled at the end of the grace period")

        self._set_stopped()
        logger.info("Server stopped")

    def _set_stopped(self):
        with self._state_lock:
            self._state = ServerState.STOPPED
        self._running.clear()
        self._stopped.set()

    # =========================================================================
    # CONNECTION DISPATCH
    # =========================================================================

    def _dispatch(self, conn: Connection):
        """
        Hand a new connection to the pool (runs on the accept thread).

        Blocks while the pool is saturated; see ThreadPool for the policy.
        A connection the pool won't take because shutdown has begun is
        closed without a response.
        """
        try:
            submitted = self._thread_pool.submit(
                self._connection_handler.handle,
                args=(conn,),
                on_cancel=conn.abort,
            )
        except RuntimeError:
            submitted = False

        if not submitted:
            logger.warning(f"[{conn.id}] Server is stopping, closing connection from {conn.client_ip}")
            conn.close()

    # =========================================================================
    # LOGGING
    # =========================================================================

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("minihttp").setLevel(level)

    def _log_startup(self):
        host, port = self.address
        logger.info(
            f"Serving http://{host}:{port} "
            f"(static root: {self.resolver.root}, workers: {self.config.max_workers})"
        )
        for method, path in self.routes.routes():
            logger.info(f"  route {method:<7} {path}")
