"""
=============================================================================
ADMIN HTTP SERVER
=============================================================================

Ties the listener, the worker pool and the route table together into a
small embedded HTTP/1.1 server.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         HTTPServer                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept thread               worker threads                        │
    │   ┌──────────────┐  conn     ┌──────────────┐                        │
    │   │ SocketServer │ ────────► │  ThreadPool  │ ──► _process_connection│
    │   └──────────────┘           └──────────────┘                        │
    │                                                                      │
    │   _process_connection (one worker owns the connection):             │
    │                                                                      │
    │     read head ─► parse ─► [100 Continue] ─► read body ─► route      │
    │         ▲                                                   │        │
    │         │                                                   ▼        │
    │     keep-alive ◄──────── write response ◄──────────── handler       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ERROR HANDLING
=============================================================================

    What went wrong                      What the client sees     Log
    ─────────────────────────────────────────────────────────────────────
    Malformed request / oversized head   connection dropped       WARNING
    Bad chunked framing                  connection dropped       WARNING
    Body over max_content_length         413, then close          WARNING
    Expect: <anything but 100-continue>  417, then close          DEBUG
    No route for (method, path)          404 "Not Found"          DEBUG
    Handler raised                       500 (no details)         ERROR + traceback

=============================================================================
LIFECYCLE
=============================================================================

    CREATED ──start()──► LISTENING ──close()──► SHUTTING_DOWN ──► CLOSED
       │                                                             ▲
       ├──start() fails to bind ─────────────────────────────────────┤
       └──close() before start() ────────────────────────────────────┘

close() runs the shutdown sequence once, however many threads call it:

    1. stop accepting; the listener is closed
    2. wake idle keep-alive connections so they close
    3. wait up to drain_timeout for in-flight requests to finish
    4. force-close whatever is left (RST)
    5. stop the worker pool

=============================================================================
"""

import logging
import threading
import time
from enum import Enum
from typing import Optional, Set, Tuple

from .config import AdminConfig
from .core import (
    Connection,
    FrameTooLargeError,
    PayloadTooLargeError,
    SocketServer,
    ThreadPool,
)
from .errors import BindError, ServerStateError
from .http import (
    CONTINUE_RESPONSE,
    Handler,
    HTTPParseError,
    HTTPRequest,
    HTTPResponse,
    RequestParser,
    Route,
    RouteTable,
    expectation_failed,
    internal_error,
    not_found,
    payload_too_large,
)
from .http.access_log import AccessLogger


logger = logging.getLogger(__name__)


class ServerState(Enum):
    CREATED = "created"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    CLOSED = "closed"


class HTTPServer:
    """
    Minimal embedded HTTP/1.1 server with exact (method, path) routing.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(AdminConfig(port=0))
        server.add_route("GET", "/health", lambda request: text("OK"))
        server.start()                 # binds, returns immediately
        host, port = server.address
        ...
        server.close()                 # graceful, blocks until CLOSED

    Routes must be added before start(); the table is frozen afterwards.

    =========================================================================
    """

    def __init__(self, config: Optional[AdminConfig] = None, routes: Optional[RouteTable] = None):
        self.config = config or AdminConfig()
        self.config.validate()

        self._routes = routes if routes is not None else RouteTable()
        self._parser = RequestParser(
            max_initial_line_length=self.config.max_initial_line_length,
            max_header_size=self.config.max_header_size,
        )
        self._socket_server = SocketServer(self.config, self._handle_connection)
        self._thread_pool = ThreadPool(workers=self.config.workers)
        self._access_log = AccessLogger(self.config.log_format) if self.config.access_log else None

        self._state = ServerState.CREATED
        self._state_lock = threading.Lock()
        self._closed = threading.Event()

        self._connections: Set[Connection] = set()
        self._connections_lock = threading.Lock()

        self._accept_thread: Optional[threading.Thread] = None
        self._address: Optional[Tuple[str, int]] = None

    # =========================================================================
    # ROUTES
    # =========================================================================

    @property
    def routes(self) -> RouteTable:
        return self._routes

    def add_route(self, method: str, path: str, handler: Handler) -> Route:
        """Register a handler. Raises ServerStateError after start()."""
        return self._routes.add_route(method, path, handler)

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == ServerState.LISTENING

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the configured pair before start()."""
        if self._address is not None:
            return self._address
        return (self.config.host, self.config.port)

    @property
    def active_connections(self) -> int:
        with self._connections_lock:
            return len(self._connections)

    # =========================================================================
    # START
    # =========================================================================

    def start(self) -> Tuple[str, int]:
        """
        Bind and start serving in background threads.

        Returns:
            The bound (host, port).

        Raises:
            ServerStateError: If the server was already started or closed.
            BindError: If the port can't be bound. The server is CLOSED.
        """
        with self._state_lock:
            if self._state != ServerState.CREATED:
                raise ServerStateError(f"Cannot start server in state {self._state.value}")

            self._routes.freeze()

            try:
                self._address = self._socket_server.bind()
            except BindError:
                self._state = ServerState.CLOSED
                self._closed.set()
                raise

            self._thread_pool.start()
            self._accept_thread = threading.Thread(
                target=self._socket_server.serve_forever,
                name="admin-accept",
                daemon=True,
            )
            self._accept_thread.start()
            self._state = ServerState.LISTENING

        host, port = self._address
        logger.info(f"Admin server listening on http://{host}:{port} ({self.config.workers} workers)")
        for route in self._routes.routes():
            logger.info(f"  {route.method:<6} {route.path}")

        return self._address

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def close(self, timeout: Optional[float] = None) -> bool:
        """
        Shut the server down gracefully.

        The first caller runs the shutdown sequence; concurrent and later
        callers wait for it to finish.

        Args:
            timeout: How long a waiting caller blocks (None = forever).

        Returns:
            True once the server is CLOSED, False if a waiting caller
            timed out first.
        """
        with self._state_lock:
            if self._state == ServerState.CREATED:
                self._state = ServerState.CLOSED
                self._closed.set()
                return True

            if self._state != ServerState.LISTENING:
                owner = False
            else:
                self._state = ServerState.SHUTTING_DOWN
                owner = True

        if not owner:
            return self._closed.wait(timeout)

        try:
            self._shutdown()
        finally:
            with self._state_lock:
                self._state = ServerState.CLOSED
            self._closed.set()
            logger.info("Admin server stopped")

        return True

    def close_async(self) -> threading.Thread:
        """
        Run close() on a new thread and return the thread.

        For handlers: a worker that called close() directly would wait for
        its own connection to drain.
        """
        thread = threading.Thread(target=self.close, name="admin-shutdown", daemon=True)
        thread.start()
        return thread

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        """Block until the server reaches CLOSED."""
        return self._closed.wait(timeout)

    def _shutdown(self):
        logger.info("Shutting down admin server...")

        # 1. Stop accepting. The accept loop closes the listener on exit.
        self._socket_server.stop()
        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join()

        # 2-4. Drain, then force.
        self._drain_connections(self.config.drain_timeout)

        # 5. Workers.
        self._thread_pool.shutdown(timeout=self.config.drain_timeout)

    def _drain_connections(self, drain_timeout: float):
        deadline = time.monotonic() + drain_timeout

        while True:
            with self._connections_lock:
                remaining = list(self._connections)

            if not remaining:
                return

            for conn in remaining:
                if conn.is_idle:
                    conn.interrupt()

            if time.monotonic() >= deadline:
                logger.warning(
                    f"{len(remaining)} connection(s) still open after "
                    f"{drain_timeout}s, forcing close"
                )
                for conn in remaining:
                    conn.close(force=True)
                return

            time.sleep(0.05)

    # =========================================================================
    # CONNECTION PIPELINE
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Called on the accept thread for each new connection."""
        if not self.is_running:
            conn.close(force=True)
            return

        with self._connections_lock:
            self._connections.add(conn)

        try:
            self._thread_pool.submit(self._process_connection, args=(conn,))
        except RuntimeError:
            self._forget(conn)
            raise

    def _forget(self, conn: Connection):
        with self._connections_lock:
            self._connections.discard(conn)

    def _process_connection(self, conn: Connection):
        """Serve one connection until it closes (runs on a worker)."""
        try:
            with conn:
                self._serve(conn)
        except OSError as e:
            # The socket was force-closed under us during shutdown.
            logger.debug(f"[{conn.id}] Connection aborted: {e}")
        finally:
            self._forget(conn)

    def _serve(self, conn: Connection):
        """
        The keep-alive loop: one iteration per request.

        Returns when the connection should be closed.
        """
        while self.is_running and not conn.is_closed:
            # -----------------------------------------------------------------
            # 1. Frame decode (bounded)
            # -----------------------------------------------------------------
            try:
                head = conn.read_head()
            except FrameTooLargeError as e:
                logger.warning(f"[{conn.id}] Protocol error from {conn.client_ip}: {e}")
                return
            except TimeoutError:
                logger.debug(f"[{conn.id}] Timed out waiting for request")
                return

            if head is None:
                return

            started_at = time.monotonic()

            try:
                request = self._parser.parse_head(head, conn.address)
            except HTTPParseError as e:
                logger.warning(f"[{conn.id}] Protocol error from {conn.client_ip}: {e}")
                return

            # -----------------------------------------------------------------
            # 2. Expectations and size check before reading the body
            # -----------------------------------------------------------------
            if request.has_unsupported_expectation:
                logger.debug(f"[{conn.id}] Unsupported Expect: {request.get_header('expect')!r}")
                self._write(conn, request, expectation_failed(), started_at, keep_alive=False)
                return

            if request.content_length > self.config.max_content_length:
                logger.warning(
                    f"[{conn.id}] Declared body of {request.content_length} bytes "
                    f"exceeds {self.config.max_content_length}"
                )
                self._write(conn, request, payload_too_large(), started_at, keep_alive=False)
                return

            if request.expects_continue:
                if not conn.send(CONTINUE_RESPONSE):
                    return

            # -----------------------------------------------------------------
            # 3. Aggregate the body
            # -----------------------------------------------------------------
            try:
                request.body = conn.read_body(request)
            except PayloadTooLargeError as e:
                logger.warning(f"[{conn.id}] {e}")
                self._write(conn, request, payload_too_large(), started_at, keep_alive=False)
                return
            except HTTPParseError as e:
                logger.warning(f"[{conn.id}] Protocol error from {conn.client_ip}: {e}")
                return
            except (ConnectionError, TimeoutError) as e:
                logger.debug(f"[{conn.id}] Body read aborted: {e}")
                return

            # -----------------------------------------------------------------
            # 4. Dispatch
            # -----------------------------------------------------------------
            conn.mark_processing()
            response = self.dispatch(request)

            # -----------------------------------------------------------------
            # 5. Encode, write, keep-alive
            # -----------------------------------------------------------------
            keep_alive = (
                request.is_keep_alive
                and self.is_running
                and response.get_header("Connection").lower() != "close"
            )
            if not self._write(conn, request, response, started_at, keep_alive):
                return
            if not keep_alive:
                return

            conn.set_keep_alive()

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request and run its handler.

        Never raises: a missing route becomes 404 and a failing handler
        becomes 500.
        """
        route = self._routes.find_route(request.method, request.path)
        if route is None:
            logger.debug(f"No route for {request.method} {request.path}")
            return not_found()

        try:
            response = route.handler(request)
        except Exception as e:
            logger.exception(f"Handler for {request.method} {request.path} failed: {e}")
            return internal_error()

        if not isinstance(response, HTTPResponse):
            logger.error(
                f"Handler for {request.method} {request.path} returned "
                f"{type(response).__name__}, not HTTPResponse"
            )
            return internal_error()

        return response

    def _write(
        self,
        conn: Connection,
        request: HTTPRequest,
        response: HTTPResponse,
        started_at: float,
        keep_alive: bool,
    ) -> bool:
        if not keep_alive:
            response.headers["Connection"] = "close"

        data = response.to_bytes(
            self.config.server_name,
            include_body=request.method != "HEAD",
        )

        if self._access_log is not None:
            self._access_log.log(request, response, started_at)

        return conn.send(data)
