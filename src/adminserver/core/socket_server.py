"""
=============================================================================
TCP LISTENER AND ACCEPT LOOP
=============================================================================

Owns the listening socket of the admin port and hands every accepted
client to a callback (the HTTP server, which queues it on the worker
pool).

    bind()            socket() → setsockopt() → bind() → listen()
                      Runs in the caller's thread, so a bind failure is
                      raised straight out of HTTPServer.start().

    serve_forever()   Selector loop, run on the accept thread:
                          while running:
                              select(listener, 0.2s)
                              accept() every pending client
                              callback(Connection)

    stop()            Flag the loop to exit. The loop closes the listener
                      on its way out, after which connects are refused.

=============================================================================
SOCKET OPTIONS
=============================================================================

Listener:
    SO_REUSEADDR   Rebind immediately after a restart (no TIME_WAIT wait).
    SO_LINGER 1/0  close() resets pending handshakes instead of lingering,
                   so the port is released the moment the server stops.

Accepted sockets:
    TCP_NODELAY    Responses are tiny; don't let Nagle hold them back.
    SO_LINGER off  Linger settings are inherited from the listener. With
                   linger 0 still set, close() would send RST and could
                   discard a response the client hasn't read yet.

=============================================================================
SELECTORS
=============================================================================

selectors.DefaultSelector picks the best mechanism the platform has
(epoll on Linux, kqueue on BSD/macOS, select elsewhere). There is only one
fd to watch here; the selector's job is to give the loop a bounded wait so
it can notice stop() without a blocking accept().

=============================================================================
"""

import logging
import selectors
import socket
from typing import Callable, Optional, Tuple

from ..config import AdminConfig
from ..errors import BindError
from .connection import Connection, LINGER_OFF, LINGER_RESET


logger = logging.getLogger(__name__)


SELECT_TIMEOUT_SECS = 0.2


class SocketServer:
    """
    Listening socket plus accept loop.

        server = SocketServer(config, on_connection)
        server.bind()                      # raises BindError
        thread = threading.Thread(target=server.serve_forever)
        thread.start()
        ...
        server.stop()
        thread.join()
    """

    def __init__(self, config: AdminConfig, connection_handler: Callable[[Connection], None]):
        self.config = config
        self.connection_handler = connection_handler

        self._socket: Optional[socket.socket] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port).

        With port 0 this is the port the OS actually assigned, which is
        how tests find the server.
        """
        if self._socket is not None:
            sockname = self._socket.getsockname()
            return (sockname[0], sockname[1])
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, LINGER_RESET)
        sock.setblocking(False)

        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen.

        Returns:
            The bound address.

        Raises:
            BindError: The address is in use, not available, or not allowed.
        """
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise BindError(self.config.host, self.config.port, e) from e

        self._socket = sock
        self._running = True
        return self.address

    def serve_forever(self):
        """
        Accept connections until stop() is called, then close the listener.
        """
        if self._socket is None:
            raise RuntimeError("serve_forever() called before bind()")

        try:
            with selectors.DefaultSelector() as selector:
                selector.register(self._socket, selectors.EVENT_READ)

                while self._running:
                    try:
                        events = selector.select(timeout=SELECT_TIMEOUT_SECS)
                    except OSError:
                        if not self._running:
                            break
                        raise

                    if events and self._running:
                        self._accept_pending()
        finally:
            self._close_listener()

    def _accept_pending(self):
        """Accept every connection waiting in the backlog."""
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except (BlockingIOError, InterruptedError):
                return
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                return

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            try:
                client_socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
                client_socket.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, LINGER_OFF)
            except OSError as e:
                logger.debug(f"Could not set options on accepted socket: {e}")

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_initial_line_length=self.config.max_initial_line_length,
                max_header_size=self.config.max_header_size,
                max_content_length=self.config.max_content_length,
            )

            try:
                self.connection_handler(conn)
            except RuntimeError as e:
                # Worker pool already shut down.
                logger.debug(f"Dropping connection from {conn.client_ip}: {e}")
                conn.close(force=True)

    def stop(self):
        """Ask the accept loop to exit. Safe to call more than once."""
        self._running = False

    def _close_listener(self):
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
            logger.debug("Listener closed")
