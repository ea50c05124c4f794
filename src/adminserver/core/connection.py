"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: buffered reads, bounded framing of the
request head, body aggregation, writes and close.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

recv() returns whatever the kernel has, not whole messages:

    Client sends:  "GET /health HTTP/1.1\r\nHost: x\r\n\r\n"
    recv() #1  →   "GET /hea"
    recv() #2  →   "lth HTTP/1.1\r\nHost: x\r\n\r\n"

So every read goes through _buffer, and we cut messages out of it at
protocol delimiters. Bytes past the current message (a pipelined second
request) stay in _buffer for the next read_head() call. Because a single
worker owns the Connection for its whole life, requests on one connection
are always handled in the order they arrived.

=============================================================================
READING ONE REQUEST
=============================================================================

    read_head()                          read_body(request)
    ───────────                          ──────────────────
    recv until \r\n\r\n                  Content-Length: N → exactly N bytes
    request line  ≤ max_initial_line     chunked → decode chunks, skip
    header block  ≤ max_header_size        trailers
      over a limit → FrameTooLargeError  total > max_content_length
                                           → PayloadTooLargeError

The two halves are separate so the pipeline can answer
"Expect: 100-continue" between them.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
     │         │                                        ▲        │
     │         │                                        └────────┘
     │         ▼                                    (next request)
     └─────► CLOSING ──► CLOSED

A connection waiting for a request head with an empty buffer is "idle":
no request is in flight, so shutdown may interrupt it without losing a
response.

=============================================================================
"""

import socket
import struct
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..http.request import HTTPParseError, HTTPRequest


logger = logging.getLogger(__name__)


# struct linger { int l_onoff; int l_linger; }
LINGER_OFF = struct.pack("ii", 0, 0)
LINGER_RESET = struct.pack("ii", 1, 0)

# Total time a graceful close spends reading what the client still sends.
CLOSE_DRAIN_SECS = 0.5


class FrameTooLargeError(Exception):
    """The request line or header block exceeded its configured limit."""


class PayloadTooLargeError(Exception):
    """The request body exceeded max_content_length."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Request body of {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port).
        id: Short random id used in log lines.
        state: Current ConnectionState.
        requests_handled: Requests fully read on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_initial_line_length: int = 4096
    max_header_size: int = 8192
    max_content_length: int = 100 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _awaiting_head: bool = field(default=False, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def is_idle(self) -> bool:
        """True while waiting for a request with nothing of it received yet."""
        waiting = self._awaiting_head or self.state in (ConnectionState.NEW, ConnectionState.KEEP_ALIVE)
        return waiting and not self._buffer

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_head(self) -> Optional[bytes]:
        """
        Read the next request head (request line + headers).

        Returns:
            The head without its terminating blank line, or None if the
            client closed the connection or a kept-alive connection sat
            idle past keep_alive_timeout.

        Raises:
            FrameTooLargeError: Request line or header block over its limit.
            TimeoutError: The first request on the connection timed out.
        """
        self.state = ConnectionState.READING
        self._awaiting_head = True
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        # Request line, CRLF, headers, blank line.
        max_head = self.max_initial_line_length + 2 + self.max_header_size + 4

        try:
            while True:
                # Empty lines before a request line are ignored (RFC 7230 3.5).
                self._buffer = self._buffer.lstrip(b"\r\n")

                header_end = self._buffer.find(b"\r\n\r\n")
                if header_end != -1:
                    break

                self._check_head_limits(max_head)

                chunk = self._recv()
                if not chunk:
                    if self._buffer:
                        logger.debug(f"[{self.id}] Client closed mid-request")
                    return None
                self._buffer += chunk

            head = self._buffer[:header_end]
            self._buffer = self._buffer[header_end + 4:]
            self._check_head_limits(max_head, head)
            return head

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self._awaiting_head = False
            self.socket.settimeout(self.timeout)

    def _check_head_limits(self, max_head: int, head: Optional[bytes] = None) -> None:
        """
        Enforce the framing limits on a complete head, or on a partial one
        still being buffered.
        """
        data = head if head is not None else self._buffer

        line_end = data.find(b"\r\n")
        line_length = line_end if line_end != -1 else len(data)
        if line_length > self.max_initial_line_length:
            raise FrameTooLargeError(
                f"Request line exceeds {self.max_initial_line_length} bytes"
            )

        # A partial buffer may already hold part of the terminating CRLFCRLF.
        header_limit = self.max_header_size if head is not None else self.max_header_size + 4
        header_length = len(data) - line_end - 2 if line_end != -1 else 0
        if header_length > header_limit or len(data) > max_head:
            raise FrameTooLargeError(
                f"Header block exceeds {self.max_header_size} bytes"
            )

    def read_body(self, request: HTTPRequest) -> bytes:
        """
        Aggregate the body announced by the request's headers.

        Raises:
            PayloadTooLargeError: Body larger than max_content_length.
            HTTPParseError: Malformed chunked encoding.
            ConnectionError: Client went away before the body was complete.
        """
        if request.is_chunked:
            body = self._read_chunked()
        else:
            body = self._read_exact(request.content_length)

        self.requests_handled += 1
        self.last_activity = time.time()
        return body

    def _read_exact(self, length: int) -> bytes:
        if length > self.max_content_length:
            raise PayloadTooLargeError(length, self.max_content_length)

        while len(self._buffer) < length:
            chunk = self._recv()
            if not chunk:
                raise ConnectionError(
                    f"Connection closed with {len(self._buffer)} of {length} body bytes read"
                )
            self._buffer += chunk

        data = self._buffer[:length]
        self._buffer = self._buffer[length:]
        return data

    def _read_line(self, limit: int) -> bytes:
        """Read one CRLF-terminated line (CRLF stripped), at most limit bytes."""
        while True:
            line_end = self._buffer.find(b"\r\n")
            if line_end != -1:
                break
            if len(self._buffer) > limit:
                raise HTTPParseError("Chunk framing line too long")
            chunk = self._recv()
            if not chunk:
                raise ConnectionError("Connection closed inside chunked body")
            self._buffer += chunk

        if line_end > limit:
            raise HTTPParseError("Chunk framing line too long")

        line = self._buffer[:line_end]
        self._buffer = self._buffer[line_end + 2:]
        return line

    def _read_chunked(self) -> bytes:
        """
        Decode a Transfer-Encoding: chunked body.

            1a\r\n                  ← chunk size in hex (extensions ignored)
            <26 bytes>\r\n
            0\r\n                   ← last chunk
            Trailer: x\r\n          ← optional trailers, discarded
            \r\n
        """
        parts: list[bytes] = []
        total = 0

        while True:
            size_line = self._read_line(self.max_initial_line_length)
            size_text = size_line.split(b";", 1)[0].strip()
            try:
                size = int(size_text, 16)
            except ValueError:
                raise HTTPParseError(f"Invalid chunk size: {size_text[:20]!r}")
            if size < 0:
                raise HTTPParseError(f"Invalid chunk size: {size_text[:20]!r}")

            if size == 0:
                break

            total += size
            if total > self.max_content_length:
                raise PayloadTooLargeError(total, self.max_content_length)

            parts.append(self._read_exact(size))
            if self._read_line(self.max_initial_line_length) != b"":
                raise HTTPParseError("Missing CRLF after chunk data")

        # Trailer section ends with an empty line.
        trailer_bytes = 0
        while True:
            line = self._read_line(self.max_header_size)
            if not line:
                break
            trailer_bytes += len(line) + 2
            if trailer_bytes > self.max_header_size:
                raise HTTPParseError("Chunked trailers too large")

        return b"".join(parts)

    def _recv(self) -> bytes:
        """recv() that maps a reset or a locally shut down socket to EOF."""
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""
        except OSError as e:
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return b""
            if isinstance(e, socket.timeout):
                raise
            logger.debug(f"[{self.id}] recv failed: {e}")
            return b""

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> bool:
        """
        Write all of data to the socket.

        Returns:
            False if the peer has gone away.
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.debug(f"[{self.id}] Send failed: {e}")
            return False

    def mark_processing(self):
        self.state = ConnectionState.PROCESSING

    def set_keep_alive(self):
        """Response sent; waiting for the next request."""
        self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def interrupt(self):
        """
        Wake a worker blocked in recv() on this connection.

        shutdown(SHUT_RD) makes the pending recv() return EOF, so the
        worker leaves its loop and closes the socket itself.
        """
        try:
            self.socket.shutdown(socket.SHUT_RD)
        except OSError:
            pass

    def close(self, force: bool = False):
        """
        Close the connection.

        Normal close:
            shutdown(SHUT_WR) → FIN to the client after the last response
            drain ≤ 0.5s      → don't leave unread data (that would RST)
            close()

        Forced close (shutdown deadline passed):
            SO_LINGER on, timeout 0 → close() sends RST immediately
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        if force:
            try:
                self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, LINGER_RESET)
                self.socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        else:
            deadline = time.monotonic() + CLOSE_DRAIN_SECS
            try:
                self.socket.shutdown(socket.SHUT_WR)
                while True:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    self.socket.settimeout(remaining)
                    if not self.socket.recv(1024):
                        break
            except OSError:
                pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.requests_handled} requests"
            + (" (forced)" if force else "")
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
