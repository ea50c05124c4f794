"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the head of an HTTP/1.x request (request line + headers) into an
HTTPRequest. The body is attached later by the connection pipeline, once
the aggregator has collected it.

=============================================================================
WHY THE HEAD IS PARSED SEPARATELY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  POST /quitquitquit HTTP/1.1\r\n                                   │
    │  Host: task-7:9990\r\n                                              │
    │  Expect: 100-continue\r\n         ← client WAITS here               │
    │  Content-Length: 12\r\n                                             │
    │  \r\n                                                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │  (body not sent until the server answers "100 Continue")           │
    └─────────────────────────────────────────────────────────────────────┘

A client that sends "Expect: 100-continue" holds the body back until the
server says it wants it. If we tried to read head and body in one go we
would deadlock against such a client. So the pipeline is:

    read head ──► parse_head() ──► maybe send 100 ──► read body ──► route

=============================================================================
BOUNDED FRAMING
=============================================================================

Two limits protect the worker from header floods:

    max_initial_line_length   Request line ("GET /health HTTP/1.1")
    max_header_size           Whole header block after the request line

Anything over either limit is a protocol error. The admin port does not
answer protocol errors; the connection is simply dropped.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict
from urllib.parse import parse_qs
import re


class HTTPParseError(Exception):
    """
    Raised when an inbound request cannot be framed or parsed.

    Carries the HTTP status that best describes the problem. The admin
    server treats every parse error as a protocol error (connection
    dropped, warning logged), so the code is mostly useful in logs and
    tests.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    Read-only view of one inbound HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         Request method exactly as sent ("GET", "POST")
        path:           Path WITHOUT query string, not percent-decoded.
                        Routes compare against this verbatim.
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header name (lower-cased) → value
        query_params:   "?name[]=a&name[]=b" → {"name[]": ["a", "b"]}
        body:           Aggregated body bytes (b"" until the pipeline
                        attaches it)
        client_address: (ip, port) of the peer

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)

    @property
    def content_length(self) -> int:
        """
        Declared Content-Length, or 0 if absent.

        The parser has already rejected non-numeric values, so this never
        raises for a parsed request.
        """
        value = self.headers.get("content-length")
        return int(value) if value else 0

    @property
    def is_chunked(self) -> bool:
        """True if the body is sent with Transfer-Encoding: chunked."""
        return self.headers.get("transfer-encoding", "").lower() == "chunked"

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if the connection should stay open after this request.

        =====================================================================
        KEEP-ALIVE LOGIC
        =====================================================================

        HTTP/1.1 (default: keep-alive):
            Connection: close      → close after response
            (missing)              → keep alive

        HTTP/1.0 (default: close):
            Connection: keep-alive → keep alive
            (missing)              → close after response
        =====================================================================
        """
        connection = self.headers.get("connection", "").lower()

        if connection == "close":
            return False
        if self.version == "HTTP/1.1":
            return True
        return connection == "keep-alive"

    @property
    def expects_continue(self) -> bool:
        """
        True if the client asked for a "100 Continue" before sending the body.

        Only meaningful from HTTP/1.1 on; HTTP/1.0 clients never wait for it.
        The Expect header may carry several comma-separated expectations,
        compared case-insensitively.
        """
        if self.version != "HTTP/1.1":
            return False
        expect = self.headers.get("expect", "")
        return any(
            token.strip().lower() == "100-continue"
            for token in expect.split(",")
        )

    @property
    def has_unsupported_expectation(self) -> bool:
        """
        True if an HTTP/1.1 client sent an Expect header we can't honor.

        The only expectation defined is "100-continue"; anything else is
        answered with 417 Expectation Failed.
        """
        return (
            self.version == "HTTP/1.1"
            and bool(self.headers.get("expect", "").strip())
            and not self.expects_continue
        )

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    def text(self, encoding: str = "utf-8") -> str:
        """Body decoded as text (undecodable bytes are replaced)."""
        return self.body.decode(encoding, errors="replace")

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter, or default."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_query_list(self, name: str) -> list[str]:
        """All values of a repeated query parameter (e.g. "name[]")."""
        return self.query_params.get(name, [])


class RequestParser:
    """
    Parses request heads into HTTPRequest objects.

        Raw head bytes (no trailing blank line)
              │
              ▼
        ┌───────────────────────────────────────────────────────────────┐
        │  1. Split request line from header block                      │
        │     Line too long?   → HTTPParseError(400)                    │
        │     Headers too big? → HTTPParseError(431)                    │
        │  2. Parse request line: METHOD SP URI SP VERSION              │
        │  3. Parse headers, lower-casing names, folding duplicates     │
        │  4. Validate body framing headers                             │
        │     Bad Content-Length / CL + chunked / other TE → error      │
        └───────────────────────────────────────────────────────────────┘
              │
              ▼
        HTTPRequest (body empty)
    """

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:\s]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(
        self,
        max_initial_line_length: int = 4096,
        max_header_size: int = 8192,
    ):
        self.max_initial_line_length = max_initial_line_length
        self.max_header_size = max_header_size

    def parse_head(
        self,
        head: bytes,
        client_address: tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse a request head.

        Args:
            head: Bytes up to (not including) the blank line that ends the
                  header block.
            client_address: Peer (ip, port), copied onto the request.

        Returns:
            HTTPRequest with an empty body.

        Raises:
            HTTPParseError: If the head is malformed or over a size limit.
        """
        line_end = head.find(b"\r\n")
        if line_end == -1:
            request_line, header_block = head, b""
        else:
            request_line, header_block = head[:line_end], head[line_end + 2:]

        if len(request_line) > self.max_initial_line_length:
            raise HTTPParseError(
                f"Request line longer than {self.max_initial_line_length} bytes",
                status_code=400,
            )
        if len(header_block) > self.max_header_size:
            raise HTTPParseError(
                f"Header block larger than {self.max_header_size} bytes",
                status_code=431,
            )

        # Request lines and header names are ASCII; latin-1 never fails and
        # keeps a 1:1 byte mapping for whatever else a client sends.
        method, path, query_params, version = self._parse_request_line(
            request_line.decode("latin-1")
        )
        headers = self._parse_headers(header_block.decode("latin-1").split("\r\n"))
        self._validate_framing(headers)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            client_address=client_address,
        )

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse a complete, Content-Length framed request held in memory.

        The server never uses this (it reads head and body separately), but
        it is handy for building requests in tests and tools.
        """
        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        request = self.parse_head(data[:header_end], client_address)
        body = data[header_end + 4:]

        if len(body) < request.content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {request.content_length} bytes, got {len(body)}"
            )
        request.body = body[:request.content_length]
        return request

    def _parse_request_line(
        self,
        line: str,
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Parse "METHOD SP REQUEST-URI SP HTTP-VERSION".

        The path is kept exactly as sent (no percent-decoding, no slash
        normalization) because routes are matched verbatim.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line[:100]!r}")

        method, uri, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        path, _, query = uri.partition("?")
        path = path or "/"
        query_params = parse_qs(query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lower-cased names.

        Repeated headers are folded into one comma-separated value, as
        RFC 7230 allows. Obsolete line folding (continuation lines starting
        with whitespace) is appended to the previous header.
        """
        headers: Dict[str, str] = {}
        current_name: Optional[str] = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is None:
                    raise HTTPParseError("Continuation line before first header")
                headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Malformed header line: {line[:100]!r}")

            name, value = match.groups()
            name = name.lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    def _validate_framing(self, headers: Dict[str, str]) -> None:
        """
        Reject requests whose body length cannot be determined safely.

        - Content-Length must be a single non-negative integer.
        - Content-Length together with Transfer-Encoding is request
          smuggling territory and is refused.
        - "chunked" is the only transfer coding the aggregator decodes.
        """
        content_length = headers.get("content-length")
        transfer_encoding = headers.get("transfer-encoding")

        if content_length is not None:
            if not (content_length.isascii() and content_length.isdigit()):
                raise HTTPParseError(f"Invalid Content-Length: {content_length!r}")
            if transfer_encoding is not None:
                raise HTTPParseError("Both Content-Length and Transfer-Encoding present")

        if transfer_encoding is not None and transfer_encoding.lower() != "chunked":
            raise HTTPParseError(
                f"Unsupported Transfer-Encoding: {transfer_encoding}",
                status_code=501,
            )


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
) -> HTTPRequest:
    """Parse a complete in-memory request with default limits."""
    return RequestParser().parse(data, client_address)
