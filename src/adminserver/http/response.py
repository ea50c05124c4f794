"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds the HTTP/1.1 responses the admin endpoints send back.

=============================================================================
WHAT AN ADMIN RESPONSE LOOKS LIKE
=============================================================================

Every lifecycle, health and error response is short plain text:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  HTTP/1.1 500 Internal Server Error\r\n       ← status line         │
    │  Content-Type: text/plain; charset=UTF-8\r\n                        │
    │  Content-Length: 26\r\n                       ← always set          │
    │  Date: Sun, 18 Oct 2026 12:00:00 GMT\r\n      ← always set          │
    │  Server: AdminServer/1.0\r\n                  ← always set          │
    │  \r\n                                                                │
    │  2 health check(s) failed                     ← body                │
    └─────────────────────────────────────────────────────────────────────┘

Bodies are never chunked: the whole body is in memory, so Content-Length
is always known. When the connection is about to be closed the pipeline
adds "Connection: close" before serializing.

The only other thing written to a socket is the interim reply to
"Expect: 100-continue" (CONTINUE_RESPONSE below), which has no headers
and no body.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Union

from .status_codes import HTTPStatus


TEXT_PLAIN = "text/plain; charset=UTF-8"

DEFAULT_SERVER_NAME = "AdminServer/1.0"

# Interim response for "Expect: 100-continue". Always HTTP/1.1, since
# HTTP/1.0 clients never ask for it.
CONTINUE_RESPONSE = b"HTTP/1.1 100 Continue\r\n\r\n"


@dataclass
class HTTPResponse:
    """
    An HTTP response to be sent to the client.

    Handlers return one of these; the connection pipeline serializes it
    with to_bytes(). Use text() or ResponseBuilder to construct one.

        Handler returns          to_bytes()              Socket sends
        HTTPResponse    ─────►   serializes    ─────►    raw bytes
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 200 OK"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header. Returns self for chaining."""
        self.headers[name] = value
        return self

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body, encoding strings as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME, include_body: bool = True) -> bytes:
        """
        Serialize the response for socket.sendall().

        =====================================================================
        SERIALIZATION FORMAT
        =====================================================================

            HTTP/1.1 200 OK\r\n                     ← Status line
            Content-Type: text/plain; charset=UTF-8\r\n
            Content-Length: 2\r\n                   ← Auto-calculated
            Date: Sun, 18 Oct 2026 ...\r\n          ← Auto-added
            Server: AdminServer/1.0\r\n             ← Auto-added
            \r\n                                    ← Separator
            OK                                      ← Body bytes

        =====================================================================

        Headers the caller already set win over the defaults, except that
        Content-Length is only defaulted when absent (compressed bodies set
        their own).

        include_body=False is for HEAD: the headers describe the body
        (Content-Length included) but the body itself is not sent.
        """
        response_headers = dict(self.headers)
        present = {name.lower() for name in response_headers}

        if "content-type" not in present:
            response_headers["Content-Type"] = TEXT_PLAIN
        if "content-length" not in present:
            response_headers["Content-Length"] = str(len(self.body))
        if "date" not in present:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "server" not in present:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        if not include_body:
            return header_bytes
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type("application/openmetrics-text; version=1.0.0")
            .header("Vary", "Accept-Encoding")
            .body(payload)
            .build())

    Every method except build() returns self.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set the raw body (strings are UTF-8 encoded)."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        """Set a plain-text UTF-8 body and matching Content-Type."""
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = TEXT_PLAIN
        return self

    def close_connection(self) -> "ResponseBuilder":
        """Tell the client the connection closes after this response."""
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231 / RFC 1123).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Sun, 18 Oct 2026 12:00:00 GMT

    HTTP dates are always GMT. Formatting by hand avoids strftime's
    locale-dependent day and month names.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# One-liners for the responses the admin endpoints send:
#
#     return text("OK")
#     return text("2 health check(s) failed", HTTPStatus.INTERNAL_SERVER_ERROR)
#     return not_found()
#
# =============================================================================

def text(body: str, status: HTTPStatus = HTTPStatus.OK) -> HTTPResponse:
    """Plain-text UTF-8 response with the given status."""
    return ResponseBuilder().status(status).text(body).build()


def ok() -> HTTPResponse:
    """200 with body "OK"."""
    return text("OK")


def not_found() -> HTTPResponse:
    """404 with body "Not Found"."""
    return text("Not Found", HTTPStatus.NOT_FOUND)


def internal_error() -> HTTPResponse:
    """
    500 with body "Internal Server Error".

    The body is fixed on purpose: exception details go to the log, never
    to the client.
    """
    return text("Internal Server Error", HTTPStatus.INTERNAL_SERVER_ERROR)


def payload_too_large() -> HTTPResponse:
    """413, always sent on a connection that is about to close."""
    return (
        ResponseBuilder()
        .status(HTTPStatus.PAYLOAD_TOO_LARGE)
        .text("Payload Too Large")
        .close_connection()
        .build()
    )


def expectation_failed() -> HTTPResponse:
    """417 for an Expect header other than 100-continue."""
    return (
        ResponseBuilder()
        .status(HTTPStatus.EXPECTATION_FAILED)
        .text("Expectation Failed")
        .close_connection()
        .build()
    )
