"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything between raw bytes and handler calls:

    ┌──────────────────────────────────────────────────────────────────────┐
    │   bytes ──► RequestParser ──► HTTPRequest ──► RouteTable ──► Handler │
    │                                                                │     │
    │   bytes ◄── HTTPResponse.to_bytes() ◄── HTTPResponse ◄─────────┘     │
    └──────────────────────────────────────────────────────────────────────┘

    request.py       Head parsing, framing validation, HTTPRequest
    response.py      HTTPResponse, ResponseBuilder, plain-text helpers
    router.py        Exact (method, path) route table
    status_codes.py  HTTPStatus enum with reason phrases
    compression.py   gzip for large bodies (metrics)
    access_log.py    Per-response access log entries

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    CONTINUE_RESPONSE,
    TEXT_PLAIN,
    text,               # any status, plain text
    ok,                 # 200 "OK"
    not_found,          # 404 "Not Found"
    internal_error,     # 500 "Internal Server Error"
    payload_too_large,  # 413, closes the connection
    expectation_failed, # 417, closes the connection
)
from .router import Handler, Route, RouteTable
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "CONTINUE_RESPONSE",
    "TEXT_PLAIN",
    "text",
    "ok",
    "not_found",
    "internal_error",
    "payload_too_large",
    "expectation_failed",

    # Routing
    "Handler",
    "Route",
    "RouteTable",

    # Status codes
    "HTTPStatus",
]
