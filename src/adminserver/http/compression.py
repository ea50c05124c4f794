"""
=============================================================================
GZIP RESPONSE COMPRESSION
=============================================================================

Used by the /metrics endpoint. A scrape of a busy process can be hundreds
of kilobytes of very repetitive text, which gzip shrinks by 90% or more.
The lifecycle and health responses are a few bytes and are never
compressed.

    Request:   Accept-Encoding: gzip, deflate
                                 ────
                                   └── client can decode gzip

    Response:  Content-Encoding: gzip
               Content-Length: 1834          ← compressed size
               Vary: Accept-Encoding         ← caches must key on it
               [gzip body]

A coding listed with q=0 is an explicit refusal ("gzip;q=0"), so the
header is parsed rather than substring-matched.

=============================================================================
"""

import gzip

from .request import HTTPRequest
from .response import HTTPResponse


DEFAULT_LEVEL = 6


def accepts_gzip(accept_encoding: str) -> bool:
    """
    True if an Accept-Encoding value allows gzip.

        >>> accepts_gzip("gzip, deflate")
        True
        >>> accepts_gzip("gzip;q=0, identity")
        False
        >>> accepts_gzip("*")
        True
    """
    for part in accept_encoding.split(","):
        coding, _, params = part.strip().partition(";")
        coding = coding.strip().lower()
        if coding not in ("gzip", "x-gzip", "*"):
            continue

        quality = 1.0
        params = params.strip().lower()
        if params.startswith("q="):
            try:
                quality = float(params[2:])
            except ValueError:
                quality = 0.0
        if quality > 0:
            return True

    return False


def add_vary(response: HTTPResponse, header: str) -> None:
    """Append a header name to Vary unless it is already listed."""
    vary = response.get_header("Vary")
    listed = [v.strip().lower() for v in vary.split(",") if v.strip()]
    if header.lower() not in listed:
        response.headers["Vary"] = f"{vary}, {header}" if vary else header


def gzip_response(
    request: HTTPRequest,
    response: HTTPResponse,
    level: int = DEFAULT_LEVEL,
) -> HTTPResponse:
    """
    Compress response.body in place if the client accepts gzip.

    Always adds "Vary: Accept-Encoding", since the representation depends
    on that header either way. Responses that already carry a
    Content-Encoding are left alone.

    Returns:
        The same response object, for chaining.
    """
    add_vary(response, "Accept-Encoding")

    if response.get_header("Content-Encoding"):
        return response
    if not accepts_gzip(request.get_header("accept-encoding")):
        return response

    compressed_body = gzip.compress(response.body, compresslevel=level)
    response.body = compressed_body
    response.headers["Content-Encoding"] = "gzip"
    response.headers["Content-Length"] = str(len(compressed_body))
    return response
