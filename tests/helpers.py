"""
Shared test helpers: request construction and a raw-socket HTTP client.
"""

import socket
from typing import Dict, Optional, Tuple

from adminserver.http import HTTPRequest, RequestParser


def make_request(
    method: str = "GET",
    path: str = "/",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
) -> HTTPRequest:
    """Build a request the way the server would after parsing."""
    lines = [f"{method} {path} HTTP/1.1"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    request = RequestParser().parse_head("\r\n".join(lines).encode("latin-1"), ("127.0.0.1", 50000))
    request.body = body
    return request


class RawResponse:
    """A response read off the wire by RawClient."""

    def __init__(self, status: int, reason: str, headers: Dict[str, str], body: bytes):
        self.status = status
        self.reason = reason
        self.headers = headers
        self.body = body

    def header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


class RawClient:
    """
    Minimal HTTP client on a raw socket.

    Keeps its own buffer so several responses can be read from one
    kept-alive connection, and so interim 100 responses can be read
    separately from the final one.
    """

    def __init__(self, address: Tuple[str, int], timeout: float = 5.0):
        self.sock = socket.create_connection(address, timeout=timeout)
        self._buffer = b""

    def send(self, data: bytes) -> None:
        self.sock.sendall(data)

    def request(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        body: bytes = b"",
    ) -> RawResponse:
        self.send(build_request(method, path, headers, body))
        return self.read_response(head_only=(method == "HEAD"))

    def _fill(self) -> bool:
        chunk = self.sock.recv(65536)
        if not chunk:
            return False
        self._buffer += chunk
        return True

    def read_response(self, head_only: bool = False) -> RawResponse:
        while b"\r\n\r\n" not in self._buffer:
            if not self._fill():
                raise ConnectionError("Connection closed before response head")

        head, self._buffer = self._buffer.split(b"\r\n\r\n", 1)
        lines = head.decode("latin-1").split("\r\n")
        _, status, reason = lines[0].split(" ", 2)

        headers: Dict[str, str] = {}
        for line in lines[1:]:
            name, _, value = line.partition(":")
            headers[name.strip().lower()] = value.strip()

        length = 0 if head_only else int(headers.get("content-length", "0"))
        while len(self._buffer) < length:
            if not self._fill():
                raise ConnectionError("Connection closed before response body")

        body, self._buffer = self._buffer[:length], self._buffer[length:]
        return RawResponse(int(status), reason, headers, body)

    def is_closed_by_peer(self) -> bool:
        """True if the server closed the connection (EOF or reset)."""
        if self._buffer:
            return False
        try:
            return self.sock.recv(1) == b""
        except ConnectionResetError:
            return True

    def close(self) -> None:
        self.sock.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def build_request(
    method: str,
    path: str,
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
    version: str = "HTTP/1.1",
) -> bytes:
    headers = dict(headers or {})
    headers.setdefault("Host", "localhost")
    if body and "Content-Length" not in headers and "Transfer-Encoding" not in headers:
        headers["Content-Length"] = str(len(body))

    lines = [f"{method} {path} {version}"]
    lines.extend(f"{name}: {value}" for name, value in headers.items())
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body


