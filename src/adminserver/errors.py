"""
Exceptions raised by the admin server's public API.

    AdminServerError
    ├── BindError          start() could not bind host:port
    └── ServerStateError   operation not allowed in the current state

Request-level failures are not here: HTTPParseError lives next to the
parser (adminserver.http.request) and the framing errors next to the
connection reader (adminserver.core.connection). Those never escape the
server; they end in a dropped connection or an error response.
"""


class AdminServerError(Exception):
    """Base class for admin server errors."""


class BindError(AdminServerError):
    """
    The listening socket could not be bound.

    Attributes:
        host: Interface the server tried to bind.
        port: Port the server tried to bind.
    """

    def __init__(self, host: str, port: int, cause: OSError):
        super().__init__(f"Failed to bind {host}:{port}: {cause}")
        self.host = host
        self.port = port
        self.cause = cause


class ServerStateError(AdminServerError):
    """
    Raised when an operation is attempted in the wrong lifecycle state.

    Examples: start() called twice, or add_route() after the route table
    was frozen by start().
    """
