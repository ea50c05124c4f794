"""
=============================================================================
NETWORKING CORE
=============================================================================

The transport layer under the admin server:

    socket_server.py   Listener + selector-driven accept loop
    connection.py      One client socket: bounded head reads, body
                       aggregation, writes, close
    thread_pool.py     Fixed pool of workers, one connection per task

    ┌──────────────┐  Connection   ┌──────────────┐  Task   ┌──────────┐
    │ SocketServer │ ────────────► │  HTTPServer  │ ──────► │ThreadPool│
    └──────────────┘               └──────────────┘         └──────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import (
    Connection,
    ConnectionState,
    FrameTooLargeError,
    PayloadTooLargeError,
)
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",          # Listener and accept loop
    "Connection",            # Client socket wrapper
    "ConnectionState",       # Connection lifecycle states
    "FrameTooLargeError",    # Request line / headers over limit
    "PayloadTooLargeError",  # Body over max_content_length
    "ThreadPool",            # Connection workers
]
