"""
=============================================================================
ADMINSERVER - Embedded Admin HTTP Endpoint for Scheduled Tasks
=============================================================================

A small HTTP/1.1 server, on raw sockets and a worker thread pool, that a
long-running process embeds so its scheduler can probe and stop it.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    adminserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m adminserver)
    ├── admin.py             # AdminServer: the admin routes over HTTPServer
    ├── server.py            # HTTPServer: connection pipeline and lifecycle
    ├── config.py            # AdminConfig dataclass
    ├── errors.py            # AdminServerError hierarchy
    ├── core/                # Low-level components
    │   ├── socket_server.py # Listener and accept loop
    │   ├── connection.py    # Buffered, bounded connection reads
    │   └── thread_pool.py   # Fixed worker pool
    ├── http/                # HTTP protocol components
    │   ├── request.py       # Request head parsing
    │   ├── response.py      # Response building and encoding
    │   ├── router.py        # Exact (method, path) route table
    │   ├── compression.py   # gzip for responses
    │   ├── access_log.py    # One log entry per response
    │   └── status_codes.py  # HTTP status enum
    └── handlers/            # Admin endpoints
        ├── health.py        # /health and the probe registry
        ├── lifecycle.py     # /quitquitquit, /abortabortabort
        └── metrics.py       # /metrics (prometheus_client)

=============================================================================
QUICK START
=============================================================================

    from adminserver import AdminServer, AdminConfig, LifecycleHooks

    admin = AdminServer(
        AdminConfig(port=9990),
        hooks=LifecycleHooks.of(on_abort=lambda: os._exit(1)),
    )
    admin.health.register(lambda: queue.is_connected(), name="queue")
    admin.start()

=============================================================================
"""

__version__ = "1.0.0"

from .admin import AdminServer
from .config import AdminConfig
from .errors import AdminServerError, BindError, ServerStateError
from .handlers import (
    HealthCheckRegistry,
    HealthPolicy,
    Hook,
    LifecycleHooks,
    MetricsRegistry,
    PrometheusMetricsRegistry,
)
from .server import HTTPServer, ServerState

__all__ = [
    "AdminServer",
    "AdminConfig",
    "AdminServerError",
    "BindError",
    "ServerStateError",
    "HealthCheckRegistry",
    "HealthPolicy",
    "Hook",
    "LifecycleHooks",
    "MetricsRegistry",
    "PrometheusMetricsRegistry",
    "HTTPServer",
    "ServerState",
    "__version__",
]
