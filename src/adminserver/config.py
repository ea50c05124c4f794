"""
=============================================================================
ADMIN SERVER CONFIGURATION
=============================================================================

All tunables of the admin endpoint in one dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m adminserver --port 9991                         │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── ADMIN_PORT=9991 python -m adminserver                     │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    └─────────────────────────────────────────────────────────────────────┘

A process that embeds the admin server usually builds AdminConfig in code
(or with from_env()) and passes it to AdminServer. The CLI is a thin
wrapper that does the same.

=============================================================================
FAIL FAST
=============================================================================

validate() is called by the server before it binds. A typo in a health
policy or an out-of-range port should stop the process at startup, not
surface as a confusing 404 once the orchestrator starts probing.

=============================================================================
"""

import os
from dataclasses import dataclass


HEALTH_POLICIES = ("count", "first_failure")
LOG_FORMATS = ("text", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Methods /abortabortabort may be registered under.
ABORT_METHOD_CHOICES = ("GET", "POST", "PUT", "DELETE")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AdminConfig:
    """
    Configuration for the admin HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout, keep_alive_timeout

    FRAMING LIMITS
    - max_initial_line_length, max_header_size, max_content_length

    THREADING / SHUTDOWN
    - workers, drain_timeout

    ENDPOINTS
    - abort_methods, health_policy, enable_metrics, metrics_compression

    LOGGING
    - log_level, log_format, access_log

    =========================================================================
    """

    # =========================================================================
    # NETWORK SETTINGS
    # =========================================================================

    host: str = "0.0.0.0"
    """Interface to bind. The admin port is usually reached from outside
    the host by the scheduler, so all interfaces by default."""

    port: int = 9990
    """
    Port to listen on.
    - 9990 - conventional admin port
    - 0    - let the OS pick a free port (tests); see HTTPServer.address
    """

    backlog: int = 1024
    """Accept queue length passed to listen()."""

    buffer_size: int = 8192
    """Bytes requested per recv() call."""

    timeout: float = 30.0
    """Socket read timeout for the first request on a connection."""

    keep_alive_timeout: float = 5.0
    """Idle time allowed between requests on a kept-alive connection."""

    # =========================================================================
    # FRAMING LIMITS
    # =========================================================================

    max_initial_line_length: int = 4096
    """Longest request line accepted ("GET /health HTTP/1.1")."""

    max_header_size: int = 8192
    """Largest header block accepted, request line excluded."""

    max_content_length: int = 100 * 1024 * 1024  # 100 MiB
    """Largest request body aggregated in memory. Larger bodies get 413."""

    # =========================================================================
    # THREADING / SHUTDOWN
    # =========================================================================

    workers: int = 4
    """Size of the connection worker pool."""

    drain_timeout: float = 5.0
    """
    Seconds close() waits for in-flight connections to finish before
    force-closing them.
    """

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    abort_methods: tuple = ("GET", "POST")
    """Methods /abortabortabort answers to. Anything else gets 404."""

    health_policy: str = "count"
    """
    How /health reports failures:
    - "count"         - 500 "<n> health check(s) failed"
    - "first_failure" - 500 "Health check '<name>' failed"
    """

    enable_metrics: bool = False
    """Register GET /metrics even when no metrics registry is passed in."""

    metrics_compression: bool = True
    """gzip /metrics output when the client sends Accept-Encoding: gzip."""

    # =========================================================================
    # LOGGING
    # =========================================================================

    log_level: str = "INFO"
    """Level for the "adminserver" logger hierarchy."""

    log_format: str = "text"
    """Access log format: 'text' (Apache-like) or 'json'."""

    access_log: bool = True
    """Emit one access log entry per response (at DEBUG)."""

    server_name: str = "AdminServer/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "AdminConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        ADMIN_HOST           Bind address (default: 0.0.0.0)
        ADMIN_PORT           Port (default: 9990)
        ADMIN_WORKERS        Worker threads (default: 4)
        ADMIN_TIMEOUT        Read timeout in seconds (default: 30)
        ADMIN_HEALTH_POLICY  count | first_failure (default: count)
        ADMIN_METRICS        1/true/yes/on to expose /metrics
        ADMIN_LOG_LEVEL      Logging level (default: INFO)
        ADMIN_LOG_FORMAT     text | json (default: text)

        =====================================================================
        """
        return cls(
            host=os.getenv("ADMIN_HOST", "0.0.0.0"),
            port=int(os.getenv("ADMIN_PORT", "9990")),
            workers=int(os.getenv("ADMIN_WORKERS", "4")),
            timeout=float(os.getenv("ADMIN_TIMEOUT", "30")),
            health_policy=os.getenv("ADMIN_HEALTH_POLICY", "count"),
            enable_metrics=_env_bool("ADMIN_METRICS", False),
            log_level=os.getenv("ADMIN_LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("ADMIN_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Check every value, raising ValueError on the first bad one.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.workers < 1:
            raise ValueError("workers must be >= 1")

        for name in ("timeout", "keep_alive_timeout", "drain_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")

        for name in ("max_initial_line_length", "max_header_size", "max_content_length"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")

        if not self.abort_methods:
            raise ValueError("abort_methods must not be empty")
        unknown = [m for m in self.abort_methods if m not in ABORT_METHOD_CHOICES]
        if unknown:
            raise ValueError(
                f"Unknown abort methods: {', '.join(unknown)}. "
                f"Choose from {', '.join(ABORT_METHOD_CHOICES)}."
            )

        if self.health_policy not in HEALTH_POLICIES:
            raise ValueError(
                f"Unknown health_policy: {self.health_policy!r}. "
                f"Choose from {', '.join(HEALTH_POLICIES)}."
            )

        if self.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Unknown log_format: {self.log_format!r}. "
                f"Choose from {', '.join(LOG_FORMATS)}."
            )

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log_level: {self.log_level!r}")
