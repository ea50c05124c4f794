"""
=============================================================================
ADMIN SERVER
=============================================================================

The admin endpoint a long-running task exposes to its scheduler:

    GET       /health            liveness, from the health registry
    POST      /quitquitquit      graceful stop request (on_quit hook)
    GET|POST  /abortabortabort   immediate stop (on_abort hook), then the
                                 admin server itself shuts down
    GET       /metrics           optional, Prometheus exposition

=============================================================================
EMBEDDING
=============================================================================

    health = HealthCheckRegistry()
    health.register(lambda: consumer.is_connected(), name="consumer")

    admin = AdminServer(
        AdminConfig(port=9990),
        hooks=LifecycleHooks.of(on_quit=worker.drain, on_abort=worker.kill),
        health_registry=health,
    )
    admin.start()
    ...
    admin.close()

Probes can be registered or removed at any time through admin.health.
Everything else is fixed once the server is constructed.

=============================================================================
"""

import logging
import threading
from typing import Optional, Tuple

from .config import AdminConfig
from .handlers import (
    AbortHandler,
    HealthCheckRegistry,
    HealthHandler,
    HealthPolicy,
    LifecycleHooks,
    MetricsHandler,
    MetricsRegistry,
    PrometheusMetricsRegistry,
    QuitHandler,
)
from .server import HTTPServer, ServerState


logger = logging.getLogger(__name__)


HEALTH_PATH = "/health"
QUIT_PATH = "/quitquitquit"
ABORT_PATH = "/abortabortabort"
METRICS_PATH = "/metrics"


class AdminServer:
    """
    HTTPServer with the admin routes registered.

    Args:
        config: Server settings; AdminConfig() when omitted.
        hooks: Quit and abort actions; both absent when omitted.
        health_registry: Probes behind /health; a new empty registry when
                         omitted.
        metrics_registry: Source for /metrics. When omitted, /metrics is
                          only served if config.enable_metrics is set, from
                          the prometheus_client default registry.
    """

    def __init__(
        self,
        config: Optional[AdminConfig] = None,
        hooks: Optional[LifecycleHooks] = None,
        health_registry: Optional[HealthCheckRegistry] = None,
        metrics_registry: Optional[MetricsRegistry] = None,
    ):
        self.config = config or AdminConfig()
        self.hooks = hooks or LifecycleHooks()
        self.health = health_registry if health_registry is not None else HealthCheckRegistry()

        self._server = HTTPServer(self.config)

        self._server.add_route(
            "GET",
            HEALTH_PATH,
            HealthHandler(self.health, HealthPolicy(self.config.health_policy)),
        )
        self._server.add_route("POST", QUIT_PATH, QuitHandler(self.hooks.on_quit))

        abort = AbortHandler(self.hooks.on_abort, shutdown=self._server.close_async)
        for method in self.config.abort_methods:
            self._server.add_route(method, ABORT_PATH, abort)

        if metrics_registry is None and self.config.enable_metrics:
            metrics_registry = PrometheusMetricsRegistry()
        if metrics_registry is not None:
            self._server.add_route(
                "GET",
                METRICS_PATH,
                MetricsHandler(metrics_registry, compression=self.config.metrics_compression),
            )

    @property
    def server(self) -> HTTPServer:
        return self._server

    @property
    def state(self) -> ServerState:
        return self._server.state

    @property
    def address(self) -> Tuple[str, int]:
        return self._server.address

    def start(self) -> Tuple[str, int]:
        """Bind and serve in the background. See HTTPServer.start()."""
        return self._server.start()

    def close(self, timeout: Optional[float] = None) -> bool:
        return self._server.close(timeout)

    def close_async(self) -> threading.Thread:
        return self._server.close_async()

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        return self._server.wait_closed(timeout)

    def __enter__(self) -> "AdminServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
