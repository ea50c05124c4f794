"""
=============================================================================
ADMIN ENDPOINT HANDLERS
=============================================================================

    health.py      GET /health, the probe registry and its policies
    lifecycle.py   POST /quitquitquit, /abortabortabort, Hook
    metrics.py     GET /metrics over a MetricsRegistry (prometheus_client)

Every handler is a callable taking an HTTPRequest and returning an
HTTPResponse, so any of them can be registered on a RouteTable directly.

=============================================================================
"""

from .health import HealthCheck, HealthCheckRegistry, HealthHandler, HealthPolicy
from .lifecycle import AbortHandler, Hook, LifecycleHooks, QuitHandler
from .metrics import MetricsHandler, MetricsRegistry, PrometheusMetricsRegistry

__all__ = [
    "HealthCheck",
    "HealthCheckRegistry",
    "HealthHandler",
    "HealthPolicy",
    "AbortHandler",
    "Hook",
    "LifecycleHooks",
    "QuitHandler",
    "MetricsHandler",
    "MetricsRegistry",
    "PrometheusMetricsRegistry",
]
