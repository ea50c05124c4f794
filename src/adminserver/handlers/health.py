"""
=============================================================================
HEALTH CHECK HANDLER
=============================================================================

GET /health for the scheduler's liveness probe.

=============================================================================
HOW THE ORCHESTRATOR USES IT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   SCHEDULER / EXECUTOR                         TASK (this process)  │
    │                                                                      │
    │   every N seconds:                                                   │
    │       GET /health  ─────────────────────────►  evaluate probes       │
    │                    ◄─────────────────────────  200 "OK"              │
    │                                                  or                  │
    │                    ◄─────────────────────────  500 "<diagnostic>"    │
    │                                                                      │
    │   K consecutive failures → kill and reschedule the task             │
    └─────────────────────────────────────────────────────────────────────┘

Only the status code matters to the scheduler. The body is for the human
who curls the port while debugging.

=============================================================================
PROBES
=============================================================================

A probe is anything the process wants to vouch for its health:

    registry.register(lambda: db.ping(), name="database")
    registry.register(kafka_consumer)          # object with is_healthy()

Probes run sequentially, in registration order, on every request. Keep
them cheap; a probe that blocks holds up the health response with it. A
probe that raises counts as failing.

=============================================================================
AGGREGATION POLICIES
=============================================================================

    HealthPolicy.COUNT (default)
        200 "OK" | 500 "2 health check(s) failed"

    HealthPolicy.FIRST_FAILURE
        200 "OK" | 500 "Health check 'database' failed"

No probes at all means healthy.

=============================================================================
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Union

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok, text
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


Probe = Union[Callable[[], bool], Any]


class HealthPolicy(Enum):
    COUNT = "count"
    FIRST_FAILURE = "first_failure"


@dataclass(frozen=True)
class HealthCheck:
    """A named probe."""

    name: str
    probe: Probe

    def run(self) -> bool:
        """
        Evaluate the probe.

        Objects with an is_healthy() method are asked through it; anything
        else is called. Exceptions are logged and count as unhealthy.
        """
        try:
            is_healthy = getattr(self.probe, "is_healthy", None)
            if callable(is_healthy):
                return bool(is_healthy())
            return bool(self.probe())
        except Exception as e:
            logger.warning(f"Health check '{self.name}' raised {type(e).__name__}: {e}")
            return False


def _probe_name(probe: Probe) -> str:
    if hasattr(probe, "is_healthy"):
        return type(probe).__name__
    name = getattr(probe, "__name__", None)
    if name and name != "<lambda>":
        return name
    return "probe"


class HealthCheckRegistry:
    """
    Registry of health probes owned by one admin server.

        registry = HealthCheckRegistry()
        registry.register(check_database, name="database")
        registry.evaluate()        # → ["database"] if it failed, else []

    Registration is thread-safe and may happen at any time, including
    while the server is answering probes. evaluate() snapshots the probe
    list under the lock and runs the probes outside it.

    Names are unique: registering a name again replaces that probe in
    place (keeping its position in the evaluation order).
    """

    def __init__(self):
        self._checks: List[HealthCheck] = []
        self._lock = threading.Lock()
        self._counter = 0

    def register(self, probe: Probe, name: Optional[str] = None) -> str:
        """
        Add or replace a probe.

        Args:
            probe: Zero-argument callable returning bool, or an object with
                   an is_healthy() method.
            name: Name used in diagnostics. Defaults to the callable's
                  __name__ or the object's class name, suffixed with a
                  counter so unnamed probes never replace each other.

        Returns:
            The name the probe was registered under.
        """
        if not (callable(probe) or callable(getattr(probe, "is_healthy", None))):
            raise TypeError(f"Health probe must be callable or have is_healthy(), got {probe!r}")

        with self._lock:
            if name is None:
                self._counter += 1
                name = f"{_probe_name(probe)}-{self._counter}"

            check = HealthCheck(name=name, probe=probe)
            for index, existing in enumerate(self._checks):
                if existing.name == name:
                    self._checks[index] = check
                    break
            else:
                self._checks.append(check)

        logger.debug(f"Health check registered: {name}")
        return name

    def unregister(self, name: str) -> bool:
        """Remove a probe by name. Returns False if there was none."""
        with self._lock:
            for index, existing in enumerate(self._checks):
                if existing.name == name:
                    del self._checks[index]
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            self._checks.clear()

    def names(self) -> List[str]:
        with self._lock:
            return [check.name for check in self._checks]

    def __len__(self) -> int:
        with self._lock:
            return len(self._checks)

    def evaluate(self) -> List[str]:
        """
        Run every probe in registration order.

        Returns:
            Names of the failing probes, in registration order.
        """
        with self._lock:
            checks = list(self._checks)

        return [check.name for check in checks if not check.run()]


class HealthHandler:
    """
    Handler for GET /health.

        health = HealthHandler(registry, HealthPolicy.COUNT)
        table.add_route("GET", "/health", health)
    """

    def __init__(self, registry: HealthCheckRegistry, policy: HealthPolicy = HealthPolicy.COUNT):
        self.registry = registry
        self.policy = policy

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        failed = self.registry.evaluate()

        if not failed:
            return ok()

        if self.policy == HealthPolicy.FIRST_FAILURE:
            message = f"Health check '{failed[0]}' failed"
        else:
            message = f"{len(failed)} health check(s) failed"

        logger.info(f"Reporting unhealthy: {', '.join(failed)}")
        return text(message, HTTPStatus.INTERNAL_SERVER_ERROR)
