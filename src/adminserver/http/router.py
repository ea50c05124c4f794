"""
=============================================================================
ROUTE TABLE
=============================================================================

Maps (method, path) pairs to handlers. The admin port serves a handful of
fixed endpoints, so routing is exact string matching and nothing more:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  Registered routes (insertion order)                                │
    │  ┌──────────────────────────────────────────────────────────────┐  │
    │  │ GET  /health           → HealthHandler                       │  │
    │  │ POST /quitquitquit     → QuitHandler                         │  │
    │  │ GET  /abortabortabort  → AbortHandler                        │  │
    │  │ POST /abortabortabort  → AbortHandler                        │  │
    │  │ GET  /metrics          → MetricsHandler                      │  │
    │  └──────────────────────────────────────────────────────────────┘  │
    │                                                                      │
    │  find_route("GET", "/health")       → HealthHandler                 │
    │  find_route("GET", "/quitquitquit") → None  (→ 404)                 │
    │  find_route("GET", "/health/")      → None  (no normalization)      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
MATCHING RULES
=============================================================================

- Method and path are compared with ==. No parameters, no wildcards, no
  trailing-slash or case folding.
- The path is the request path without its query string, so
  "/metrics?name[]=up" is routed as "/metrics".
- Lookup is a linear scan and the FIRST match wins. Registering the same
  (method, path) twice is allowed; the second registration is never
  reached.

=============================================================================
CONCURRENCY
=============================================================================

Routes are added before the server starts. start() freezes the table, and
from then on it is only read, so workers look routes up without locking.
Adding a route to a frozen table raises ServerStateError.

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, List, Optional
import logging

from ..errors import ServerStateError
from .request import HTTPRequest
from .response import HTTPResponse


logger = logging.getLogger(__name__)


# Every handler has this one signature. Handlers that don't care about the
# request (quit, abort) simply ignore it.
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass(frozen=True)
class Route:
    """
    A registered (method, path) → handler binding.

    Immutable once created.
    """

    method: str
    path: str
    handler: Handler

    def matches(self, method: str, path: str) -> bool:
        """Exact, case-sensitive comparison of both method and path."""
        return self.method == method and self.path == path


class RouteTable:
    """
    Ordered collection of routes with first-match lookup.

        table = RouteTable()
        table.add_route("GET", "/health", health_handler)
        route = table.find_route("GET", "/health")
        response = route.handler(request)
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._frozen = False

    def add_route(self, method: str, path: str, handler: Handler) -> Route:
        """
        Append a route.

        Duplicates are not checked; see the module docstring.

        Raises:
            ServerStateError: If the table has been frozen.
        """
        if self._frozen:
            raise ServerStateError(
                f"Cannot add route {method} {path}: route table is frozen"
            )

        route = Route(method=method, path=path, handler=handler)
        self._routes.append(route)
        logger.debug(f"Route added: {method} {path}")
        return route

    def find_route(self, method: str, path: str) -> Optional[Route]:
        """Return the first route matching (method, path), or None."""
        for route in self._routes:
            if route.matches(method, path):
                return route
        return None

    def freeze(self) -> None:
        """Make the table read-only. Idempotent."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def routes(self) -> List[Route]:
        """Snapshot of the registered routes, in registration order."""
        return list(self._routes)

    def __len__(self) -> int:
        return len(self._routes)
