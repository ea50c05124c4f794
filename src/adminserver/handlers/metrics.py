"""
=============================================================================
METRICS HANDLER
=============================================================================

GET /metrics: the process's metrics in Prometheus exposition format.

    GET /metrics HTTP/1.1
    Accept: application/openmetrics-text; version=1.0.0
    Accept-Encoding: gzip

    GET /metrics?name[]=jobs_processed_total&name[]=queue_depth HTTP/1.1

=============================================================================
WHAT THE HANDLER DOES
=============================================================================

    1. negotiate(Accept)          → exposition content type
                                    (OpenMetrics if asked for, else the
                                    classic text format)
    2. render(type, name[] params) → encoded bytes, restricted to the
                                    listed sample names when any are given
    3. gzip if Accept-Encoding allows it (and compression is on)

The handler does not know about prometheus_client. It talks to a
MetricsRegistry, so a process can plug in another metrics library by
implementing negotiate() and render(). The default implementation wraps a
prometheus_client CollectorRegistry.

=============================================================================
"""

import logging
from typing import Optional, Protocol, Sequence

from prometheus_client import REGISTRY, CollectorRegistry
from prometheus_client.exposition import choose_encoder

from ..http.compression import gzip_response
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


NAME_FILTER_PARAM = "name[]"


class MetricsRegistry(Protocol):
    """What the metrics endpoint needs from a metrics library."""

    def negotiate(self, accept: str) -> str:
        """Pick the content type to answer with for an Accept header."""
        ...

    def render(self, content_type: str, names: Sequence[str]) -> bytes:
        """Encode the metrics (only those in names, if non-empty)."""
        ...


class PrometheusMetricsRegistry:
    """
    MetricsRegistry over a prometheus_client CollectorRegistry.

        registry = PrometheusMetricsRegistry()             # global REGISTRY
        registry = PrometheusMetricsRegistry(my_registry)  # custom one
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY

    def negotiate(self, accept: str) -> str:
        _, content_type = choose_encoder(accept or "")
        return content_type

    def render(self, content_type: str, names: Sequence[str]) -> bytes:
        # The negotiated content type is itself a valid Accept value for
        # the same encoder.
        encoder, _ = choose_encoder(content_type)

        if names:
            return encoder(self.registry.restricted_registry(list(names)))
        return encoder(self.registry)


class MetricsHandler:
    """Handler for GET /metrics."""

    def __init__(self, registry: MetricsRegistry, compression: bool = True):
        self.registry = registry
        self.compression = compression

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        content_type = self.registry.negotiate(request.get_header("accept"))
        names = request.get_query_list(NAME_FILTER_PARAM)

        payload = self.registry.render(content_type, names)
        logger.debug(f"Rendered {len(payload)} bytes of metrics as {content_type}")

        response = (
            ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type(content_type)
            .body(payload)
            .build()
        )

        if self.compression:
            gzip_response(request, response)
        return response
