"""
Unit tests for the /metrics handler and the prometheus_client registry.
"""

import gzip

import pytest
from prometheus_client import CollectorRegistry, Counter, Gauge

from adminserver.handlers.metrics import MetricsHandler, PrometheusMetricsRegistry
from adminserver.http.status_codes import HTTPStatus

from helpers import make_request


OPENMETRICS = "application/openmetrics-text"


@pytest.fixture
def collector_registry() -> CollectorRegistry:
    registry = CollectorRegistry()
    jobs = Counter("jobs_processed", "Jobs processed by the task", registry=registry)
    depth = Gauge("queue_depth", "Items waiting in the queue", registry=registry)
    jobs.inc(3)
    depth.set(7)
    return registry


@pytest.fixture
def metrics_registry(collector_registry) -> PrometheusMetricsRegistry:
    return PrometheusMetricsRegistry(collector_registry)


class RecordingRegistry:
    """MetricsRegistry double that records what the handler asked for."""

    def __init__(self):
        self.accept = None
        self.rendered = None

    def negotiate(self, accept):
        self.accept = accept
        return "text/x-test"

    def render(self, content_type, names):
        self.rendered = (content_type, list(names))
        return b"payload"


class TestPrometheusMetricsRegistry:
    def test_default_is_global_registry(self):
        from prometheus_client import REGISTRY

        assert PrometheusMetricsRegistry().registry is REGISTRY

    def test_negotiate_text_by_default(self, metrics_registry):
        assert metrics_registry.negotiate("").startswith("text/plain")
        assert metrics_registry.negotiate("*/*").startswith("text/plain")

    def test_negotiate_openmetrics(self, metrics_registry):
        content_type = metrics_registry.negotiate(f"{OPENMETRICS}; version=1.0.0")
        assert content_type.startswith(OPENMETRICS)

    def test_render_all(self, metrics_registry):
        content_type = metrics_registry.negotiate("")
        output = metrics_registry.render(content_type, [])

        assert b"jobs_processed_total 3.0" in output
        assert b"queue_depth 7.0" in output

    def test_render_filtered(self, metrics_registry):
        content_type = metrics_registry.negotiate("")
        output = metrics_registry.render(content_type, ["queue_depth"])

        assert b"queue_depth 7.0" in output
        assert b"jobs_processed_total" not in output

    def test_render_openmetrics(self, metrics_registry):
        content_type = metrics_registry.negotiate(OPENMETRICS)
        output = metrics_registry.render(content_type, [])

        assert output.endswith(b"# EOF\n")


class TestMetricsHandler:
    def test_passes_accept_and_names(self):
        registry = RecordingRegistry()
        handler = MetricsHandler(registry)

        request = make_request(
            "GET",
            "/metrics?name[]=a&name[]=b",
            {"Accept": OPENMETRICS},
        )
        response = handler(request)

        assert registry.accept == OPENMETRICS
        assert registry.rendered == ("text/x-test", ["a", "b"])
        assert response.status == HTTPStatus.OK
        assert response.get_header("Content-Type") == "text/x-test"
        assert response.body == b"payload"

    def test_text_format(self, metrics_registry):
        response = MetricsHandler(metrics_registry)(make_request("GET", "/metrics"))

        assert response.status == HTTPStatus.OK
        assert response.get_header("Content-Type").startswith("text/plain")
        assert b"queue_depth 7.0" in response.body
        assert response.get_header("Vary") == "Accept-Encoding"

    def test_gzip(self, metrics_registry):
        request = make_request("GET", "/metrics", {"Accept-Encoding": "gzip"})
        response = MetricsHandler(metrics_registry)(request)

        assert response.get_header("Content-Encoding") == "gzip"
        assert b"queue_depth 7.0" in gzip.decompress(response.body)

    def test_compression_disabled(self, metrics_registry):
        request = make_request("GET", "/metrics", {"Accept-Encoding": "gzip"})
        response = MetricsHandler(metrics_registry, compression=False)(request)

        assert response.get_header("Content-Encoding") == ""
        assert b"queue_depth 7.0" in response.body
