"""
End-to-end tests for GET /metrics.
"""

import gzip

import pytest
from prometheus_client import CollectorRegistry, Counter, Gauge

from adminserver import PrometheusMetricsRegistry

from helpers import RawClient


@pytest.fixture
def metrics_admin(start_admin):
    registry = CollectorRegistry()
    Counter("jobs_processed", "Jobs processed", registry=registry).inc(5)
    Gauge("queue_depth", "Queue depth", registry=registry).set(2)
    return start_admin(metrics_registry=PrometheusMetricsRegistry(registry))


def test_metrics_text_format(metrics_admin):
    with RawClient(metrics_admin.address) as client:
        response = client.request("GET", "/metrics")

    assert response.status == 200
    assert response.header("content-type").startswith("text/plain")
    assert b"jobs_processed_total 5.0" in response.body
    assert b"queue_depth 2.0" in response.body


def test_metrics_openmetrics(metrics_admin):
    with RawClient(metrics_admin.address) as client:
        response = client.request(
            "GET", "/metrics", {"Accept": "application/openmetrics-text; version=1.0.0"}
        )

    assert response.header("content-type").startswith("application/openmetrics-text")
    assert response.body.endswith(b"# EOF\n")


def test_metrics_name_filter_and_gzip(metrics_admin):
    with RawClient(metrics_admin.address) as client:
        response = client.request(
            "GET", "/metrics?name[]=queue_depth", {"Accept-Encoding": "gzip"}
        )

    assert response.header("content-encoding") == "gzip"
    assert response.header("vary") == "Accept-Encoding"
    assert int(response.header("content-length")) == len(response.body)

    body = gzip.decompress(response.body)
    assert b"queue_depth 2.0" in body
    assert b"jobs_processed_total" not in body


def test_metrics_not_served_by_default(admin_server):
    with RawClient(admin_server.address) as client:
        response = client.request("GET", "/metrics")

    assert response.status == 404


def test_enable_metrics_uses_default_registry(start_admin, config):
    config.enable_metrics = True
    admin = start_admin(config)

    with RawClient(admin.address) as client:
        response = client.request("GET", "/metrics")

    assert response.status == 200
    # The default registry always carries the process/platform collectors.
    assert b"python_info" in response.body
