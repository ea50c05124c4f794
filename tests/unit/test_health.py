"""
Unit tests for the health registry and /health handler.
"""

import pytest

from adminserver.handlers.health import (
    HealthCheck,
    HealthCheckRegistry,
    HealthHandler,
    HealthPolicy,
)
from adminserver.http.status_codes import HTTPStatus

from helpers import make_request


def healthy() -> bool:
    return True


def unhealthy() -> bool:
    return False


def broken() -> bool:
    raise RuntimeError("database unreachable")


class Consumer:
    def __init__(self, connected: bool):
        self.connected = connected

    def is_healthy(self) -> bool:
        return self.connected


class TestHealthCheck:
    def test_callable_probe(self):
        assert HealthCheck("ok", healthy).run() is True
        assert HealthCheck("bad", unhealthy).run() is False

    def test_object_probe(self):
        assert HealthCheck("consumer", Consumer(True)).run() is True
        assert HealthCheck("consumer", Consumer(False)).run() is False

    def test_raising_probe_is_unhealthy(self, caplog):
        assert HealthCheck("db", broken).run() is False
        assert "database unreachable" in caplog.text


class TestHealthCheckRegistry:
    """Tests for HealthCheckRegistry class."""

    def test_register_with_name(self):
        registry = HealthCheckRegistry()

        assert registry.register(healthy, name="database") == "database"
        assert registry.names() == ["database"]
        assert len(registry) == 1

    def test_generated_names_are_unique(self):
        registry = HealthCheckRegistry()

        first = registry.register(lambda: True)
        second = registry.register(lambda: True)
        third = registry.register(Consumer(True))

        assert first != second
        assert len(registry) == 3
        assert third.startswith("Consumer-")

    def test_same_name_replaces_in_place(self):
        registry = HealthCheckRegistry()
        registry.register(healthy, name="a")
        registry.register(healthy, name="b")
        registry.register(unhealthy, name="a")

        assert registry.names() == ["a", "b"]
        assert registry.evaluate() == ["a"]

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            HealthCheckRegistry().register("not a probe")

    def test_unregister(self):
        registry = HealthCheckRegistry()
        registry.register(unhealthy, name="flaky")

        assert registry.unregister("flaky") is True
        assert registry.unregister("flaky") is False
        assert registry.evaluate() == []

    def test_clear(self):
        registry = HealthCheckRegistry()
        registry.register(unhealthy, name="a")
        registry.register(unhealthy, name="b")
        registry.clear()

        assert len(registry) == 0

    def test_evaluate_reports_failures_in_order(self):
        registry = HealthCheckRegistry()
        registry.register(broken, name="db")
        registry.register(healthy, name="cache")
        registry.register(unhealthy, name="queue")

        assert registry.evaluate() == ["db", "queue"]

    def test_empty_registry_is_healthy(self):
        assert HealthCheckRegistry().evaluate() == []


class TestHealthHandler:
    """Tests for the /health handler."""

    def test_healthy(self):
        registry = HealthCheckRegistry()
        registry.register(healthy, name="a")
        registry.register(Consumer(True), name="b")

        response = HealthHandler(registry)(make_request("GET", "/health"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"OK"

    def test_no_probes(self):
        response = HealthHandler(HealthCheckRegistry())(make_request("GET", "/health"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"OK"

    def test_count_policy(self):
        registry = HealthCheckRegistry()
        registry.register(unhealthy, name="a")
        registry.register(healthy, name="b")
        registry.register(broken, name="c")

        response = HealthHandler(registry, HealthPolicy.COUNT)(make_request("GET", "/health"))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.body == b"2 health check(s) failed"

    def test_first_failure_policy(self):
        registry = HealthCheckRegistry()
        registry.register(healthy, name="cache")
        registry.register(unhealthy, name="database")
        registry.register(unhealthy, name="queue")

        handler = HealthHandler(registry, HealthPolicy.FIRST_FAILURE)
        response = handler(make_request("GET", "/health"))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.body == b"Health check 'database' failed"

    def test_recovers_after_replace(self):
        registry = HealthCheckRegistry()
        registry.register(unhealthy, name="database")
        handler = HealthHandler(registry)

        assert handler(make_request("GET", "/health")).status == 500

        registry.register(healthy, name="database")
        assert handler(make_request("GET", "/health")).body == b"OK"

    def test_policy_from_config_value(self):
        assert HealthPolicy("first_failure") is HealthPolicy.FIRST_FAILURE
        assert HealthPolicy("count") is HealthPolicy.COUNT
