"""
pytest configuration and fixtures.
"""

import socket
from typing import Callable, Generator, List, Optional

import pytest

from adminserver import AdminConfig, AdminServer


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /metrics?name[]=up&name[]=jobs_total HTTP/1.1\r\n"
        b"Host: task-7:9990\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/plain\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a small body."""
    body = b"reason=deploy"
    return (
        b"POST /quitquitquit HTTP/1.1\r\n"
        b"Host: task-7:9990\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def config() -> AdminConfig:
    """Admin config for tests: loopback, OS-assigned port, short timeouts."""
    return AdminConfig(
        host="127.0.0.1",
        port=0,
        workers=2,
        timeout=5.0,
        keep_alive_timeout=2.0,
        drain_timeout=1.0,
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def start_admin(config: AdminConfig) -> Generator[Callable[..., AdminServer], None, None]:
    """
    Factory that builds and starts an AdminServer, closing it on teardown.

        admin = start_admin(hooks=LifecycleHooks.of(on_quit=...))
        with RawClient(admin.address) as client:
            ...
    """
    started: List[AdminServer] = []

    def _start(admin_config: Optional[AdminConfig] = None, **kwargs) -> AdminServer:
        admin = AdminServer(admin_config or config, **kwargs)
        admin.start()
        started.append(admin)
        return admin

    yield _start

    for admin in started:
        admin.close(timeout=5.0)


@pytest.fixture
def admin_server(start_admin) -> AdminServer:
    """A running AdminServer with no hooks, probes or metrics."""
    return start_admin()
