"""
End-to-end tests of the connection pipeline over real sockets.
"""

import dataclasses

import pytest

from adminserver import HTTPServer
from adminserver.http.response import text

from helpers import RawClient, build_request


class TestKeepAlive:
    def test_http11_connection_stays_open(self, admin_server):
        with RawClient(admin_server.address) as client:
            first = client.request("GET", "/health")
            second = client.request("GET", "/health")

        assert first.status == 200
        assert first.text == "OK"
        assert second.status == 200
        assert first.header("connection") != "close"

    def test_connection_close(self, admin_server):
        with RawClient(admin_server.address) as client:
            response = client.request("GET", "/health", {"Connection": "close"})

            assert response.status == 200
            assert response.header("connection") == "close"
            assert client.is_closed_by_peer()

    def test_http10_closes_by_default(self, admin_server):
        with RawClient(admin_server.address) as client:
            client.send(build_request("GET", "/health", version="HTTP/1.0"))
            response = client.read_response()

            assert response.status == 200
            assert client.is_closed_by_peer()

    def test_http10_keep_alive(self, admin_server):
        with RawClient(admin_server.address) as client:
            for _ in range(2):
                client.send(
                    build_request("GET", "/health", {"Connection": "keep-alive"}, version="HTTP/1.0")
                )
                assert client.read_response().status == 200

    def test_pipelined_requests_answered_in_order(self, admin_server):
        with RawClient(admin_server.address) as client:
            client.send(
                build_request("GET", "/nope")
                + build_request("GET", "/health")
                + build_request("POST", "/quitquitquit")
            )

            statuses = [client.read_response().status for _ in range(3)]

        assert statuses == [404, 200, 200]


class TestRouting:
    def test_unknown_path(self, admin_server):
        with RawClient(admin_server.address) as client:
            response = client.request("GET", "/does-not-exist")

        assert response.status == 404
        assert response.text == "Not Found"

    def test_query_string_ignored_for_routing(self, admin_server):
        with RawClient(admin_server.address) as client:
            response = client.request("GET", "/health?verbose=1")

        assert response.status == 200

    def test_head_response_has_no_body(self, admin_server):
        with RawClient(admin_server.address) as client:
            head = client.request("HEAD", "/health")
            # A body on the wire would be misread as the next response.
            follow_up = client.request("GET", "/health")

        assert head.status == 404
        assert head.body == b""
        assert follow_up.status == 200

    def test_standard_headers(self, admin_server):
        with RawClient(admin_server.address) as client:
            response = client.request("GET", "/health")

        assert response.header("content-type") == "text/plain; charset=UTF-8"
        assert response.header("content-length") == "2"
        assert response.header("server") == "AdminServer/1.0"
        assert response.header("date").endswith("GMT")


class TestProtocolErrors:
    def test_malformed_request_dropped(self, admin_server):
        with RawClient(admin_server.address) as client:
            client.send(b"this is not http\r\n\r\n")

            assert client.is_closed_by_peer()

    def test_non_ascii_content_length_dropped(self, admin_server):
        with RawClient(admin_server.address) as client:
            client.send(b"POST /quitquitquit HTTP/1.1\r\nContent-Length: \xb2\r\n\r\n")

            assert client.is_closed_by_peer()

    def test_double_slash_path_not_routed(self, admin_server):
        with RawClient(admin_server.address) as client:
            response = client.request("GET", "//health")

            assert response.status == 404

    def test_oversized_request_line_dropped(self, start_admin, config):
        admin = start_admin(dataclasses.replace(config, max_initial_line_length=64))

        with RawClient(admin.address) as client:
            client.send(b"GET /" + b"a" * 200 + b" HTTP/1.1\r\n\r\n")

            assert client.is_closed_by_peer()

    def test_body_over_limit(self, start_admin, config):
        admin = start_admin(dataclasses.replace(config, max_content_length=8))

        with RawClient(admin.address) as client:
            response = client.request("POST", "/quitquitquit", body=b"x" * 64)

            assert response.status == 413
            assert response.header("connection") == "close"
            assert client.is_closed_by_peer()

    def test_chunked_body_over_limit(self, start_admin, config):
        admin = start_admin(dataclasses.replace(config, max_content_length=8))

        with RawClient(admin.address) as client:
            client.send(
                build_request("POST", "/quitquitquit", {"Transfer-Encoding": "chunked"})
                + b"10\r\n" + b"y" * 16 + b"\r\n0\r\n\r\n"
            )
            response = client.read_response()

        assert response.status == 413

    def test_unsupported_expectation(self, admin_server):
        with RawClient(admin_server.address) as client:
            response = client.request("POST", "/quitquitquit", {"Expect": "teapot"})

            assert response.status == 417
            assert client.is_closed_by_peer()


class TestHandlerErrors:
    @pytest.fixture
    def server(self, config):
        server = HTTPServer(config)

        def boom(request):
            raise RuntimeError("secret detail")

        server.add_route("GET", "/boom", boom)
        server.add_route("GET", "/not-a-response", lambda request: "OK")
        server.add_route("POST", "/echo", lambda request: text(request.text()))
        server.start()
        yield server
        server.close()

    def test_exception_becomes_500(self, server, caplog):
        with RawClient(server.address) as client:
            response = client.request("GET", "/boom")
            # The connection survives a failing handler.
            follow_up = client.request("GET", "/boom")

        assert response.status == 500
        assert response.text == "Internal Server Error"
        assert b"secret detail" not in response.body
        assert follow_up.status == 500
        assert "secret detail" in caplog.text

    def test_wrong_return_type_becomes_500(self, server):
        with RawClient(server.address) as client:
            response = client.request("GET", "/not-a-response")

        assert response.status == 500

    def test_body_reaches_handler(self, server):
        with RawClient(server.address) as client:
            response = client.request("POST", "/echo", body=b"hello admin")

        assert response.text == "hello admin"

    def test_chunked_body_reaches_handler(self, server):
        with RawClient(server.address) as client:
            client.send(
                build_request("POST", "/echo", {"Transfer-Encoding": "chunked"})
                + b"5\r\nhello\r\n6\r\n admin\r\n0\r\n\r\n"
            )
            response = client.read_response()

        assert response.text == "hello admin"
