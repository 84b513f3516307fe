"""Tests for the single-owner Connection."""

import httpx
import pytest

from concord.core.errors import ClosedConnectionError, TransportIOError
from concord.transport.dial import acquire_connection


class TestConnection:
    """Test framing and close semantics against a live origin."""

    def test_send_reads_response(self, origin_server):
        url = httpx.URL(f"http://{origin_server.address}/greeting?x=1")
        with acquire_connection(url) as connection:
            response = connection.send(httpx.Request("GET", url))
            assert response.status_code == 200
            assert response.read() == b"hello"

        assert origin_server.requests[0].target == "/greeting?x=1"

    def test_connection_is_reusable_after_body_is_drained(self, origin_server):
        url = httpx.URL(f"http://{origin_server.address}/")
        with acquire_connection(url) as connection:
            connection.send(httpx.Request("GET", url)).read()
            second = connection.send(httpx.Request("GET", url))
            assert second.read() == b"hello"
            # Draining a body never closes the connection
            assert not connection.closed

        assert len(origin_server.requests) == 2

    def test_forwarding_uses_absolute_form(self, forward_proxy):
        proxy = httpx.URL(f"http://{forward_proxy.address}")
        url = httpx.URL("http://someserver")
        with acquire_connection(url, proxy) as connection:
            assert connection.forwarding
            connection.send(httpx.Request("GET", url)).read()

        request = forward_proxy.requests[0]
        assert request.target == "http://someserver/"
        assert request.headers["Host"] == "someserver"

    def test_write_after_close_fails(self, origin_server):
        url = httpx.URL(f"http://{origin_server.address}/")
        connection = acquire_connection(url)
        connection.close()

        assert connection.closed
        with pytest.raises(ClosedConnectionError):
            connection.write(b"GET / HTTP/1.1\r\n\r\n")
        with pytest.raises(ClosedConnectionError):
            connection.send(httpx.Request("GET", url))

    def test_close_twice_is_a_noop(self, origin_server):
        url = httpx.URL(f"http://{origin_server.address}/")
        connection = acquire_connection(url)
        connection.close()
        connection.close()
        assert connection.closed

    def test_raw_write_and_read(self, origin_server):
        url = httpx.URL(f"http://{origin_server.address}/")
        with acquire_connection(url) as connection:
            connection.write(
                f"GET /raw HTTP/1.1\r\nHost: {origin_server.address}\r\n\r\n".encode()
            )
            data = connection.read()

        assert data.startswith(b"HTTP/1.1 200")

    def test_start_tls_after_http_traffic_is_refused(self, origin_server, certificates):
        url = httpx.URL(f"http://{origin_server.address}/")
        with acquire_connection(url) as connection:
            connection.send(httpx.Request("GET", url)).read()
            with pytest.raises(TransportIOError):
                connection.start_tls(certificates.client_context(), "localhost")
