"""Tests for CONNECT tunnel establishment."""

import httpx
import pytest

from concord.core.errors import TunnelError
from concord.transport.dial import acquire_connection
from concord.transport.tunnel import connect_request, establish_tunnel, is_success
from tests.helpers.servers import TunnelProxyHandler, serve


class TestConnectRequest:
    """Test the CONNECT request shape."""

    def test_target_and_host_are_canonical(self):
        request = connect_request(httpx.URL("https://example.com/path?q=1"))

        assert request.method == "CONNECT"
        assert request.headers["Host"] == "example.com:443"
        assert "content-length" not in request.headers

    def test_explicit_port_is_kept(self):
        request = connect_request(httpx.URL("https://example.com:8443"))
        assert request.headers["Host"] == "example.com:8443"

    def test_extra_headers_are_added(self):
        request = connect_request(
            httpx.URL("https://example.com"),
            headers={"Proxy-Authorization": "Basic abc"},
        )
        assert request.headers["Proxy-Authorization"] == "Basic abc"
        assert request.headers["Host"] == "example.com:443"


def test_is_success():
    assert is_success(httpx.Response(200))
    assert is_success(httpx.Response(204))
    assert not is_success(httpx.Response(407))


class TestEstablishTunnel:
    """Test tunnels against a live CONNECT proxy."""

    def test_tunnel_switches_connection_to_destination(
        self, tunnel_proxy, tls_origin_server, certificates
    ):
        url = httpx.URL(f"https://localhost:{tls_origin_server.port}/")
        proxy = httpx.URL(f"http://{tunnel_proxy.address}")

        with acquire_connection(url, proxy) as connection:
            response = establish_tunnel(connection, url)

            assert response.status_code == 200
            assert not connection.forwarding
            assert connection.origin.host == b"localhost"
            assert connection.origin.port == tls_origin_server.port

            connection.start_tls(certificates.client_context(), "localhost")
            reply = connection.send(httpx.Request("GET", url))
            assert reply.read() == b"hello"

        connect = tunnel_proxy.requests[0]
        assert connect.method == "CONNECT"
        assert connect.target == f"localhost:{tls_origin_server.port}"
        assert connect.headers["Host"] == connect.target

    def test_refusal_carries_unread_response(self):
        url = httpx.URL("https://localhost:8443/")
        with serve(TunnelProxyHandler, tunnel_status=403) as proxy_server:
            proxy = httpx.URL(f"http://{proxy_server.address}")
            with acquire_connection(url, proxy) as connection:
                with pytest.raises(TunnelError) as exc_info:
                    establish_tunnel(connection, url)

                error = exc_info.value
                assert error.status_code == 403
                assert not error.is_challenge
                assert error.response is not None
                assert error.response.read() == b"Tunnel refused"

    def test_challenge_is_reported(self, auth_tunnel_proxy):
        url = httpx.URL("https://localhost:8443/")
        proxy = httpx.URL(f"http://{auth_tunnel_proxy.address}")
        with acquire_connection(url, proxy) as connection:
            with pytest.raises(TunnelError) as exc_info:
                establish_tunnel(connection, url)

            error = exc_info.value
            assert error.is_challenge
            assert error.headers["Proxy-Authenticate"].startswith("Basic")
            error.response.close()
