"""Shared test fixtures for concord tests.

Fixtures run real servers on 127.0.0.1 in background threads: a plain
origin, forward proxies with and without credentials, a CONNECT-capable
proxy, and a TLS origin backed by a throwaway certificate authority.
"""

import ipaddress
import ssl
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from tests.helpers.servers import (
    EXPECTED_AUTHORIZATION,
    ForwardProxyHandler,
    HelloHandler,
    LocalServer,
    TunnelProxyHandler,
    serve,
)


@dataclass
class Certificates:
    """A local CA and a server certificate for localhost/127.0.0.1."""

    ca_cert_pem: bytes
    server_cert_path: Path
    server_key_path: Path

    def server_context(self) -> ssl.SSLContext:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.load_cert_chain(self.server_cert_path, self.server_key_path)
        return context

    def client_context(self) -> ssl.SSLContext:
        return ssl.create_default_context(cadata=self.ca_cert_pem.decode("ascii"))


def _builder(
    subject: x509.Name, issuer: x509.Name, key: rsa.RSAPrivateKey, days: int
) -> x509.CertificateBuilder:
    now = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=days))
    )


@pytest.fixture(scope="session")
def certificates(tmp_path_factory: pytest.TempPathFactory) -> Certificates:
    """Generate a CA and a CA-signed server certificate once per session."""
    directory = tmp_path_factory.mktemp("certs")

    ca_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    ca_name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "concord test CA")])
    ca_cert = (
        _builder(ca_name, ca_name, ca_key, 1)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(ca_key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=False,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .sign(ca_key, hashes.SHA256())
    )

    server_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    server_cert = (
        _builder(
            x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")]),
            ca_cert.subject,
            server_key,
            1,
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(server_key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False
        )
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.IPv4Address("127.0.0.1")),
                ]
            ),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )

    server_cert_path = directory / "server_cert.pem"
    server_key_path = directory / "server_key.pem"
    server_cert_path.write_bytes(server_cert.public_bytes(serialization.Encoding.PEM))
    server_key_path.write_bytes(
        server_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
    )

    return Certificates(
        ca_cert_pem=ca_cert.public_bytes(serialization.Encoding.PEM),
        server_cert_path=server_cert_path,
        server_key_path=server_key_path,
    )


@pytest.fixture
def origin_server() -> Iterator[LocalServer]:
    """Plain HTTP origin answering "hello"."""
    with serve(HelloHandler) as server:
        yield server


@pytest.fixture
def tls_origin_server(certificates: Certificates) -> Iterator[LocalServer]:
    """HTTPS origin answering "hello", trusted by ``certificates.client_context()``."""
    with serve(HelloHandler, ssl_context=certificates.server_context()) as server:
        yield server


@pytest.fixture
def forward_proxy() -> Iterator[LocalServer]:
    """Forward proxy that needs no credentials."""
    with serve(ForwardProxyHandler) as server:
        yield server


@pytest.fixture
def auth_proxy() -> Iterator[LocalServer]:
    """Forward proxy demanding Basic testuser/testpassword."""
    with serve(ForwardProxyHandler, credentials=EXPECTED_AUTHORIZATION) as server:
        yield server


@pytest.fixture
def tunnel_proxy() -> Iterator[LocalServer]:
    """CONNECT proxy that needs no credentials."""
    with serve(TunnelProxyHandler) as server:
        yield server


@pytest.fixture
def auth_tunnel_proxy() -> Iterator[LocalServer]:
    """CONNECT proxy demanding Basic testuser/testpassword."""
    with serve(TunnelProxyHandler, credentials=EXPECTED_AUTHORIZATION) as server:
        yield server
