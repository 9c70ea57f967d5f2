"""
Shared fixtures for the OCI Signing SDK tests
"""

import ipaddress
import socket
import ssl
import threading
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import List, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from oci_signing_sdk.signing import SigningIdentity, FixedClock

FIXED_TIME = datetime(2024, 10, 21, 7, 28, 0, tzinfo=timezone.utc)
FIXED_DATE = "Mon, 21 Oct 2024 07:28:00 GMT"

TENANCY = "ocid1.tenancy.oc1..aaaatenancy"
USER = "ocid1.user.oc1..aaaauser"
FINGERPRINT = "20:3b:97:13:55:1c:5b:0d:d3:37:d8:50:4e:c5:3a:34"


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_key):
    return rsa_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption()
    ).decode("ascii")


@pytest.fixture(scope="session")
def encrypted_private_key_pem(rsa_key):
    return rsa_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.BestAvailableEncryption(b"correct horse")
    ).decode("ascii")


@pytest.fixture(scope="session")
def public_key_pem(rsa_key):
    return rsa_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode("ascii")


@pytest.fixture
def identity(private_key_pem):
    return SigningIdentity(
        tenancy_ocid=TENANCY,
        user_ocid=USER,
        key_fingerprint=FINGERPRINT,
        private_key=private_key_pem
    )


@pytest.fixture
def fixed_clock():
    return FixedClock(FIXED_TIME)


class FakeStream:
    """In-memory Stream serving a canned response."""

    def __init__(self, response: bytes = b"", chunk_size: int = 7,
                 timeout_after_bytes: Optional[int] = None):
        self.response = response
        self.chunk_size = chunk_size
        self.timeout_after_bytes = timeout_after_bytes
        self.position = 0
        self.written = bytearray()
        self.closed = False

    def write(self, data: bytes) -> None:
        self.written += data

    def read_line(self) -> bytes:
        self._check_timeout()
        end = self.response.find(b"\n", self.position)
        end = len(self.response) if end == -1 else end + 1
        line = self.response[self.position:end]
        self.position = end
        return line

    def read_available(self) -> bytes:
        self._check_timeout()
        chunk = self.response[self.position:self.position + self.chunk_size]
        self.position += len(chunk)
        return chunk

    def close(self) -> None:
        self.closed = True

    def _check_timeout(self):
        if self.timeout_after_bytes is not None and self.position >= self.timeout_after_bytes:
            raise TimeoutError("timed out")


class FakeConnector:
    """Connector handing out a prepared FakeStream."""

    def __init__(self, stream: Optional[FakeStream] = None, error: Optional[Exception] = None):
        self.stream = stream
        self.error = error
        self.calls: List[tuple] = []

    def connect(self, host, port, trust_anchor, timeout, use_tls=True):
        self.calls.append((host, port, trust_anchor, timeout, use_tls))
        if self.error is not None:
            raise self.error
        return self.stream


@pytest.fixture
def fake_stream_factory():
    return FakeStream


@pytest.fixture
def fake_connector_factory():
    return FakeConnector


def _certificate_builder(subject: x509.Name, issuer: x509.Name, public_key) -> x509.CertificateBuilder:
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
    )


def make_ca(common_name: str):
    """Create a self-signed CA certificate and its key."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    cert = (
        _certificate_builder(name, name, key.public_key())
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=True,
                crl_sign=True, encipher_only=False, decipher_only=False
            ),
            critical=True
        )
        .add_extension(x509.AuthorityKeyIdentifier.from_issuer_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )
    return cert, key


def make_server_certificate(ca_cert: x509.Certificate, ca_key):
    """Create a 127.0.0.1 / localhost server certificate signed by a CA."""
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    cert = (
        _certificate_builder(subject, ca_cert.subject, key.public_key())
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.SubjectAlternativeName([
                x509.DNSName("localhost"),
                x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
            ]),
            critical=False
        )
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()), critical=False)
        .sign(ca_key, hashes.SHA256())
    )
    return cert, key


@pytest.fixture(scope="session")
def tls_certificates(tmp_path_factory):
    """CA text for clients plus a server certificate chain on disk."""
    ca_cert, ca_key = make_ca("OCI Signing SDK Test CA")
    other_ca_cert, _ = make_ca("Unrelated Test CA")
    server_cert, server_key = make_server_certificate(ca_cert, ca_key)

    directory = tmp_path_factory.mktemp("tls")
    cert_file = directory / "server.pem"
    key_file = directory / "server.key"
    cert_file.write_bytes(server_cert.public_bytes(serialization.Encoding.PEM))
    key_file.write_bytes(server_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption()
    ))

    return SimpleNamespace(
        ca_pem=ca_cert.public_bytes(serialization.Encoding.PEM).decode("ascii"),
        other_ca_pem=other_ca_cert.public_bytes(serialization.Encoding.PEM).decode("ascii"),
        cert_file=str(cert_file),
        key_file=str(key_file),
    )


@pytest.fixture
def server_tls_context(tls_certificates):
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(tls_certificates.cert_file, tls_certificates.key_file)
    return context


class LoopbackServer:
    """
    One-shot server on 127.0.0.1 that answers a single request.

    Reads the request head, writes the canned response, then either closes
    the connection or holds it open until the server is stopped.
    """

    def __init__(self, response: bytes, tls_context: Optional[ssl.SSLContext] = None,
                 hold_open: bool = False):
        self.response = response
        self.tls_context = tls_context
        self.hold_open = hold_open
        self.received = b""
        self.error: Optional[Exception] = None
        self._release = threading.Event()
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(1)
        self._listener.settimeout(5)
        self.port = self._listener.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def __enter__(self):
        self._thread.start()
        return self

    def __exit__(self, *args):
        self._release.set()
        self._thread.join(5)
        self._listener.close()

    def _serve(self):
        try:
            conn, _ = self._listener.accept()
        except OSError as e:
            self.error = e
            return

        try:
            conn.settimeout(5)
            if self.tls_context is not None:
                conn = self.tls_context.wrap_socket(conn, server_side=True)
            while b"\r\n\r\n" not in self.received:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                self.received += chunk
            conn.sendall(self.response)
            if self.hold_open:
                self._release.wait(5)
        except OSError as e:
            self.error = e
        finally:
            conn.close()


@pytest.fixture
def unused_port():
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
