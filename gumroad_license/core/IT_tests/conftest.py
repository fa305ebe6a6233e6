"""Shared fixtures: in-memory API handlers and a real TLS fixture server."""
import ipaddress
import json
import ssl
import threading
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, List, Tuple
from urllib.parse import parse_qs

import httpx
import logfire
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID


logfire.configure(send_to_logfire=False, console=False)

LICENSE = "DEADBEEF-CAFE1234-5678DEAD-BEEFCAFE"
PRODUCT_ID = "product-id-1234"
SELLER_ID = "seller-id-1234"

PROXY_VARIABLES = (
    "HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY",
    "http_proxy", "https_proxy", "all_proxy",
)


@pytest.fixture(autouse=True)
def no_proxy_env(monkeypatch):
    """Keep fixture traffic on loopback regardless of the developer's proxy settings."""
    for name in PROXY_VARIABLES:
        monkeypatch.delenv(name, raising=False)


def form_of(request: httpx.Request) -> dict:
    """Decode the form body of a captured request into a flat dict."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class RecordingHandler:
    """
    Stand-in for the licensing API behind an httpx.MockTransport.

    Replies are taken from ``replies`` in order; the last one repeats once the list
    is exhausted. Every request is recorded.
    """

    def __init__(self, *replies: Tuple[int, object]):
        self.replies = list(replies)
        self.requests: List[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.replies[min(len(self.requests), len(self.replies)) - 1]
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def recording_handler() -> Callable[..., RecordingHandler]:
    return RecordingHandler


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _key_usage(cert_sign: bool) -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=True,
        content_commitment=False,
        key_encipherment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=cert_sign,
        crl_sign=cert_sign,
        encipher_only=False,
        decipher_only=False,
    )


class CertificateAuthority:
    """Throwaway CA that issues a server certificate for 127.0.0.1."""

    def __init__(self, common_name: str):
        now = datetime.now(timezone.utc)
        self.key = ec.generate_private_key(ec.SECP256R1())
        self.cert = (
            x509.CertificateBuilder()
            .subject_name(_name(common_name))
            .issuer_name(_name(common_name))
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=30))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(_key_usage(cert_sign=True), critical=True)
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(self.key.public_key()), critical=False)
            .sign(self.key, hashes.SHA256())
        )

    @property
    def cert_pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)

    def issue_server_cert(self) -> Tuple[bytes, bytes]:
        """Return (certificate PEM, private key PEM) for a 127.0.0.1 server."""
        now = datetime.now(timezone.utc)
        key = ec.generate_private_key(ec.SECP256R1())
        cert = (
            x509.CertificateBuilder()
            .subject_name(_name("localhost"))
            .issuer_name(self.cert.subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=30))
            .add_extension(
                x509.SubjectAlternativeName([
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                ]),
                critical=False,
            )
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(_key_usage(cert_sign=False), critical=True)
            .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(self.key.public_key()),
                critical=False,
            )
            .sign(self.key, hashes.SHA256())
        )
        key_pem = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        return cert.public_bytes(serialization.Encoding.PEM), key_pem


# ---------------------------------------------------------------------------
# TLS fixture server
# ---------------------------------------------------------------------------


class TLSFixtureServer:
    """
    Threaded HTTPS server answering every POST with a fixed JSON body.

    Used as a real endpoint for trust-store tests, where an in-memory transport
    would skip the TLS handshake entirely.
    """

    def __init__(self, ca: CertificateAuthority, tmp_path, body: dict, status: int = 200):
        cert_pem, key_pem = ca.issue_server_cert()
        cert_path = tmp_path / f"server-{id(self)}.pem"
        key_path = tmp_path / f"server-{id(self)}.key"
        cert_path.write_bytes(cert_pem + ca.cert_pem)
        key_path.write_bytes(key_pem)

        self.requests: List[dict] = []
        payload = json.dumps(body).encode()
        recorded = self.requests

        class Handler(BaseHTTPRequestHandler):
            def do_POST(self):
                length = int(self.headers.get("Content-Length", "0"))
                raw = self.rfile.read(length).decode()
                recorded.append({k: v[0] for k, v in parse_qs(raw).items()})
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def log_message(self, format, *args):
                pass

        class Server(ThreadingHTTPServer):
            daemon_threads = True

            def handle_error(self, request, client_address):
                # Rejected handshakes are the expected outcome in these tests
                pass

        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.load_cert_chain(str(cert_path), str(key_path))

        self.httpd = Server(("127.0.0.1", 0), Handler)
        self.httpd.socket = context.wrap_socket(self.httpd.socket, server_side=True)
        self.url = f"https://127.0.0.1:{self.httpd.server_address[1]}/v2/licenses/verify"
        self._thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    def __enter__(self) -> "TLSFixtureServer":
        self._thread.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.httpd.shutdown()
        self.httpd.server_close()
        self._thread.join(timeout=5)


@pytest.fixture
def certificate_authority() -> CertificateAuthority:
    return CertificateAuthority("gumroad-license test CA")


@pytest.fixture
def valid_purchase_body() -> dict:
    return {
        "success": True,
        "uses": 1,
        "purchase": {
            "seller_id": SELLER_ID,
            "product_id": PRODUCT_ID,
            "license_key": LICENSE,
            "email": "foo@example.com",
            "sale_timestamp": "2024-03-01T10:00:00Z",
        },
    }
