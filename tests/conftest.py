"""
pytest configuration and fixtures.
"""

import datetime
import ipaddress
import socket
import ssl
from typing import Dict, Generator, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from edgeserver import EdgeServer, EdgeConfig
from edgeserver.core import TLSTerminator, load_tls_material
from edgeserver.resources import ResourceStore


LANDING_PAGE = b"\n\n  <!DOCTYPE html><html><body>landing</body></html>  \n\n"
LANDING_PAGE_STRIPPED = b"<!DOCTYPE html><html><body>landing</body></html>"

PNG_HEADER = b"\x89PNG\r\n\x1a\n"
APPLE_TOUCH_ICON = PNG_HEADER + b"apple-touch-icon"
FAVICON_16 = PNG_HEADER + b"favicon-16x16"
FAVICON_32 = PNG_HEADER + b"favicon-32x32"


# =============================================================================
# SAMPLE REQUESTS
# =============================================================================

@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request for a favicon on the canonical host."""
    return (
        b"GET /favicon?t=favicon16&v=2 HTTP/1.1\r\n"
        b"Host: www.kingland.id\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: image/png\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b'{"name": "John"}'
    return (
        b"POST /contact HTTP/1.1\r\n"
        b"Host: www.kingland.id\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
        + body
    )


# =============================================================================
# PAYLOADS
# =============================================================================

@pytest.fixture
def resources() -> ResourceStore:
    """In-memory landing page and favicons."""
    return ResourceStore.from_bytes(
        landing_page=LANDING_PAGE,
        apple_touch_icon=APPLE_TOUCH_ICON,
        favicon_16=FAVICON_16,
        favicon_32=FAVICON_32,
    )


@pytest.fixture
def resource_dir(tmp_path: Path) -> Path:
    """A public/ directory laid out the way ResourceStore expects."""
    public = tmp_path / "public"
    (public / "favicons").mkdir(parents=True)
    (public / "index.html").write_bytes(LANDING_PAGE)
    (public / "favicons" / "apple-touch-icon.png").write_bytes(APPLE_TOUCH_ICON)
    (public / "favicons" / "favicon-16x16.png").write_bytes(FAVICON_16)
    (public / "favicons" / "favicon-32x32.png").write_bytes(FAVICON_32)
    return public


# =============================================================================
# TLS CREDENTIALS
# =============================================================================

def generate_self_signed(common_name: str = "localhost") -> Tuple[bytes, bytes]:
    """Self-signed certificate and its PKCS8 key, both PEM."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(
            x509.SubjectAlternativeName([
                x509.DNSName(common_name),
                x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
            ]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )

    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return cert_pem, key_pem


@pytest.fixture(scope="session")
def credentials() -> Tuple[bytes, bytes]:
    """(cert_pem, key_pem), generated once per test session."""
    return generate_self_signed()


@pytest.fixture
def cert_files(tmp_path: Path, credentials) -> Tuple[Path, Path]:
    """Credentials written to disk as certificate.crt / private.key."""
    cert_pem, key_pem = credentials
    certs = tmp_path / "certs"
    certs.mkdir()
    cert_path = certs / "certificate.crt"
    key_path = certs / "private.key"
    cert_path.write_bytes(cert_pem)
    key_path.write_bytes(key_pem)
    return cert_path, key_path


@pytest.fixture
def tls_terminator(credentials) -> TLSTerminator:
    cert_pem, key_pem = credentials
    return TLSTerminator(load_tls_material(cert_pem, key_pem))


@pytest.fixture
def client_tls_context() -> ssl.SSLContext:
    """Client context that accepts the self-signed test certificate."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


# =============================================================================
# NETWORK
# =============================================================================

@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def test_config() -> EdgeConfig:
    """Both listeners on ephemeral localhost ports."""
    return EdgeConfig(
        plain_address=("127.0.0.1", 0),
        secure_address=("127.0.0.1", 0),
        log_level="WARNING",
    )


@pytest.fixture
def running_server(test_config, resources, tls_terminator) -> Generator[EdgeServer, None, None]:
    """An EdgeServer serving on ephemeral ports for the duration of a test."""
    server = EdgeServer(test_config, resources=resources, tls=tls_terminator)
    server.start()

    yield server

    server.stop()


class HTTPClientResponse:
    """Just enough of a response to assert on."""

    def __init__(self, status: int, reason: str, headers: Dict[str, str], body: bytes):
        self.status = status
        self.reason = reason
        self.headers = headers
        self.body = body

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


def read_response(sock: socket.socket, head: bool = False) -> Optional[HTTPClientResponse]:
    """
    Read exactly one response from a socket (plain or TLS).

    Returns None if the server closed the connection without answering.
    """
    buffer = b""
    while b"\r\n\r\n" not in buffer:
        chunk = sock.recv(4096)
        if not chunk:
            return None
        buffer += chunk

    header_section, _, rest = buffer.partition(b"\r\n\r\n")
    lines = header_section.decode("latin-1").split("\r\n")
    _, status, reason = lines[0].split(" ", 2)

    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()

    length = 0 if head else int(headers.get("content-length", "0"))
    body = rest
    while len(body) < length:
        chunk = sock.recv(4096)
        if not chunk:
            break
        body += chunk

    return HTTPClientResponse(int(status), reason, headers, body[:length])


def request(
    address: Tuple[str, int],
    raw: bytes,
    tls_context: Optional[ssl.SSLContext] = None,
    head: bool = False,
) -> Optional[HTTPClientResponse]:
    """Open a connection, send one raw request, read one response."""
    with socket.create_connection(address, timeout=5.0) as sock:
        if tls_context is not None:
            with tls_context.wrap_socket(sock, server_hostname="localhost") as tls_sock:
                tls_sock.sendall(raw)
                return read_response(tls_sock, head=head)
        sock.sendall(raw)
        return read_response(sock, head=head)
