"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes of one HTTP/1.1 message into an HTTPRequest.

=============================================================================
WHAT THE EDGE SERVER ACTUALLY NEEDS FROM A REQUEST
=============================================================================

    GET /favicon?t=favicon16&v=2 HTTP/1.1\r\n
    └┬┘ └───────────┬──────────┘ └──┬───┘
     │              │               │
   method     request target     version
              ├──────┬─────┘
              │      └── query  "t=favicon16&v=2"  → Favicon Selector
              └───────── path   "/favicon"         → Route Dispatcher

    Host: www.kingland.id\r\n   → Redirect Policy
    \r\n

The redirect policy works on the request target exactly as it was sent
(path AND query), so the raw target is kept alongside the split parts.
Neither the path nor the query is URL-decoded: route matching and favicon
selection compare the literal bytes the client sent.

=============================================================================
ERRORS
=============================================================================

Malformed input raises HTTPParseError. The connection handler treats that
as a framing error: it logs it and closes the connection. No error page is
ever written back, the server has no 4xx responses.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict
from urllib.parse import urlsplit
import re

from ..protocol import Protocol


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Always fatal for the connection it happened on, never for the server.
    """


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         Request method as sent ("GET", "HEAD", ...)

        path:           Request path WITHOUT query string ("/favicon")

        query:          Raw query string, or None when the target had no "?"
                        "/favicon?t=apple" → "t=apple"
                        "/favicon?"        → ""
                        "/favicon"         → None

        target:         Path plus query exactly as sent. Redirect targets
                        are built from this.

        version:        "HTTP/1.1" or "HTTP/1.0"

        headers:        Header map with LOWERCASE keys

        protocol:       Which listener the connection came from. Set by
                        the connection handler before dispatch.

    =========================================================================
    """

    method: str
    path: str
    query: Optional[str] = None
    target: str = ""
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)
    protocol: Protocol = Protocol.PLAIN

    def __post_init__(self):
        if not self.target:
            self.target = self.path if self.query is None else f"{self.path}?{self.query}"

    @property
    def host(self) -> str:
        """
        Get the Host header value.

        A missing Host header reads as the empty string, which the redirect
        policy treats like any other foreign host.
        """
        return self.headers.get("host", "")

    @property
    def path_and_query(self) -> str:
        return self.target

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if this connection should be kept alive.

        The header is a comma-separated token list ("close, TE").

        HTTP/1.1 (default: keep-alive):
            close token           → close after response
            (missing)             → keep alive

        HTTP/1.0 (default: close):
            keep-alive token      → keep alive
            (missing)             → close after response
        """
        tokens = {
            token.strip().lower()
            for token in self.headers.get("connection", "").split(",")
        }

        if "close" in tokens:
            return False
        if self.version == "HTTP/1.1":
            return True
        return "keep-alive" in tokens


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw Request Bytes
              │
              ▼
        ┌───────────────────────────────────────────────────────────────┐
        │  1. Find Header/Body Separator (\\r\\n\\r\\n)                      │
        │  2. Parse Request Line   METHOD SP TARGET SP VERSION            │
        │  3. Parse Headers        "Name: Value", names lowercased        │
        │  4. Extract Body         exactly Content-Length bytes           │
        └───────────────────────────────────────────────────────────────┘
              │
              ▼
        HTTPRequest dataclass

    Any method token is accepted. The route table decides what a method
    means, and unknown methods simply get the landing page.
    """

    # token = 1*tchar (RFC 7230 §3.2.6)
    REQUEST_LINE_PATTERN = re.compile(
        r"^([!#$%&'*+\-.^_`|~0-9A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$"
    )
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0),
        protocol: Protocol = Protocol.PLAIN,
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Args:
            data: One complete HTTP message, as framed by Connection.
            client_address: Client's (ip, port) tuple for logging.
            protocol: The listener the message arrived on.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes")

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Headers are ASCII on the wire; latin-1 never fails and keeps bytes 1:1
        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, version = self._parse_request_line(lines[0])
        path, query = self._split_target(target)
        headers = self._parse_headers(lines[1:])

        # Chunked bodies would desync our framing on a keep-alive connection
        if "transfer-encoding" in headers:
            raise HTTPParseError("Transfer-Encoding is not supported")

        content_length = self._content_length(headers)
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            query=query,
            target=target,
            version=version,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
            protocol=protocol,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(f"Unsupported HTTP version: {version}")

        return method, target, version

    def _split_target(self, target: str) -> tuple[str, Optional[str]]:
        """
        Split a request target into (path, query).

        Origin form is the normal case. Absolute form ("http://host/x?y")
        is what proxies send; only its path and query are kept.
        """
        if "://" in target:
            parts = urlsplit(target)
            path = parts.path or "/"
            query = parts.query if "?" in target else None
            return path, query

        if "?" in target:
            path, query = target.split("?", 1)
            return path, query
        return target, None

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Repeated headers are joined with ", " (RFC 7230 §3.2.2). Lines that
        don't look like "Name: Value" are skipped.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            if not line:
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    def _content_length(self, headers: Dict[str, str]) -> int:
        raw = headers.get("content-length")
        if raw is None:
            return 0
        try:
            length = int(raw)
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}") from None
        if length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        return length


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    protocol: Protocol = Protocol.PLAIN,
) -> HTTPRequest:
    """Parse one request with a default RequestParser."""
    return RequestParser().parse(data, client_address, protocol)
