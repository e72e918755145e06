"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses with proper formatting per RFC 7230.

=============================================================================
THE TWO RESPONSES THIS SERVER SENDS
=============================================================================

    ┌─ CONTENT ──────────────────────────────────────────────────────────┐
    │                                                                     │
    │    HTTP/1.1 200 OK\r\n                                             │
    │    Content-Type: image/png\r\n                                     │
    │    Content-Length: 1234\r\n        ← Auto-calculated               │
    │    Date: Mon, 19 Oct 2026 12:00:00 GMT\r\n                         │
    │    Server: edgeserver/1.0\r\n                                      │
    │    Connection: keep-alive\r\n                                      │
    │    \r\n                                                             │
    │    <favicon or landing page bytes>                                  │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

    ┌─ REDIRECT ─────────────────────────────────────────────────────────┐
    │                                                                     │
    │    HTTP/1.1 301 Moved Permanently\r\n                              │
    │    Location: https://www.kingland.id/\r\n                          │
    │    Content-Length: 0\r\n           ← Empty body                    │
    │    ...                                                              │
    │    \r\n                                                             │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BUILDER PATTERN
=============================================================================

    response = (ResponseBuilder()
        .status(HTTPStatus.OK)
        .body(resources.landing_page.body)
        .content_type("text/html; charset=utf-8")
        .build())

Each method returns `self`; build() produces the HTTPResponse.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Union

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "edgeserver/1.0"

# Fixed English names; strftime %a/%b follow the process locale
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

        Dispatcher returns       to_bytes()              Connection sends
        HTTPResponse    ─────►   serializes    ─────►    raw bytes
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 301 Moved Permanently"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("Location")

    def to_bytes(
        self,
        server_name: str = DEFAULT_SERVER_NAME,
        include_body: bool = True,
    ) -> bytes:
        """
        Serialize the response to bytes for sending over the socket.

            HTTP/1.1 200 OK\\r\\n          ← Status line
            Content-Type: text/html\\r\\n
            Content-Length: 27\\r\\n       ← Auto-calculated
            Date: Mon, 19 Oct 2026 ...\\r\\n ← Auto-added
            Server: edgeserver/1.0\\r\\n   ← Auto-added
            \\r\\n                         ← Empty line (separator)
            <!DOCTYPE html>...            ← Body bytes

        Args:
            server_name: Value for the Server header.
            include_body: False for HEAD requests. Content-Length still
                          describes the body that a GET would have carried.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        # latin-1 so a non-ASCII Location can't blow up serialization
        header_bytes = "\r\n".join(lines).encode("latin-1", errors="replace") + b"\r\n"

        if not include_body:
            return header_bytes
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

        builder.status(200).header("X-Key", "val").body(data).build()
        ────────┬───────────────────┬─────────────────┬──────────┬───
                └───────────────────┴─────────────────┴──────────┘
                         All return 'self' except build()
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """
        Set the response body (raw bytes or string).

        Strings are encoded to UTF-8.
        """
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def redirect(self, location: str) -> "ResponseBuilder":
        """
        Turn this into a 301 Moved Permanently with an empty body.

        Browsers cache a 301 and update bookmarks, which is what both the
        canonical redirects and the invite link want.
        """
        self._status = HTTPStatus.MOVED_PERMANENTLY
        self._headers["Location"] = location
        self._body = b""
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Mon, 19 Oct 2026 12:00:00 GMT

    HTTP dates are ALWAYS in GMT, never local time, and never localized,
    which is why strftime's %a/%b are not used here.
    """
    return (
        f"{DAY_NAMES[dt.weekday()]}, "
        f"{dt.day:02d} {MONTH_NAMES[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def moved_permanently(location: str) -> HTTPResponse:
    """Create a 301 Moved Permanently response with an empty body."""
    return ResponseBuilder().redirect(location).build()
