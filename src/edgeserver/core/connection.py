"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket (plain, or TLS after the handshake) with
buffered request reading, response writing and a graceful close.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

    Client sends:                      Server might receive:
        "GET / HTTP/1.1\\r\\n"             recv() → "GET / HT"
        "Host: kingland.id\\r\\n"          recv() → "TP/1.1\\r\\nHost: ki"
        "\\r\\n"                           recv() → "ngland.id\\r\\n\\r\\n"

So we buffer until the header terminator \\r\\n\\r\\n shows up, then read
exactly Content-Length more bytes. Anything past that stays in the buffer
for the next request on the same connection (pipelining).

=============================================================================
LIFETIME
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
     │         │                                      ▲          │
     │         │                                      └──────────┘
     │         ▼                                    (next request)
     └──────► CLOSING ──► CLOSED

There is no idle timeout unless one is configured: a connection lives
until the peer closes it or a framing error ends it.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


HEADER_TERMINATOR = b"\r\n\r\n"

# Upper bounds on what close() reads from a peer that keeps sending
DRAIN_TIMEOUT = 1.0
DRAIN_LIMIT = 64 * 1024


class ConnectionState(Enum):
    """Connection lifecycle states, for logging and debugging."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket. Replaced by an SSLSocket after
                start_tls() on the SECURE listener.
        address: Client's (ip, port) tuple.
        id: Short connection identifier for log lines.
        idle_timeout: Seconds a read or write may block, None for no limit.
        requests_handled: Number of requests read on this connection.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    idle_timeout: Optional[float] = None
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        # settimeout(None) means fully blocking
        self.socket.settimeout(self.idle_timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    def start_tls(self, terminator) -> None:
        """
        Replace the raw socket with a TLS socket, handshaking first.

        Raises whatever the handshake raises (ssl.SSLError, OSError).
        """
        self.socket = terminator.terminate(self.socket)
        self.socket.settimeout(self.idle_timeout)

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

            while no \\r\\n\\r\\n in buffer:  recv() → buffer
            parse Content-Length
            while body incomplete:          recv() → buffer
            split off one request, keep the rest buffered

        Returns:
            Raw request bytes, or None if the peer closed cleanly between
            requests (or the idle timeout expired).

        Raises:
            ValueError: If the request exceeds max_request_size.
            OSError: On socket errors (ssl.SSLError included).
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        try:
            while HEADER_TERMINATOR not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    if self._buffer:
                        logger.debug(f"[{self.id}] Peer closed with {len(self._buffer)} unparsed bytes")
                    return None

                self._buffer += chunk
                self._check_size(len(self._buffer))

            header_end = self._buffer.find(HEADER_TERMINATOR)
            body_start = header_end + len(HEADER_TERMINATOR)
            content_length = self._parse_content_length(self._buffer[:header_end])
            self._check_size(body_start + content_length)

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # Closed mid-body; the parser reports it as incomplete
                self._buffer += chunk

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.state = ConnectionState.PROCESSING
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            logger.debug(f"[{self.id}] Idle timeout after {self.requests_handled} requests")
            return None

    def _check_size(self, size: int):
        if size > self.max_request_size:
            raise ValueError(f"Request too large: {size} bytes (limit {self.max_request_size})")

    def _recv(self) -> bytes:
        """socket.recv() that maps an abrupt disconnect to b""."""
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Content-Length from raw header bytes, 0 if absent or unusable.

        This only decides how many bytes to read; RequestParser validates
        the header properly and rejects bad values.
        """
        for line in headers.split(b"\r\n")[1:]:
            name, sep, value = line.partition(b":")
            if sep and name.strip().lower() == b"content-length":
                try:
                    return max(0, int(value.strip()))
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send response bytes with sendall().

        Returns:
            True if sent, False if the peer went away.
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.debug(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close gracefully: shutdown(SHUT_WR) sends FIN, drain what the peer
        still sends (at most DRAIN_LIMIT bytes within DRAIN_TIMEOUT
        seconds), then release the descriptor. Idempotent.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        deadline = time.monotonic() + DRAIN_TIMEOUT
        drained = 0
        try:
            while drained < DRAIN_LIMIT:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                chunk = self.socket.recv(self.buffer_size)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # socket.timeout included

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
