"""
=============================================================================
CONNECTION ACCEPTOR
=============================================================================

One Acceptor per listening port. The edge server runs two of them, each
in its own long-lived thread:

    ┌──────────────────────┐        ┌──────────────────────┐
    │ Acceptor(PLAIN, :80) │        │ Acceptor(SECURE,:443)│
    └──────────┬───────────┘        └──────────┬───────────┘
               │ accept()                      │ accept()
       ┌───────┼───────┐               ┌───────┼───────┐
       ▼       ▼       ▼               ▼       ▼       ▼
    thread  thread  thread          thread  thread  thread   ← one daemon
                                                               thread per
                                                               connection

The acceptor never reads from a client. It accepts, wraps the socket in a
Connection and hands it to the connection handler on a fresh thread, so a
slow client or a stalled TLS handshake can't hold up the accept loop.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR   rebind immediately after a restart instead of waiting out
               TIME_WAIT ("Address already in use")
TCP_NODELAY    disable Nagle; responses are small and should leave now
timeout 1.0s   accept() wakes up once a second to check the running flag,
               so shutdown() takes effect without closing the socket under
               a blocked accept()

=============================================================================
CONNECTION LIMIT
=============================================================================

With max_connections set, a BoundedSemaphore is acquired BEFORE accept()
and released when the connection thread ends. At the limit the acceptor
simply stops accepting; new clients wait in the kernel backlog. Nobody is
ever turned away with an error response.

=============================================================================
"""

import socket
import logging
import threading
from typing import Optional, Callable, Tuple

from .connection import Connection
from ..protocol import Protocol


logger = logging.getLogger(__name__)


ConnectionHandler = Callable[[Connection, Protocol], None]

ACCEPT_POLL_INTERVAL = 1.0


def format_address(address: Tuple) -> str:
    """("0.0.0.0", 80) → "0.0.0.0:80", ("::", 443) → "[::]:443"."""
    host, port = address[0], address[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class Acceptor:
    """
    Listening socket plus accept loop for one Protocol.

    Usage:
        acceptor = Acceptor(Protocol.PLAIN, ("0.0.0.0", 80), handler)
        acceptor.bind()            # OSError here is fatal
        acceptor.serve_forever()   # blocks until shutdown()
    """

    def __init__(
        self,
        protocol: Protocol,
        address: Tuple[str, int],
        handler: ConnectionHandler,
        backlog: int = 128,
        buffer_size: int = 8192,
        max_request_size: int = 1024 * 1024,
        idle_timeout: Optional[float] = None,
        max_connections: Optional[int] = None,
    ):
        self.protocol = protocol
        self.requested_address = address
        self.handler = handler
        self.backlog = backlog
        self.buffer_size = buffer_size
        self.max_request_size = max_request_size
        self.idle_timeout = idle_timeout

        self._slots: Optional[threading.BoundedSemaphore] = None
        if max_connections is not None:
            self._slots = threading.BoundedSemaphore(max_connections)

        self._socket: Optional[socket.socket] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); the real port when bound to port 0."""
        if self._socket is None:
            return self.requested_address
        bound = self._socket.getsockname()
        return (bound[0], bound[1])

    def _create_socket(self, host: str) -> socket.socket:
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(ACCEPT_POLL_INTERVAL)
        return sock

    def bind(self):
        """
        Create, bind and listen.

        Raises:
            OSError: Port in use, permission denied (ports < 1024 need
                     root or CAP_NET_BIND_SERVICE), bad address.
        """
        host, port = self.requested_address
        sock = self._create_socket(host)

        try:
            sock.bind((host, port))
            sock.listen(self.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind {self.protocol.name} listener to {format_address(self.requested_address)}: {e}")
            raise

        self._socket = sock
        self._running = True
        logger.info(f"{self.protocol.name} listener on {format_address(self.address)}")

    def serve_forever(self):
        """
        Accept until shutdown(). Binds first if bind() wasn't called.

            while running:
                [wait for a free slot]
                accept()            ← 1s timeout, loop to re-check running
                spawn thread: handler(conn, protocol)
        """
        if self._socket is None:
            self.bind()

        try:
            while self._running:
                if self._slots is not None and not self._slots.acquire(timeout=ACCEPT_POLL_INTERVAL):
                    continue

                try:
                    client_socket, client_address = self._socket.accept()
                except socket.timeout:
                    self._release_slot()
                    continue
                except OSError as e:
                    self._release_slot()
                    if not self._running:
                        break
                    logger.error(f"{self.protocol.name} accept error: {e}")
                    continue

                self._spawn(client_socket, client_address)
        finally:
            self._cleanup()

    def _spawn(self, client_socket: socket.socket, client_address: Tuple):
        logger.debug(f"{self.protocol.name} accepted {client_address[0]}:{client_address[1]}")

        try:
            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.buffer_size,
                idle_timeout=self.idle_timeout,
                max_request_size=self.max_request_size,
            )
            thread = threading.Thread(
                target=self._run_handler,
                args=(conn,),
                name=f"{self.protocol.value}-{conn.id}",
                daemon=True,
            )
            thread.start()
        except (OSError, RuntimeError) as e:
            logger.error(f"Could not start handler for {client_address[0]}: {e}")
            client_socket.close()
            self._release_slot()

    def _run_handler(self, conn: Connection):
        try:
            self.handler(conn, self.protocol)
        except Exception:
            logger.exception(f"[{conn.id}] Unhandled error in connection handler")
        finally:
            conn.close()
            self._release_slot()

    def _release_slot(self):
        if self._slots is not None:
            self._slots.release()

    def shutdown(self):
        """Stop accepting. Safe to call from any thread, more than once."""
        if self._running:
            logger.info(f"Shutting down {self.protocol.name} listener...")
        self._running = False

    def close(self):
        """Close the listening socket without serving (startup rollback)."""
        self._cleanup()

    def _cleanup(self):
        self._running = False
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        logger.info(f"{self.protocol.name} listener stopped")
