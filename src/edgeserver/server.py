"""
=============================================================================
EDGE SERVER
=============================================================================

Ties the pieces together: two listeners, one TLS terminator, one request
pipeline.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          EdgeServer                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ┌────────────────────┐              ┌────────────────────┐        │
    │   │ Acceptor  PLAIN :80│              │ Acceptor SECURE:443│        │
    │   └─────────┬──────────┘              └─────────┬──────────┘        │
    │             │                                   │                    │
    │             │                         ┌─────────▼──────────┐        │
    │             │                         │   TLSTerminator    │        │
    │             │                         │   (handshake)      │        │
    │             │                         └─────────┬──────────┘        │
    │             └─────────────┬─────────────────────┘                    │
    │                           ▼                                          │
    │            Connection.read_request() → RequestParser                 │
    │                           │                                          │
    │           ┌───────────────▼────────────────────────────┐             │
    │           │ AccessLog → CanonicalRedirect → Dispatcher │             │
    │           └───────────────┬────────────────────────────┘             │
    │                           ▼                                          │
    │                 Connection.send_response()                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
STARTUP ORDER
=============================================================================

    1. validate config        ValueError
    2. load payloads          ResourceError
    3. load TLS credentials   TLSMaterialError
    4. bind listeners         OSError

Everything that can fail because of a bad file fails BEFORE any port is
bound. After step 4 nothing is fatal: errors are per connection, logged,
and the connection is dropped without a response.

=============================================================================
THREADS
=============================================================================

    main thread ──join──► PLAIN acceptor thread  ──► one thread per conn
                └─join──► SECURE acceptor thread ──► one thread per conn

The main thread just waits on the acceptor threads. SIGINT/SIGTERM call
shutdown(), the acceptors notice within a second, the joins return.

=============================================================================
"""

import ssl
import math
import signal
import logging
import threading
from typing import Dict, List, Optional

from .config import EdgeConfig
from .core import Acceptor, Connection, TLSTerminator, format_address
from .handlers import SiteDispatcher
from .http import HTTPParseError, HTTPRequest, HTTPResponse, RequestParser
from .middleware import AccessLogMiddleware, MiddlewarePipeline, NextHandler
from .protocol import Protocol
from .redirect import CanonicalRedirectMiddleware, RedirectPolicy
from .resources import ResourceStore


logger = logging.getLogger(__name__)


class EdgeServer:
    """
    The edge server.

    Usage:
        server = EdgeServer(EdgeConfig.from_env())
        server.run()       # Blocks until SIGINT/SIGTERM

    Embedded (tests):
        server = EdgeServer(config, resources=store, tls=terminator)
        server.start()     # Returns once both listeners are bound
        ...
        server.stop()
    """

    def __init__(
        self,
        config: Optional[EdgeConfig] = None,
        resources: Optional[ResourceStore] = None,
        tls: Optional[TLSTerminator] = None,
    ):
        self.config = config or EdgeConfig()
        self.config.validate()

        self.resources = resources
        self.tls = tls

        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[NextHandler] = None

        self._acceptors: Dict[Protocol, Acceptor] = {}
        self._threads: List[threading.Thread] = []
        self._original_handlers: dict = {}

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return any(acceptor.is_running for acceptor in self._acceptors.values())

    @property
    def plain_address(self):
        """Bound PLAIN (host, port), or None before start()."""
        acceptor = self._acceptors.get(Protocol.PLAIN)
        return acceptor.address if acceptor else None

    @property
    def secure_address(self):
        """Bound SECURE (host, port), or None before start() or with TLS off."""
        acceptor = self._acceptors.get(Protocol.SECURE)
        return acceptor.address if acceptor else None

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def start(self):
        """
        Load everything, bind both listeners, start the acceptor threads.

        Returns once the listeners are bound; does not block.

        Raises:
            ResourceError, TLSMaterialError, OSError: Startup failures.
        """
        self._setup_logging()

        if self.resources is None:
            self.resources = ResourceStore.from_directory(self.config.public_dir)

        if self.config.enable_secure_listener and self.tls is None:
            self.tls = TLSTerminator.from_files(self.config.cert_file, self.config.key_file)

        self._handler = self._build_pipeline()

        listeners = [(Protocol.PLAIN, self.config.plain_address)]
        if self.config.enable_secure_listener:
            listeners.append((Protocol.SECURE, self.config.secure_address))
        else:
            logger.info("Secure listener disabled")

        for protocol, address in listeners:
            acceptor = Acceptor(
                protocol=protocol,
                address=address,
                handler=self._serve_connection,
                backlog=self.config.backlog,
                buffer_size=self.config.buffer_size,
                max_request_size=self.config.max_request_size,
                idle_timeout=self.config.idle_timeout,
                max_connections=self.config.max_connections,
            )
            try:
                acceptor.bind()
            except OSError:
                for bound in self._acceptors.values():
                    bound.close()
                self._acceptors.clear()
                raise
            self._acceptors[protocol] = acceptor

        for protocol, acceptor in self._acceptors.items():
            thread = threading.Thread(
                target=acceptor.serve_forever,
                name=f"acceptor-{protocol.value}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

        logger.info(
            f"{self.config.server_name} serving {self.config.canonical_host} "
            f"(redirects {'on' if self.config.enforce_canonical_redirect else 'off'})"
        )

    def run(self):
        """Start and block until shutdown (Ctrl+C or SIGTERM)."""
        self.start()
        self._setup_signals()
        try:
            for thread in self._threads:
                thread.join()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
            self.shutdown()
            self.join()
        finally:
            self._restore_signals()
            logger.info("Server stopped")

    def shutdown(self):
        """Ask every listener to stop accepting. Returns immediately."""
        for acceptor in self._acceptors.values():
            acceptor.shutdown()

    def join(self, timeout: Optional[float] = None):
        for thread in self._threads:
            thread.join(timeout)

    def stop(self, timeout: Optional[float] = 5.0):
        """shutdown() and wait for the acceptor threads to finish."""
        self.shutdown()
        self.join(timeout)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Run one parsed request through the pipeline, no sockets involved.

        Builds the pipeline on first use, loading payloads if needed.
        """
        if self._handler is None:
            if self.resources is None:
                self.resources = ResourceStore.from_directory(self.config.public_dir)
            self._handler = self._build_pipeline()
        return self._handler(request)

    def _build_pipeline(self) -> NextHandler:
        policy = RedirectPolicy(
            self.config.canonical_domain,
            enforce=self.config.enforce_canonical_redirect,
        )
        dispatcher = SiteDispatcher(self.resources, invite_url=self.config.invite_url)

        self._middleware = MiddlewarePipeline()
        self._middleware.add(AccessLogMiddleware(log_format=self.config.log_format))
        self._middleware.add(CanonicalRedirectMiddleware(policy))
        return self._middleware.wrap(dispatcher)

    def _setup_logging(self):
        level = self.config.log_level_number

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("edgeserver").setLevel(level)

    def _setup_signals(self):
        """SIGINT/SIGTERM → shutdown(). Only possible from the main thread."""
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _serve_connection(self, conn: Connection, protocol: Protocol):
        """
        Serve one connection (runs in its own thread).

            [SECURE] TLS handshake
            loop:
                read_request()  → None: peer closed, done
                parse           → HTTPParseError: drop, no response
                pipeline        → HTTPResponse
                send
                not keep-alive  → done

        Never raises; the acceptor closes the connection afterwards.
        """
        if protocol.is_secure:
            try:
                conn.start_tls(self.tls)
            except (ssl.SSLError, OSError) as e:
                logger.debug(f"[{conn.id}] TLS handshake with {conn.client_ip} failed: {e}")
                return

        while True:
            try:
                raw_request = conn.read_request()
            except ValueError as e:
                logger.warning(f"[{conn.id}] Dropping connection from {conn.client_ip}: {e}")
                return
            except OSError as e:
                logger.debug(f"[{conn.id}] Read failed: {e}")
                return

            if raw_request is None:
                return

            try:
                request = self._parser.parse(raw_request, conn.address, protocol)
            except HTTPParseError as e:
                logger.warning(f"[{conn.id}] Malformed request from {conn.client_ip}: {e}")
                return

            try:
                response = self.handle(request)
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                return

            keep_alive = request.is_keep_alive
            self._set_connection_headers(response, keep_alive)

            data = response.to_bytes(
                self.config.server_name,
                include_body=request.method != "HEAD",
            )
            if not conn.send_response(data):
                return

            if not keep_alive:
                return

            conn.set_keep_alive()

    def _set_connection_headers(self, response: HTTPResponse, keep_alive: bool):
        if keep_alive:
            response.headers.setdefault("Connection", "keep-alive")
            if self.config.idle_timeout is not None:
                response.headers.setdefault("Keep-Alive", f"timeout={max(1, math.ceil(self.config.idle_timeout))}")
        else:
            response.headers["Connection"] = "close"

    def __repr__(self) -> str:
        addresses = ", ".join(
            f"{protocol.name}={format_address(acceptor.address)}"
            for protocol, acceptor in self._acceptors.items()
        )
        return f"EdgeServer({self.config.canonical_host}, {addresses or 'not started'})"

