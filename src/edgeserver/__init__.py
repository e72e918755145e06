"""
=============================================================================
EDGESERVER - Dual-Listener HTTP/HTTPS Edge for a Single-Page Site
=============================================================================

Serves one landing page and its favicons directly off raw sockets, on
port 80 and (with TLS terminated in-process) port 443, and pushes every
visitor onto the canonical https://www.<domain>/ URL.

=============================================================================
WHAT A REQUEST SEES
=============================================================================

    http://kingland.id/dc
        │
        ▼  301  (canonical redirect: apex → www, same scheme)
    http://www.kingland.id/dc
        │
        ▼  301  (canonical redirect: plain → secure)
    https://www.kingland.id/dc
        │
        ▼  301  (route table: invite path)
    https://discord.gg/PEsARGFup7

    https://www.kingland.id/anything-else   → 200 landing page

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    edgeserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m edgeserver)
    ├── server.py            # EdgeServer: wires listeners and pipeline
    ├── config.py            # EdgeConfig dataclass
    ├── protocol.py          # PLAIN / SECURE
    ├── redirect.py          # Canonical redirect policy + middleware
    ├── resources.py         # Landing page and favicon payloads
    ├── core/
    │   ├── acceptor.py      # Listening socket, thread per connection
    │   ├── connection.py    # Buffered request framing
    │   └── tls.py           # Credential loading, TLS handshake
    ├── http/
    │   ├── request.py       # Request parsing
    │   ├── response.py      # Response building
    │   ├── status_codes.py  # Status enum
    │   └── mime_types.py    # Content types
    ├── middleware/
    │   ├── base.py          # Middleware chain
    │   └── logging.py       # Access log
    └── handlers/
        ├── favicon.py       # ?t= variant selection
        └── site.py          # Fixed route table

=============================================================================
QUICK START
=============================================================================

    from edgeserver import EdgeServer, EdgeConfig

    config = EdgeConfig(
        canonical_domain="example.com",
        cert_file="/etc/ssl/example.com/fullchain.pem",
        key_file="/etc/ssl/example.com/privkey.pem",
    )
    EdgeServer(config).run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import EdgeServer
from .config import EdgeConfig
from .protocol import Protocol

__all__ = ["EdgeServer", "EdgeConfig", "Protocol", "__version__"]
