"""
=============================================================================
EDGESERVER CLI ENTRY POINT
=============================================================================

    # Production defaults: :80 + :443, certs/ and public/ in the cwd
    python -m edgeserver

    # Local run, no credentials needed, no redirects to the real domain
    python -m edgeserver --no-tls --no-redirect --plain 127.0.0.1:8080

    # Another domain, IPv6 listeners, JSON access log
    python -m edgeserver --domain example.com --plain [::]:80 \\
        --secure [::]:443 --log-format json

Settings come from EDGE_* environment variables first (see
EdgeConfig.from_env), then these flags on top.

Exit status is 1 when startup fails (bad config, missing payloads, bad
credentials, port unavailable).

=============================================================================
"""

import argparse
import logging
import sys

from . import __version__
from .config import EdgeConfig, LOG_FORMATS, LOG_LEVELS, parse_address
from .core import TLSMaterialError
from .resources import ResourceError
from .server import EdgeServer


logger = logging.getLogger("edgeserver")


def _address(value: str):
    try:
        return parse_address(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="edgeserver",
        description="HTTP/HTTPS edge server for a single-page site",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m edgeserver                                   # :80 and :443
  python -m edgeserver --no-tls --plain 127.0.0.1:8080   # local, plain only
  python -m edgeserver --domain example.com --log-level DEBUG
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # REDIRECTS AND ROUTES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--domain", "-d",
        dest="canonical_domain",
        help="Canonical apex domain (default: kingland.id)"
    )

    parser.add_argument(
        "--no-redirect",
        dest="enforce_canonical_redirect",
        action="store_const",
        const=False,
        help="Serve every host and scheme as-is, no canonical redirects"
    )

    parser.add_argument(
        "--invite-url",
        help="Target of /discord, /dc, /invite, /invites"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LISTENERS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--plain",
        dest="plain_address",
        type=_address,
        metavar="HOST:PORT",
        help="PLAIN listener address (default: 0.0.0.0:80)"
    )

    parser.add_argument(
        "--secure",
        dest="secure_address",
        type=_address,
        metavar="HOST:PORT",
        help="SECURE listener address (default: 0.0.0.0:443)"
    )

    parser.add_argument(
        "--no-tls",
        dest="enable_secure_listener",
        action="store_const",
        const=False,
        help="Run only the PLAIN listener; no credentials are loaded"
    )

    parser.add_argument(
        "--idle-timeout",
        type=float,
        metavar="SECONDS",
        help="Close connections idle this long (default: never)"
    )

    parser.add_argument(
        "--max-connections",
        type=int,
        metavar="N",
        help="Concurrent connections per listener (default: unbounded)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--cert",
        dest="cert_file",
        help="PEM certificate chain (default: certs/certificate.crt)"
    )

    parser.add_argument(
        "--key",
        dest="key_file",
        help="PEM PKCS8 private key (default: certs/private.key)"
    )

    parser.add_argument(
        "--public", "-p",
        dest="public_dir",
        help="Directory with index.html and favicons/ (default: public)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"edgeserver {__version__}"
    )

    return parser


def load_config(argv=None, environ=None) -> EdgeConfig:
    """Defaults, then EDGE_* environment, then CLI flags."""
    args = build_parser().parse_args(argv)
    config = EdgeConfig.from_env(environ)
    return config.with_overrides(**vars(args))


def main(argv=None) -> int:
    try:
        config = load_config(argv)
        server = EdgeServer(config)
        server.run()
    except (ValueError, ResourceError, TLSMaterialError, OSError) as e:
        if not logging.getLogger().handlers:
            logging.basicConfig(format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        logger.error(f"Startup failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
