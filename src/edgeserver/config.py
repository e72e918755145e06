"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every knob the edge server has, in one frozen dataclass that is read once
at startup and handed to every component.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m edgeserver --domain example.com                  │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── EDGE_CANONICAL_DOMAIN=example.com python -m edgeserver     │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Behavior differences between a local run and production are ordinary
settings (enable_secure_listener, enforce_canonical_redirect), never a
separate build. A local run is just:

    python -m edgeserver --no-tls --no-redirect --plain 127.0.0.1:8080

=============================================================================
"""

import os
import logging
from dataclasses import dataclass, replace
from typing import Mapping, Optional, Tuple


Address = Tuple[str, int]

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_address(value: str) -> Address:
    """
    Parse a listening address.

        "0.0.0.0:80"  → ("0.0.0.0", 80)
        "[::]:443"    → ("::", 443)
        "8080"        → ("0.0.0.0", 8080)

    Raises:
        ValueError: Unparseable host or port.
    """
    value = value.strip()

    if value.startswith("["):
        host, sep, port = value[1:].partition("]:")
        if not sep:
            raise ValueError(f"Invalid address: {value!r} (expected [host]:port)")
    elif ":" in value:
        host, _, port = value.rpartition(":")
        if ":" in host:
            raise ValueError(f"Invalid address: {value!r} (wrap IPv6 hosts in brackets)")
    else:
        host, port = "0.0.0.0", value

    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"Invalid port in address {value!r}") from None

    return (host or "0.0.0.0", port_number)


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"Invalid boolean: {value!r}")


@dataclass(frozen=True)
class EdgeConfig:
    """
    Configuration for the edge server.

    Development:
        EdgeConfig(
            enable_secure_listener=False,
            enforce_canonical_redirect=False,
            plain_address=("127.0.0.1", 8080),
            log_level="DEBUG",
        )

    Production: the defaults.
    """

    # ─────────────────────────────────────────────────────────────────────
    # REDIRECT POLICY
    # ─────────────────────────────────────────────────────────────────────

    canonical_domain: str = "kingland.id"
    """Apex domain; the canonical host is "www." + this."""

    enforce_canonical_redirect: bool = True
    """Off: every request goes straight to routing, nothing is redirected."""

    # ─────────────────────────────────────────────────────────────────────
    # LISTENERS
    # ─────────────────────────────────────────────────────────────────────

    enable_secure_listener: bool = True
    """Off: only the PLAIN listener runs and no credentials are loaded."""

    plain_address: Address = ("0.0.0.0", 80)

    secure_address: Address = ("0.0.0.0", 443)

    backlog: int = 128

    buffer_size: int = 8192

    max_request_size: int = 1024 * 1024
    """Requests bigger than this close the connection, no response."""

    idle_timeout: Optional[float] = None
    """
    Seconds a connection may sit idle. None = no limit, a connection
    lives until the peer closes it.
    """

    max_connections: Optional[int] = None
    """
    Concurrent connections per listener. None = unbounded. At the limit
    the listener stops accepting until a slot frees up.
    """

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    cert_file: str = "certs/certificate.crt"
    """PEM certificate chain, leaf first."""

    key_file: str = "certs/private.key"
    """PEM PKCS8 private key; the first one in the file is used."""

    public_dir: str = "public"
    """Holds index.html and favicons/."""

    # ─────────────────────────────────────────────────────────────────────
    # ROUTES
    # ─────────────────────────────────────────────────────────────────────

    invite_url: str = "https://discord.gg/PEsARGFup7"

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING AND IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    log_format: str = "text"
    """'text' for humans, 'json' for log aggregators."""

    server_name: str = "edgeserver/1.0"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EdgeConfig":
        """
        Create configuration from environment variables.

            EDGE_CANONICAL_DOMAIN   apex domain (default: kingland.id)
            EDGE_ENFORCE_REDIRECT   true/false (default: true)
            EDGE_ENABLE_TLS         true/false (default: true)
            EDGE_PLAIN_ADDRESS      host:port (default: 0.0.0.0:80)
            EDGE_SECURE_ADDRESS     host:port (default: 0.0.0.0:443)
            EDGE_CERT_FILE          certificate chain path
            EDGE_KEY_FILE           private key path
            EDGE_PUBLIC_DIR         payload directory
            EDGE_INVITE_URL         invite redirect target
            EDGE_IDLE_TIMEOUT       seconds (default: none)
            EDGE_MAX_CONNECTIONS    per listener (default: none)
            EDGE_LOG_LEVEL          DEBUG/INFO/... (default: INFO)
            EDGE_LOG_FORMAT         text/json (default: text)

        Unset variables keep the defaults.

        Raises:
            ValueError: A variable is set but can't be parsed.
        """
        env = os.environ if environ is None else environ
        overrides = {}

        def read(name, field_name, convert=str):
            raw = env.get(name)
            if raw is None or raw == "":
                return
            try:
                overrides[field_name] = convert(raw)
            except ValueError as e:
                raise ValueError(f"{name}: {e}") from None

        read("EDGE_CANONICAL_DOMAIN", "canonical_domain")
        read("EDGE_ENFORCE_REDIRECT", "enforce_canonical_redirect", parse_bool)
        read("EDGE_ENABLE_TLS", "enable_secure_listener", parse_bool)
        read("EDGE_PLAIN_ADDRESS", "plain_address", parse_address)
        read("EDGE_SECURE_ADDRESS", "secure_address", parse_address)
        read("EDGE_CERT_FILE", "cert_file")
        read("EDGE_KEY_FILE", "key_file")
        read("EDGE_PUBLIC_DIR", "public_dir")
        read("EDGE_INVITE_URL", "invite_url")
        read("EDGE_IDLE_TIMEOUT", "idle_timeout", float)
        read("EDGE_MAX_CONNECTIONS", "max_connections", int)
        read("EDGE_LOG_LEVEL", "log_level", str.upper)
        read("EDGE_LOG_FORMAT", "log_format", str.lower)

        return cls(**overrides)

    def with_overrides(self, **changes) -> "EdgeConfig":
        """Copy with some fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @property
    def canonical_host(self) -> str:
        return f"www.{self.canonical_domain}"

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level.upper())

    def validate(self) -> None:
        """
        Validate eagerly at startup.

        Raises:
            ValueError: On the first invalid value.
        """
        if not self.canonical_domain or "/" in self.canonical_domain:
            raise ValueError(f"Invalid canonical_domain: {self.canonical_domain!r}")

        addresses = [("plain_address", self.plain_address)]
        if self.enable_secure_listener:
            addresses.append(("secure_address", self.secure_address))

        for name, (host, port) in addresses:
            # 0 lets the OS pick a free port
            if not 0 <= port < 65536:
                raise ValueError(f"Invalid {name} port: {port}. Must be 0-65535.")
            if not host:
                raise ValueError(f"{name} has an empty host")

        if (self.enable_secure_listener
                and self.plain_address == self.secure_address
                and self.plain_address[1] != 0):
            raise ValueError("plain_address and secure_address must differ")

        if not self.invite_url:
            raise ValueError("invite_url must not be empty")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.max_request_size < self.buffer_size:
            raise ValueError("max_request_size must be >= buffer_size")

        if self.idle_timeout is not None and self.idle_timeout <= 0:
            raise ValueError("idle_timeout must be > 0")

        if self.max_connections is not None and self.max_connections < 1:
            raise ValueError("max_connections must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level!r}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log_format: {self.log_format!r}")
