"""
Core networking: listening sockets, per-connection I/O and TLS termination.
"""

from .acceptor import Acceptor, format_address
from .connection import Connection, ConnectionState
from .tls import TLSMaterial, TLSMaterialError, TLSTerminator, load_tls_material

__all__ = [
    "Acceptor",
    "format_address",
    "Connection",
    "ConnectionState",
    "TLSMaterial",
    "TLSMaterialError",
    "TLSTerminator",
    "load_tls_material",
]
