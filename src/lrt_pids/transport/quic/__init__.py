"""
QUIC transport for PIDS exchanges.

QUIC provides encryption (TLS 1.3) and multiplexing natively, so each
transaction runs on its own lightweight stream of a single connection.

Architecture:
    QUIC Transport (TLS 1.3, self-signed certificates) -> Native QUIC streams
"""

from .connection import (
    PidsQuicProtocol,
    QuicConnection,
    QuicConnectionManager,
    QuicStream,
    QuicTransportError,
)
from .tls import certificate_fingerprint, generate_self_signed_certificate

__all__ = [
    "PidsQuicProtocol",
    "QuicConnection",
    "QuicConnectionManager",
    "QuicStream",
    "QuicTransportError",
    "certificate_fingerprint",
    "generate_self_signed_certificate",
]
