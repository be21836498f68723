"""
Transport layer for PIDS exchanges.

The exchange layer only needs the Stream and Connection interfaces from
`types`. The QUIC implementation in `quic` provides them over aioquic.
"""

from .quic import QuicConnection, QuicConnectionManager, QuicStream, QuicTransportError
from .types import Connection, Stream

__all__ = [
    "Connection",
    "QuicConnection",
    "QuicConnectionManager",
    "QuicStream",
    "QuicTransportError",
    "Stream",
]
