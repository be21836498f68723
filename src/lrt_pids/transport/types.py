"""
Abstract interfaces for connections and streams.

The exchange layer depends only on these Protocols. Any secure, ordered,
reliable and multiplexed transport that offers them can carry PIDS traffic;
the QUIC implementation in this package is one such transport.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Stream(Protocol):
    """
    A multiplexed stream carrying one request/acknowledgment exchange.

    Example usage:
        stream = await connection.open_stream()
        await stream.write(encode_packet(request))
        response_bytes = await stream.read()
        await stream.close()
    """

    @property
    def stream_id(self) -> int:
        """Transport-assigned stream identifier."""
        ...

    async def read(self, n: int = -1) -> bytes:
        """
        Read data from the stream.

        Args:
            n: Maximum bytes to read. -1 means whatever is available.

        Returns:
            Read data. Empty bytes indicates the peer finished writing.

        Raises:
            TransportError: If the stream was reset or the connection failed.
        """
        ...

    async def write(self, data: bytes) -> None:
        """
        Write all of `data` to the stream.

        Raises:
            TransportError: If the stream was closed or the connection failed.
        """
        ...

    async def close(self) -> None:
        """Close the stream gracefully."""
        ...


@runtime_checkable
class Connection(Protocol):
    """A secure, multiplexed connection to a peer."""

    @property
    def remote_addr(self) -> str:
        """Remote address as "host:port"."""
        ...

    async def open_stream(self) -> Stream:
        """Open a new outbound stream."""
        ...

    async def accept_stream(self) -> Stream:
        """Wait for the peer to open a stream."""
        ...

    async def close(self) -> None:
        """Close the connection and all of its streams."""
        ...
