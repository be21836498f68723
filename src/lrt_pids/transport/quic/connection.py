"""
QUIC connection implementation for PIDS traffic.

QUIC provides encryption (TLS 1.3), reliable ordered streams and native
multiplexing, which is everything the exchange layer expects from its
transport. Opening a stream is a single frame, so every transaction gets a
stream of its own.

Connection flow:
    1. QUIC handshake (includes TLS 1.3 with the PIDS ALPN)
    2. Ready for streams

References:
    - aioquic documentation: https://aioquic.readthedocs.io/
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import ssl
import tempfile
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from aioquic.asyncio import QuicConnectionProtocol
from aioquic.asyncio import connect as quic_connect
from aioquic.asyncio import serve as quic_serve
from aioquic.asyncio.server import QuicServer
from aioquic.quic.configuration import QuicConfiguration
from aioquic.quic.events import (
    ConnectionTerminated,
    HandshakeCompleted,
    QuicEvent,
    StreamDataReceived,
    StreamReset,
)

from lrt_pids.protocol.errors import TransportError

from .tls import certificate_fingerprint, generate_self_signed_certificate, write_certificate_files

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT_SECONDS: float = 60.0
"""Connection idle timeout. Governs liveness when the exchange sets no timeout."""


class QuicTransportError(TransportError):
    """Raised when QUIC connection or stream operations fail."""


@dataclass(slots=True)
class QuicStream:
    """
    A single QUIC stream for one exchange.

    Flow control is per stream, so a slow exchange never blocks another.
    """

    _protocol: QuicConnectionProtocol
    _stream_id: int
    _read_buffer: asyncio.Queue[bytes] = field(default_factory=lambda: asyncio.Queue())
    _pending: bytes = b""
    _closed: bool = False
    _write_closed: bool = False
    _read_closed: bool = False
    _reset: bool = False
    _remote_finished: bool = False
    _released: bool = False
    _on_finished: Callable[[int], None] | None = None

    @property
    def stream_id(self) -> int:
        """Stream identifier."""
        return self._stream_id

    async def read(self, n: int = -1) -> bytes:
        """
        Read data from the stream.

        Blocks until data is available. Returns empty bytes when the peer
        has closed their write side (half-close).

        Args:
            n: Maximum bytes to return. -1 returns the next received chunk.

        Returns:
            Received data bytes, or empty bytes when stream is half-closed.

        Raises:
            QuicTransportError: If the peer reset the stream.
        """
        if not self._pending:
            if self._read_closed:
                return b""

            data = await self._read_buffer.get()
            if data == b"":
                self._read_closed = True
                if self._reset:
                    raise QuicTransportError(f"Stream {self._stream_id} was reset by peer")
                return b""
            self._pending = data

        if n < 0:
            n = len(self._pending)
        result, self._pending = self._pending[:n], self._pending[n:]
        return result

    async def write(self, data: bytes) -> None:
        """
        Write data to the stream.

        Args:
            data: Bytes to send.

        Raises:
            QuicTransportError: If write side is closed or aioquic rejects the write.
        """
        if self._write_closed:
            raise QuicTransportError(f"Stream {self._stream_id} write side is closed")

        # aioquic raises if data is sent after FIN.
        #
        # Checking its stream state first gives a clearer error.
        quic = self._protocol._quic
        stream = quic._streams.get(self._stream_id)
        if stream is not None and getattr(stream, "send_fin", False):
            self._write_closed = True
            raise QuicTransportError(
                f"Stream {self._stream_id} write side is closed (aioquic FIN already sent)"
            )

        try:
            quic.send_stream_data(self._stream_id, data)
            self._protocol.transmit()
        except Exception as e:
            self._write_closed = True
            raise QuicTransportError(f"Write failed on stream {self._stream_id}: {e}") from e

    async def finish_write(self) -> None:
        """
        Signal end of writing (half-close).

        Sends FIN for our write direction while keeping read side open.

        Raises:
            QuicTransportError: If aioquic rejects the FIN.
        """
        if self._write_closed:
            return

        self._write_closed = True
        try:
            self._protocol._quic.send_stream_data(self._stream_id, b"", end_stream=True)
            self._protocol.transmit()
        except Exception as e:
            raise QuicTransportError(f"Close failed on stream {self._stream_id}: {e}") from e
        finally:
            self._release_if_finished()

    async def close(self) -> None:
        """Close the stream gracefully (both directions)."""
        if self._closed:
            return

        self._closed = True
        self._read_closed = True
        try:
            await self.finish_write()
        finally:
            self._release_if_finished()

    def _receive_data(self, data: bytes) -> None:
        """Internal: called when data arrives for this stream."""
        self._read_buffer.put_nowait(data)

    def _receive_end(self, reset: bool = False) -> None:
        """Internal: called when stream ends."""
        self._reset = self._reset or reset
        self._remote_finished = True
        self._read_buffer.put_nowait(b"")
        self._release_if_finished()

    def _release_if_finished(self) -> None:
        """Internal: hand the stream back once neither side will use it again."""
        if self._released or self._on_finished is None:
            return
        if self._reset or (self._write_closed and self._remote_finished):
            self._released = True
            self._on_finished(self._stream_id)


@dataclass(slots=True)
class QuicConnection:
    """
    A QUIC connection to a peer.

    Wraps aioquic's protocol and provides the Connection interface.
    """

    _protocol: QuicConnectionProtocol
    _remote_addr: str
    _streams: dict[int, QuicStream] = field(default_factory=dict)
    _incoming_streams: asyncio.Queue[QuicStream | None] = field(
        default_factory=lambda: asyncio.Queue()
    )
    _closed: bool = False
    _on_closed: Callable[[QuicConnection], None] | None = None

    @property
    def remote_addr(self) -> str:
        """Remote address as "host:port"."""
        return self._remote_addr

    @property
    def is_closed(self) -> bool:
        """Whether the connection has been closed by either side."""
        return self._closed

    async def open_stream(self) -> QuicStream:
        """
        Open a new bidirectional stream.

        Returns:
            Open stream ready for use.

        Raises:
            QuicTransportError: If the connection is closed.
        """
        if self._closed:
            raise QuicTransportError("Connection is closed")

        stream_id = self._protocol._quic.get_next_available_stream_id()

        # Reserve the id.
        #
        # aioquic only advances the next id once the stream exists, so two
        # opens before the first write would otherwise share a stream.
        self._protocol._quic.send_stream_data(stream_id, b"")

        return self._track(stream_id)

    async def accept_stream(self) -> QuicStream:
        """
        Accept an incoming stream from the peer.

        Blocks until a new stream is opened by the remote side.

        Raises:
            QuicTransportError: If the connection is or becomes closed.
        """
        if self._closed:
            raise QuicTransportError("Connection is closed")

        stream = await self._incoming_streams.get()
        if stream is None:
            raise QuicTransportError("Connection is closed")
        return stream

    async def close(self) -> None:
        """Close the connection gracefully."""
        if self._closed:
            return

        self._closed = True

        for stream in list(self._streams.values()):
            try:
                await stream.close()
            except QuicTransportError as e:
                logger.debug("Error closing stream %d: %s", stream.stream_id, e)

        self._protocol._quic.close()
        self._protocol.transmit()
        self._incoming_streams.put_nowait(None)
        self._notify_closed()

    def _track(self, stream_id: int) -> QuicStream:
        """Internal: register a stream until both of its directions finish."""
        stream = QuicStream(
            _protocol=self._protocol,
            _stream_id=stream_id,
            _on_finished=self._release_stream,
        )
        self._streams[stream_id] = stream
        return stream

    def _release_stream(self, stream_id: int) -> None:
        """Internal: forget a finished stream."""
        self._streams.pop(stream_id, None)

    def _notify_closed(self) -> None:
        """Internal: tell the owner, once, that this connection is gone."""
        callback, self._on_closed = self._on_closed, None
        if callback is not None:
            callback(self)

    def _handle_event(self, event: QuicEvent) -> None:
        """Internal: handle QUIC events from aioquic."""
        if isinstance(event, StreamDataReceived):
            stream_id = event.stream_id

            if stream_id not in self._streams:
                # New incoming stream.
                self._incoming_streams.put_nowait(self._track(stream_id))

            if event.data:
                self._streams[stream_id]._receive_data(event.data)
            if event.end_stream:
                self._streams[stream_id]._receive_end()

        elif isinstance(event, StreamReset):
            if event.stream_id in self._streams:
                self._streams[event.stream_id]._receive_end(reset=True)

        elif isinstance(event, ConnectionTerminated):
            logger.debug(
                "Connection to %s terminated: %s", self._remote_addr, event.reason_phrase
            )
            self._closed = True
            # Wake every waiting reader and the accept loop.
            for stream in list(self._streams.values()):
                stream._receive_end(reset=True)
            self._incoming_streams.put_nowait(None)
            self._notify_closed()


class PidsQuicProtocol(QuicConnectionProtocol):
    """
    QUIC protocol that routes aioquic events to a QuicConnection.

    Server-side instances receive an `_on_handshake` callback from the
    listener's protocol factory.
    """

    _on_handshake: Callable[[PidsQuicProtocol], None] | None = None

    def __init__(self, *args, **kwargs) -> None:
        """Initialize the protocol handler."""
        super().__init__(*args, **kwargs)
        self.connection: QuicConnection | None = None
        self.handshake_complete = asyncio.Event()

    def quic_event_received(self, event: QuicEvent) -> None:
        """Handle QUIC events."""
        if isinstance(event, HandshakeCompleted):
            self.handshake_complete.set()

            # The connection must exist before the first stream event arrives.
            if self._on_handshake is not None and self.connection is None:
                self._on_handshake(self)

        if self.connection:
            self.connection._handle_event(event)


def _peer_address(protocol: QuicConnectionProtocol) -> str:
    """Best-effort "host:port" of the peer of a server-side connection."""
    paths = getattr(protocol._quic, "_network_paths", None)
    if paths:
        host, port = paths[0].addr[:2]
        return f"{host}:{port}"
    return "unknown"


@dataclass(slots=True)
class QuicConnectionManager:
    """
    Creates outbound and accepts inbound QUIC connections.

    Usage:
        manager = await QuicConnectionManager.create(alpn="lrt-jabodebek-2306214510")
        conn = await manager.connect("127.0.0.1", 4510)
        stream = await conn.open_stream()
    """

    _alpn: str
    _cert_path: Path
    _key_path: Path
    _temp_dir: Path
    _idle_timeout: float = DEFAULT_IDLE_TIMEOUT_SECONDS
    _key_log: IO[str] | None = None
    _connections: list[QuicConnection] = field(default_factory=list)
    _context_managers: list = field(default_factory=list)
    _server: QuicServer | None = None
    _tasks: set[asyncio.Task[None]] = field(default_factory=set)
    _shutdown: asyncio.Event = field(default_factory=asyncio.Event)

    @classmethod
    async def create(
        cls,
        alpn: str,
        key_log_path: Path | None = None,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
    ) -> QuicConnectionManager:
        """
        Create a QuicConnectionManager with a fresh self-signed certificate.

        Args:
            alpn: Application protocol both peers must offer.
            key_log_path: File to append TLS secrets to, for traffic inspection.
            idle_timeout: Seconds of silence before a connection is dropped.

        Returns:
            Initialized manager.
        """
        private_pem, cert_pem, cert = generate_self_signed_certificate()
        logger.debug("Generated certificate %s", certificate_fingerprint(cert))

        temp_dir = Path(tempfile.mkdtemp(prefix="lrt-pids-"))
        cert_path, key_path = write_certificate_files(temp_dir, private_pem, cert_pem)

        key_log = key_log_path.open("a") if key_log_path is not None else None

        return cls(
            _alpn=alpn,
            _cert_path=cert_path,
            _key_path=key_path,
            _temp_dir=temp_dir,
            _idle_timeout=idle_timeout,
            _key_log=key_log,
        )

    def _configuration(self, *, is_client: bool) -> QuicConfiguration:
        """Build an aioquic configuration for one side of a connection."""
        config = QuicConfiguration(
            alpn_protocols=[self._alpn],
            is_client=is_client,
            # Self-signed certificates: no CA to verify against.
            verify_mode=ssl.CERT_NONE,
            idle_timeout=self._idle_timeout,
            secrets_log_file=self._key_log,
        )
        config.load_cert_chain(str(self._cert_path), str(self._key_path))
        return config

    async def connect(self, host: str, port: int) -> QuicConnection:
        """
        Connect to a display.

        Args:
            host: Display address.
            port: Display UDP port.

        Returns:
            Established connection.

        Raises:
            QuicTransportError: If connection fails.
        """
        try:
            # The context manager is entered by hand and kept so the
            # connection outlives this call. close() exits it.
            cm = quic_connect(
                host,
                port,
                configuration=self._configuration(is_client=True),
                create_protocol=PidsQuicProtocol,
            )
            base_protocol = await cm.__aenter__()
            self._context_managers.append(cm)
        except OSError as e:
            raise QuicTransportError(f"Failed to connect to {host}:{port}: {e}") from e

        protocol: PidsQuicProtocol = base_protocol  # type: ignore[assignment]
        await protocol.handshake_complete.wait()

        conn = QuicConnection(
            _protocol=protocol,
            _remote_addr=f"{host}:{port}",
            _on_closed=self._release_connection,
        )
        protocol.connection = conn
        self._connections.append(conn)
        return conn

    async def listen(
        self,
        host: str,
        port: int,
        on_connection: Callable[[QuicConnection], Awaitable[None]],
    ) -> None:
        """
        Listen for incoming QUIC connections until close() is called.

        Each accepted connection is handed to `on_connection` in a task of
        its own, once its handshake completes.

        Args:
            host: Local address to bind.
            port: Local UDP port.
            on_connection: Async callback invoked for each accepted connection.
        """

        def handle_handshake(protocol_instance: PidsQuicProtocol) -> None:
            conn = QuicConnection(
                _protocol=protocol_instance,
                _remote_addr=_peer_address(protocol_instance),
                _on_closed=self._release_connection,
            )
            protocol_instance.connection = conn
            self._connections.append(conn)

            # Run the callback in its own task so event processing never blocks.
            task = asyncio.ensure_future(on_connection(conn))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        def create_protocol(*args, **kwargs) -> PidsQuicProtocol:
            protocol = PidsQuicProtocol(*args, **kwargs)
            protocol._on_handshake = handle_handshake
            return protocol

        self._server = await quic_serve(
            host,
            port,
            configuration=self._configuration(is_client=False),
            create_protocol=create_protocol,
        )
        logger.info("Listening for QUIC connections on %s:%d", host, port)

        await self._shutdown.wait()

    async def close(self) -> None:
        """Close every connection, stop listening, and remove certificate files."""
        for conn in list(self._connections):
            await conn.close()
        self._connections.clear()

        for cm in reversed(self._context_managers):
            await cm.__aexit__(None, None, None)
        self._context_managers.clear()

        for task in list(self._tasks):
            task.cancel()

        if self._server is not None:
            self._server.close()
            self._server = None

        if self._key_log is not None:
            self._key_log.close()
            self._key_log = None

        shutil.rmtree(self._temp_dir, ignore_errors=True)
        self._shutdown.set()

    def _release_connection(self, conn: QuicConnection) -> None:
        """Forget a connection once it is closed by either side."""
        self._connections = [c for c in self._connections if c is not conn]
