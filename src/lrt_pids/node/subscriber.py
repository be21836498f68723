"""
PIDS display subscriber.

Accepts connections from publishers and serves every stream they open:

    listen -> one task per connection -> one task per stream -> respond

Streams share no state, so they are served fully concurrently. A failure on
one stream is logged and confined to that stream's task; the accept loops
keep running.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from lrt_pids.protocol.announcements import Announcer, log_announcement
from lrt_pids.protocol.errors import TransportError
from lrt_pids.protocol.exchange import respond
from lrt_pids.transport.quic import QuicConnectionManager
from lrt_pids.transport.types import Connection, Stream

from .config import SubscriberConfig

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Subscriber:
    """Serves PIDS exchanges on accepted connections."""

    config: SubscriberConfig
    """Listening address and protocol settings."""

    announce: Announcer = log_announcement
    """Receives every announcement the display should show."""

    _stream_tasks: set[asyncio.Task[int]] = field(default_factory=set)
    _manager: QuicConnectionManager | None = None

    async def handle_stream(self, stream: Stream) -> int:
        """
        Serve one stream, then close it.

        Returns:
            Number of acknowledgments sent on the stream.
        """
        logger.debug("Accepted stream %d", stream.stream_id)
        try:
            return await respond(stream, profile=self.config.profile, announce=self.announce)
        finally:
            try:
                await stream.close()
            except (OSError, TransportError) as e:
                logger.debug("Error closing stream %d: %s", stream.stream_id, e)

    async def handle_connection(self, connection: Connection) -> None:
        """
        Accept streams on a connection until it closes.

        Each stream is served in a task of its own.
        """
        logger.info("Receiving connection from %s", connection.remote_addr)

        while True:
            try:
                stream = await connection.accept_stream()
            except TransportError as e:
                logger.info("Connection from %s ended: %s", connection.remote_addr, e)
                return

            task = asyncio.create_task(self.handle_stream(stream))
            self._stream_tasks.add(task)
            task.add_done_callback(self._stream_finished)

    def _stream_finished(self, task: asyncio.Task[int]) -> None:
        """Drop a finished stream task and log any error it raised."""
        self._stream_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Stream handler failed: %r", error)

    async def serve(self) -> None:
        """Listen on the configured address until stopped."""
        self._manager = await QuicConnectionManager.create(
            alpn=self.config.alpn,
            key_log_path=self.config.key_log_path,
            idle_timeout=self.config.idle_timeout,
        )
        try:
            await self._manager.listen(self.config.host, self.config.port, self.handle_connection)
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop listening and cancel in-flight streams."""
        for task in list(self._stream_tasks):
            task.cancel()

        if self._manager is not None:
            manager, self._manager = self._manager, None
            await manager.close()
