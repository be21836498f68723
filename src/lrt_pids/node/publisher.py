"""
Station-control publisher.

Connects to one display and sends each train event as its own transaction.
A failed transaction is reported and the remaining events are still sent:
events are independent, and nothing is retried at this layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from lrt_pids.protocol.errors import PidsError
from lrt_pids.protocol.exchange import TransactionClient
from lrt_pids.protocol.packet import PacketFlag, PidsPacket
from lrt_pids.transport.quic import QuicConnectionManager
from lrt_pids.transport.types import Connection

from .config import PublisherConfig

logger = logging.getLogger(__name__)

DEFAULT_TRAIN_NUMBER = 42
DEFAULT_DESTINATION = "Harjamukti"


def default_events(
    destination: str = DEFAULT_DESTINATION,
    train_number: int = DEFAULT_TRAIN_NUMBER,
) -> list[PidsPacket]:
    """The arrival then departure of one train, as transactions 1 and 2."""
    return [
        PidsPacket.from_flags(1, PacketFlag.TRAIN_ARRIVING, train_number, destination),
        PidsPacket.from_flags(2, PacketFlag.TRAIN_DEPARTING, train_number, destination),
    ]


@dataclass(slots=True)
class TransactionOutcome:
    """Result of one transaction: the acknowledgment, or the error that replaced it."""

    request: PidsPacket
    ack: PidsPacket | None = None
    error: PidsError | None = None

    @property
    def ok(self) -> bool:
        """Whether the request was acknowledged."""
        return self.ack is not None


@dataclass(slots=True)
class Publisher:
    """Sends train events to a display."""

    config: PublisherConfig
    outcomes: list[TransactionOutcome] = field(default_factory=list)

    async def publish(
        self,
        connection: Connection,
        events: list[PidsPacket],
    ) -> list[TransactionOutcome]:
        """
        Send events one at a time over an established connection.

        Args:
            connection: Connection to the display.
            events: Requests to send, in order.

        Returns:
            One outcome per event.
        """
        client = TransactionClient(
            connection=connection,
            profile=self.config.profile,
            timeout=self.config.exchange_timeout,
        )

        outcomes: list[TransactionOutcome] = []
        for event in events:
            logger.info(
                "Sending transaction %s (train %s to %s)",
                event.transaction_id,
                event.train_number,
                event.destination,
            )
            try:
                ack = await client.send(event)
            except PidsError as e:
                logger.error("Transaction %s failed: %r", event.transaction_id, e)
                outcomes.append(TransactionOutcome(request=event, error=e))
                continue

            logger.info(
                "Received ACK for transaction %s (ack id %s)",
                event.transaction_id,
                ack.transaction_id,
            )
            outcomes.append(TransactionOutcome(request=event, ack=ack))

        self.outcomes.extend(outcomes)
        return outcomes

    async def run(self, events: list[PidsPacket]) -> list[TransactionOutcome]:
        """
        Connect to the configured display, publish the events, and disconnect.

        Raises:
            TransportError: If the connection cannot be established.
        """
        manager = await QuicConnectionManager.create(
            alpn=self.config.alpn,
            key_log_path=self.config.key_log_path,
            idle_timeout=self.config.idle_timeout,
        )
        try:
            connection = await manager.connect(self.config.host, self.config.port)
            logger.info("Connected to %s", connection.remote_addr)
            return await self.publish(connection, events)
        finally:
            logger.info("Closing connection")
            await manager.close()
