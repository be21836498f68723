"""Test helpers for lrt_pids unit tests."""

from __future__ import annotations

from lrt_pids.protocol import PacketFlag, PidsPacket

from .mocks import MockConnection, MockStream, PipeStream, StalledStream, stream_pair


def make_event(
    transaction_id: int = 1,
    flags: PacketFlag = PacketFlag.TRAIN_ARRIVING,
    train_number: int = 42,
    destination: str = "Harjamukti",
) -> PidsPacket:
    """Build a request packet with sensible defaults."""
    return PidsPacket.from_flags(transaction_id, flags, train_number, destination)


__all__ = [
    "MockConnection",
    "MockStream",
    "PipeStream",
    "StalledStream",
    "make_event",
    "stream_pair",
]
