"""
The PIDS event record.

One record describes one train event (a request) or the acknowledgment of
one (a response). Records are built fresh for every exchange, are immutable,
and live only as long as the stream that carries them.
"""

from __future__ import annotations

from enum import IntFlag
from typing import Final

from pydantic import Field

from lrt_pids.types import StrictBaseModel, Uint16

from .correlation import ack_transaction_id


class PacketFlag(IntFlag):
    """
    Event indicators packed into the flags byte, most significant bit first.

    Bits 0x02 and 0x01 are reserved: written as zero, ignored on decode.
    """

    ACK = 0x80
    """Set on acknowledgments, clear on requests."""

    NEW_TRAIN = 0x40
    """A train joins the roster. Reserved for future roster management."""

    UPDATE_TRAIN = 0x20
    """A roster entry changes. Reserved for future roster management."""

    DELETE_TRAIN = 0x10
    """A train leaves the roster. Reserved for future roster management."""

    TRAIN_ARRIVING = 0x08
    """The train is about to arrive at the platform."""

    TRAIN_DEPARTING = 0x04
    """The train is about to depart from the platform."""


RESERVED_FLAG_BITS: Final = 0x03
"""Low bits of the flags byte that carry no meaning."""

FLAG_FIELDS: Final[tuple[tuple[PacketFlag, str], ...]] = (
    (PacketFlag.ACK, "is_ack"),
    (PacketFlag.NEW_TRAIN, "is_new_train"),
    (PacketFlag.UPDATE_TRAIN, "is_update_train"),
    (PacketFlag.DELETE_TRAIN, "is_delete_train"),
    (PacketFlag.TRAIN_ARRIVING, "is_train_arriving"),
    (PacketFlag.TRAIN_DEPARTING, "is_train_departing"),
)
"""Flags paired with their record fields, in wire order."""


class PidsPacket(StrictBaseModel):
    """
    A train event or its acknowledgment.

    The destination length is not stored. It is always derived from the
    encoded destination, so a record can never declare a length that
    disagrees with its payload.
    """

    transaction_id: Uint16
    """Correlates a request with its acknowledgment."""

    is_ack: bool = False
    """True on a response, false on a request."""

    is_new_train: bool = False
    """Roster mutation: new train."""

    is_update_train: bool = False
    """Roster mutation: updated train."""

    is_delete_train: bool = False
    """Roster mutation: deleted train."""

    is_train_arriving: bool = False
    """The train is arriving."""

    is_train_departing: bool = False
    """The train is departing."""

    train_number: Uint16 = Field(default_factory=lambda: Uint16(0))
    """Identifies the train."""

    destination: str = ""
    """Station name shown on the display."""

    @property
    def destination_bytes(self) -> bytes:
        """Destination as it appears on the wire (UTF-8)."""
        return self.destination.encode("utf-8")

    @property
    def destination_length(self) -> int:
        """Byte length of the encoded destination."""
        return len(self.destination_bytes)

    @property
    def flags(self) -> PacketFlag:
        """The six event indicators as a flag set."""
        flags = PacketFlag(0)
        for flag, name in FLAG_FIELDS:
            if getattr(self, name):
                flags |= flag
        return flags

    @classmethod
    def from_flags(
        cls,
        transaction_id: int,
        flags: PacketFlag,
        train_number: int = 0,
        destination: str = "",
    ) -> PidsPacket:
        """Build a record whose booleans mirror `flags`."""
        return cls(
            transaction_id=Uint16(transaction_id),
            train_number=Uint16(train_number),
            destination=destination,
            **{name: bool(flags & flag) for flag, name in FLAG_FIELDS},
        )

    def acknowledge(self) -> PidsPacket:
        """
        Build the acknowledgment for this request.

        The acknowledgment sets only the ack flag, carries the correlated
        transaction id, copies the train number, and has no destination.
        """
        return PidsPacket(
            transaction_id=ack_transaction_id(self.transaction_id),
            is_ack=True,
            train_number=self.train_number,
        )
