"""Tests for the PIDS packet record, acknowledgment correlation and announcements."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from lrt_pids.protocol import (
    ACK_TRANSACTION_ID_MASK,
    ARRIVAL_TEMPLATE,
    DEPARTURE_TEMPLATE,
    PacketFlag,
    PidsPacket,
    ack_transaction_id,
    announcement_for,
    is_correlated,
)
from lrt_pids.types import Uint16
from tests.lrt_pids.helpers import make_event


class TestPidsPacket:
    """Tests for the immutable packet record."""

    def test_from_flags_mirrors_booleans(self) -> None:
        """Each flag in the set turns on exactly its boolean."""
        packet = PidsPacket.from_flags(1, PacketFlag.ACK | PacketFlag.TRAIN_DEPARTING)

        assert packet.is_ack
        assert packet.is_train_departing
        assert not packet.is_train_arriving
        assert not packet.is_new_train
        assert packet.flags == PacketFlag.ACK | PacketFlag.TRAIN_DEPARTING

    def test_defaults(self) -> None:
        """A packet with only an id has no flags, train 0 and no destination."""
        packet = PidsPacket(transaction_id=Uint16(9))

        assert packet.flags == PacketFlag(0)
        assert packet.train_number == Uint16(0)
        assert packet.destination == ""
        assert packet.destination_length == 0

    def test_destination_length_is_derived(self) -> None:
        """The length always matches the encoded destination."""
        assert make_event(destination="Harjamukti").destination_length == 10
        assert make_event(destination="Dukuh Atas").destination_bytes == b"Dukuh Atas"

    def test_frozen(self) -> None:
        """Packets cannot be modified after construction."""
        packet = make_event()
        with pytest.raises(ValidationError):
            packet.destination = "Cawang"  # type: ignore[misc]

    @pytest.mark.parametrize("train_number", [-1, 0x10000])
    def test_train_number_range(self, train_number: int) -> None:
        """Train numbers must fit in 16 bits."""
        with pytest.raises(ValidationError):
            PidsPacket(transaction_id=Uint16(1), train_number=train_number)

    def test_strict_booleans(self) -> None:
        """Flag fields do not accept integers."""
        with pytest.raises(ValidationError):
            PidsPacket(transaction_id=Uint16(1), is_ack=1)  # type: ignore[arg-type]

    def test_acknowledge(self) -> None:
        """The acknowledgment sets only the ack flag and keeps the train."""
        ack = make_event(transaction_id=1, train_number=42).acknowledge()

        assert ack.transaction_id == Uint16(0xABCC)
        assert ack.flags == PacketFlag.ACK
        assert ack.train_number == Uint16(42)
        assert ack.destination == ""


class TestCorrelation:
    """Tests for the XOR acknowledgment mapping."""

    @pytest.mark.parametrize(
        "request_id, ack_id",
        [(0x0001, 0xABCC), (0x0002, 0xABCF), (0x0000, 0xABCD), (0xABCD, 0x0000), (0xFFFF, 0x5432)],
    )
    def test_vectors(self, request_id: int, ack_id: int) -> None:
        """Known request ids map to known acknowledgment ids."""
        assert ack_transaction_id(Uint16(request_id)) == Uint16(ack_id)

    def test_mask(self) -> None:
        """The mask is part of the wire contract."""
        assert ACK_TRANSACTION_ID_MASK == Uint16(0xABCD)

    @given(transaction_id=st.integers(min_value=0, max_value=0xFFFF))
    def test_involution(self, transaction_id: int) -> None:
        """Applying the mapping twice gives back the original id."""
        value = Uint16(transaction_id)
        assert ack_transaction_id(ack_transaction_id(value)) == value

    @given(transaction_id=st.integers(min_value=0, max_value=0xFFFF))
    def test_acknowledge_is_correlated(self, transaction_id: int) -> None:
        """A request's own acknowledgment always correlates with it."""
        request = make_event(transaction_id=transaction_id)
        assert is_correlated(request, request.acknowledge())

    def test_echoed_id_is_not_correlated(self) -> None:
        """An acknowledgment echoing the raw request id is rejected."""
        request = make_event(transaction_id=1)
        echo = PidsPacket(transaction_id=Uint16(1), is_ack=True)

        assert not is_correlated(request, echo)

    def test_non_ack_is_not_correlated(self) -> None:
        """A response without the ack flag never correlates."""
        request = make_event(transaction_id=1)
        response = PidsPacket(transaction_id=Uint16(0xABCC))

        assert not is_correlated(request, response)


class TestAnnouncements:
    """Tests for announcement selection."""

    def test_arrival(self) -> None:
        """Arriving trains get the arrival text."""
        text = announcement_for(make_event(flags=PacketFlag.TRAIN_ARRIVING))
        assert text == "Mohon perhatian, kereta tujuan Harjamukti akan tiba di Peron 1."

    def test_departure(self) -> None:
        """Departing trains get the departure text."""
        text = announcement_for(make_event(flags=PacketFlag.TRAIN_DEPARTING))
        assert text == DEPARTURE_TEMPLATE.format(destination="Harjamukti")
        assert text.endswith("akan diberangkatkan dari Peron 1.")

    def test_arrival_wins(self) -> None:
        """A packet flagged as both arriving and departing is announced as an arrival."""
        flags = PacketFlag.TRAIN_ARRIVING | PacketFlag.TRAIN_DEPARTING
        text = announcement_for(make_event(flags=flags, destination="Cawang"))
        assert text == ARRIVAL_TEMPLATE.format(destination="Cawang")

    @pytest.mark.parametrize(
        "flags", [PacketFlag(0), PacketFlag.NEW_TRAIN, PacketFlag.UPDATE_TRAIN, PacketFlag.ACK]
    )
    def test_no_announcement(self, flags: PacketFlag) -> None:
        """Packets with neither event flag produce no text."""
        assert announcement_for(make_event(flags=flags)) is None
