"""Tests for the PIDS packet codec."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lrt_pids.protocol import (
    HEADER_SIZE,
    MAX_PACKET_SIZE,
    DecodingError,
    EncodingError,
    PacketFlag,
    PidsPacket,
    TruncatedInputError,
    WireProfile,
    decode_packet,
    encode_packet,
    frame_size,
    padding_length,
    split_frames,
)
from lrt_pids.protocol.codec import LEGACY_HEADER_SIZE, MAX_DESTINATION_LENGTH
from lrt_pids.types import Uint16

HARJAMUKTI_ARRIVAL = bytes.fromhex("0001082a000a4861726a616d756b7469ffff")
"""Train 42 arriving for Harjamukti as transaction 1."""

flag_sets = st.integers(min_value=0, max_value=0xFF).map(
    lambda raw: PacketFlag(raw & ~0x03 & 0xFF)
)
packets = st.builds(
    PidsPacket.from_flags,
    transaction_id=st.integers(min_value=0, max_value=0xFFFF),
    flags=flag_sets,
    train_number=st.integers(min_value=0, max_value=0xFFFF),
    destination=st.text(max_size=60),
)


class TestEncodeVectors:
    """Byte-exact encoding of known packets."""

    def test_harjamukti_arrival(self) -> None:
        """The reference arrival encodes to the documented bytes."""
        packet = PidsPacket.from_flags(1, PacketFlag.TRAIN_ARRIVING, 42, "Harjamukti")
        assert encode_packet(packet) == HARJAMUKTI_ARRIVAL

    def test_acknowledgment_layout(self) -> None:
        """An acknowledgment has only the ack flag and no destination."""
        ack = PidsPacket.from_flags(1, PacketFlag.TRAIN_ARRIVING, 42, "Harjamukti").acknowledge()

        # 0x0001 ^ 0xABCD = 0xABCC, flags 0x80, train 42 LE, empty destination.
        assert encode_packet(ack) == bytes.fromhex("abcc802a0000")

    def test_byte_order_distinction(self) -> None:
        """0x0102 is big-endian as the transaction id but little-endian as the train."""
        packet = PidsPacket.from_flags(0x0102, PacketFlag(0), 0x0102, "")
        assert encode_packet(packet) == bytes.fromhex("0102000201" + "00")

    @pytest.mark.parametrize(
        "flag, expected_byte",
        [
            (PacketFlag.ACK, 0x80),
            (PacketFlag.NEW_TRAIN, 0x40),
            (PacketFlag.UPDATE_TRAIN, 0x20),
            (PacketFlag.DELETE_TRAIN, 0x10),
            (PacketFlag.TRAIN_ARRIVING, 0x08),
            (PacketFlag.TRAIN_DEPARTING, 0x04),
        ],
    )
    def test_flag_isolation(self, flag: PacketFlag, expected_byte: int) -> None:
        """Each flag sets exactly one bit and decodes back to only that flag."""
        packet = PidsPacket.from_flags(7, flag)
        encoded = encode_packet(packet)

        assert encoded[2] == expected_byte
        assert decode_packet(encoded).flags == flag

    def test_reserved_bits_written_as_zero(self) -> None:
        """All six flags set still leave the two low bits clear."""
        packet = PidsPacket.from_flags(1, PacketFlag(0xFC))
        assert encode_packet(packet)[2] == 0xFC


class TestPadding:
    """Padding after the destination."""

    @pytest.mark.parametrize(
        "destination, padding",
        [("Harjamukti", 2), ("ABCD", 0), ("", 0), ("A", 3), ("Cawang", 2), ("Ciracas", 1)],
    )
    def test_padding_aligns_destination(self, destination: str, padding: int) -> None:
        """Destination plus padding is always a multiple of four."""
        packet = PidsPacket.from_flags(1, PacketFlag.TRAIN_DEPARTING, 1, destination)
        encoded = encode_packet(packet)

        assert padding_length(len(destination)) == padding
        assert len(encoded) == HEADER_SIZE + len(destination) + padding
        assert encoded[len(encoded) - padding :] == b"\xff" * padding

    @given(length=st.integers(min_value=0, max_value=MAX_DESTINATION_LENGTH))
    def test_padding_law(self, length: int) -> None:
        """Padding is the smallest count in [0, 3] that aligns the destination."""
        padding = padding_length(length)
        assert 0 <= padding <= 3
        assert (length + padding) % 4 == 0

    def test_multibyte_destination_padded_by_bytes(self) -> None:
        """Padding counts encoded bytes, not characters."""
        packet = PidsPacket.from_flags(1, PacketFlag.TRAIN_ARRIVING, 1, "Stasiun Ä")
        encoded = encode_packet(packet)

        # "Stasiun Ä" is 9 characters but 10 bytes in UTF-8.
        assert packet.destination_length == 10
        assert encoded[5] == 10
        assert encoded.endswith(b"\xff\xff")
        assert decode_packet(encoded).destination == "Stasiun Ä"


class TestEncodingErrors:
    """Packets that cannot be represented on the wire."""

    def test_destination_too_long(self) -> None:
        """A 256-byte destination is rejected before anything is produced."""
        packet = PidsPacket.from_flags(1, PacketFlag.TRAIN_ARRIVING, 1, "X" * 256)

        with pytest.raises(EncodingError) as exc_info:
            encode_packet(packet)

        assert exc_info.value.field_name == "destination_length"
        assert exc_info.value.value == 256
        assert exc_info.value.limit == 255

    def test_destination_at_limit(self) -> None:
        """A 255-byte destination is the longest accepted."""
        packet = PidsPacket.from_flags(1, PacketFlag.TRAIN_ARRIVING, 1, "X" * 255)
        encoded = encode_packet(packet)

        assert len(encoded) == MAX_PACKET_SIZE
        assert encoded[5] == 255

    def test_limit_counts_utf8_bytes(self) -> None:
        """128 two-byte characters exceed the limit even though 128 < 255."""
        packet = PidsPacket.from_flags(1, PacketFlag.TRAIN_ARRIVING, 1, "é" * 128)

        with pytest.raises(EncodingError):
            encode_packet(packet)

    def test_unencodable_destination(self) -> None:
        """A lone surrogate has no UTF-8 form and is an encoding failure."""
        packet = PidsPacket.from_flags(1, PacketFlag.TRAIN_ARRIVING, 1, "Dukuh\udcffAtas")

        with pytest.raises(EncodingError) as exc_info:
            encode_packet(packet)

        assert exc_info.value.field_name == "destination"
        assert exc_info.value.limit is None
        assert isinstance(exc_info.value.__cause__, UnicodeEncodeError)


class TestDecode:
    """Decoding wire bytes."""

    def test_harjamukti_arrival(self) -> None:
        """The reference bytes decode to the documented fields."""
        packet = decode_packet(HARJAMUKTI_ARRIVAL)

        assert packet.transaction_id == Uint16(1)
        assert packet.train_number == Uint16(42)
        assert packet.destination == "Harjamukti"
        assert packet.destination_length == 10
        assert packet.is_train_arriving
        assert not packet.is_train_departing
        assert not packet.is_ack

    def test_padding_not_required(self) -> None:
        """A packet missing its trailing padding still decodes."""
        packet = decode_packet(HARJAMUKTI_ARRIVAL[:-2])
        assert packet.destination == "Harjamukti"

    def test_trailing_bytes_ignored(self) -> None:
        """Bytes past the destination are not part of the packet."""
        packet = decode_packet(HARJAMUKTI_ARRIVAL + b"\x00\x01\x02")
        assert packet == decode_packet(HARJAMUKTI_ARRIVAL)

    def test_reserved_bits_ignored(self) -> None:
        """Set reserved bits do not affect the decoded flags."""
        data = bytearray(HARJAMUKTI_ARRIVAL)
        data[2] |= 0x03

        assert decode_packet(bytes(data)).flags == PacketFlag.TRAIN_ARRIVING

    @pytest.mark.parametrize("length", range(HEADER_SIZE))
    def test_truncated_header(self, length: int) -> None:
        """Any input shorter than the header is rejected."""
        with pytest.raises(TruncatedInputError) as exc_info:
            decode_packet(HARJAMUKTI_ARRIVAL[:length])

        assert exc_info.value.expected_bytes == HEADER_SIZE
        assert exc_info.value.actual_bytes == length

    def test_truncated_destination(self) -> None:
        """A declared length beyond the available bytes is rejected, not shortened."""
        with pytest.raises(TruncatedInputError) as exc_info:
            decode_packet(HARJAMUKTI_ARRIVAL[:10])

        assert exc_info.value.expected_bytes == HEADER_SIZE + 10
        assert exc_info.value.actual_bytes == 10

    def test_truncation_is_a_decoding_error(self) -> None:
        """Callers catching DecodingError also see truncation."""
        with pytest.raises(DecodingError):
            decode_packet(b"\x00")

    def test_invalid_utf8_destination(self) -> None:
        """A destination that is not UTF-8 is a decoding error."""
        data = bytes.fromhex("000108010002") + b"\xff\xfe" + b"\xff\xff"

        with pytest.raises(DecodingError, match="not valid UTF-8"):
            decode_packet(data)

    def test_empty_destination(self) -> None:
        """A zero-length destination decodes to an empty string."""
        packet = decode_packet(bytes.fromhex("abcc802a0000"))

        assert packet.destination == ""
        assert packet.is_ack
        assert packet.transaction_id == Uint16(0xABCC)


class TestRoundTrip:
    """Property tests for encode/decode."""

    @given(packet=packets)
    def test_round_trip(self, packet: PidsPacket) -> None:
        """Decoding an encoded packet gives back the same packet."""
        assert decode_packet(encode_packet(packet)) == packet

    @given(packet=packets)
    def test_legacy_round_trip(self, packet: PidsPacket) -> None:
        """The legacy profile round-trips as well."""
        encoded = encode_packet(packet, WireProfile.LEGACY)
        assert decode_packet(encoded, WireProfile.LEGACY) == packet

    @given(packet=packets)
    def test_encoded_length_is_aligned(self, packet: PidsPacket) -> None:
        """Every packed packet is a header plus a 4-byte aligned tail."""
        encoded = encode_packet(packet)
        assert (len(encoded) - HEADER_SIZE) % 4 == 0
        assert frame_size(encoded) == len(encoded)


class TestLegacyProfile:
    """The byte-per-flag profile of early displays."""

    def test_harjamukti_arrival(self) -> None:
        """Six flag bytes, no padding."""
        packet = PidsPacket.from_flags(1, PacketFlag.TRAIN_ARRIVING, 42, "Harjamukti")
        encoded = encode_packet(packet, WireProfile.LEGACY)

        assert encoded == bytes.fromhex("0001" + "000000000100" + "2a00" + "0a") + b"Harjamukti"
        assert len(encoded) == LEGACY_HEADER_SIZE + 10

    def test_flag_byte_must_be_boolean(self) -> None:
        """A flag byte other than 0 or 1 is rejected."""
        data = bytes.fromhex("0001" + "000000000200" + "2a00" + "00")

        with pytest.raises(DecodingError, match="is_train_arriving"):
            decode_packet(data, WireProfile.LEGACY)

    def test_truncated_header(self) -> None:
        """The legacy header is eleven bytes."""
        with pytest.raises(TruncatedInputError) as exc_info:
            decode_packet(HARJAMUKTI_ARRIVAL[:HEADER_SIZE], WireProfile.LEGACY)

        assert exc_info.value.expected_bytes == LEGACY_HEADER_SIZE


class TestFraming:
    """Locating packet boundaries in a byte stream."""

    def test_frame_size_needs_header(self) -> None:
        """The size is unknown until the length byte has arrived."""
        assert frame_size(HARJAMUKTI_ARRIVAL[:5]) is None
        assert frame_size(HARJAMUKTI_ARRIVAL[:6]) == len(HARJAMUKTI_ARRIVAL)

    def test_frame_size_legacy(self) -> None:
        """Legacy frames have no padding."""
        assert frame_size(bytes(10), WireProfile.LEGACY) is None
        assert frame_size(bytes(10) + b"\x03", WireProfile.LEGACY) == LEGACY_HEADER_SIZE + 3

    def test_split_back_to_back_packets(self) -> None:
        """Concatenated packets split at their boundaries."""
        departure = encode_packet(
            PidsPacket.from_flags(2, PacketFlag.TRAIN_DEPARTING, 42, "Harjamukti")
        )
        data = HARJAMUKTI_ARRIVAL + departure + departure[:4]

        frames, remainder = split_frames(data)

        assert frames == [HARJAMUKTI_ARRIVAL, departure]
        assert remainder == departure[:4]

    def test_split_incomplete_packet(self) -> None:
        """An incomplete packet stays in the remainder."""
        frames, remainder = split_frames(HARJAMUKTI_ARRIVAL[:-1])

        assert frames == []
        assert remainder == HARJAMUKTI_ARRIVAL[:-1]
