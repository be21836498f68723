"""
Wire format codec for PIDS event packets.

Publishers and displays are built independently, so the byte layout below is
the whole interoperability contract. Any change to byte order, flag bit
position or padding breaks every deployed peer.


PACKED PROFILE
--------------
The canonical layout is a 6-byte header followed by a variable tail::

    offset  size  field
    0       2     transaction_id       big-endian
    2       1     flags                bit 7..2 = ack, new, update, delete,
                                       arriving, departing; bits 1..0 zero
    3       2     train_number         little-endian
    5       1     destination_length
    6       N     destination          UTF-8, N = destination_length
    6+N     P     padding              0xFF, so that (N + P) % 4 == 0

The two 16-bit fields use opposite byte orders, and both must
be reproduced exactly.

Example: transaction 1, arriving, train 42, destination "Harjamukti"::

    00 01  08  2a 00  0a  48 61 72 6a 61 6d 75 6b 74 69  ff ff


LEGACY PROFILE
--------------
Older displays spend one byte per flag (0x00 or 0x01) and do not pad::

    [transaction_id: 2 BE][6 flag bytes][train_number: 2 LE][length: 1][destination]

Both peers of a deployment must agree on the profile. Nothing on the wire
identifies which one is in use.


DECODING POLICY
---------------
Decoding is strict about what the header promises and lenient about what
follows it:

  - Fewer bytes than the header, or than the declared destination length,
    is a TruncatedInputError. No partial packet is ever returned.
  - Bytes after the destination (padding, or anything else) are ignored.
  - Reserved flag bits are ignored.


FRAMING
-------
There is no separate length prefix. The header alone determines the size
of the whole packet, so `frame_size` can split back-to-back packets on a
single stream.
"""

from __future__ import annotations

from enum import Enum
from typing import Final

from lrt_pids.types import Uint8, Uint16

from .errors import DecodingError, EncodingError, TruncatedInputError
from .packet import FLAG_FIELDS, RESERVED_FLAG_BITS, PacketFlag, PidsPacket

HEADER_SIZE: Final = 6
"""Fixed header size of the packed profile: 2 + 1 + 2 + 1."""

LEGACY_HEADER_SIZE: Final = 11
"""Fixed header size of the legacy profile: 2 + 6 + 2 + 1."""

MAX_DESTINATION_LENGTH: Final = Uint8.max_value()
"""Longest destination in bytes. The length field is a single byte."""

PADDING_ALIGNMENT: Final = 4
"""Destination plus padding is a multiple of this many bytes."""

PADDING_BYTE: Final = 0xFF
"""Filler value for padding bytes."""


def padding_length(destination_length: int) -> int:
    """
    Number of padding bytes that follow a destination of the given length.

    Examples:
        10 bytes ("Harjamukti") -> 2 bytes of padding.
        4 bytes ("ABCD") -> no padding.
    """
    return -destination_length % PADDING_ALIGNMENT


MAX_PACKET_SIZE: Final = (
    HEADER_SIZE + MAX_DESTINATION_LENGTH + padding_length(MAX_DESTINATION_LENGTH)
)
"""Largest packet either profile can produce."""

RECEIVE_BUFFER_SIZE: Final = 2048
"""Bound on bytes buffered while waiting for a complete packet."""


class WireProfile(Enum):
    """Flag encoding variants of the wire format."""

    PACKED = "packed"
    """Six flags in one byte, destination padded to 4 bytes. The canonical form."""

    LEGACY = "legacy"
    """One byte per flag, no padding."""

    @property
    def header_size(self) -> int:
        """Bytes before the destination."""
        return HEADER_SIZE if self is WireProfile.PACKED else LEGACY_HEADER_SIZE

    @property
    def flags_size(self) -> int:
        """Bytes occupied by the flags."""
        return 1 if self is WireProfile.PACKED else len(FLAG_FIELDS)

    def padding_for(self, destination_length: int) -> int:
        """Padding bytes after a destination of the given length."""
        if self is WireProfile.LEGACY:
            return 0
        return padding_length(destination_length)


def encode_packet(packet: PidsPacket, profile: WireProfile = WireProfile.PACKED) -> bytes:
    """
    Encode a packet for transmission.

    Args:
        packet: Record to encode.
        profile: Flag encoding variant.

    Returns:
        Wire bytes: header, destination, then padding.

    Raises:
        EncodingError: If the destination is not encodable as UTF-8, or exceeds
            255 bytes once encoded.
    """
    # Lone surrogates (e.g. from undecodable argv) have no UTF-8 form.
    try:
        destination = packet.destination_bytes
    except UnicodeEncodeError as e:
        raise EncodingError(
            f"destination is not valid UTF-8 text: {e.reason}", field_name="destination"
        ) from e

    # The limit applies to encoded bytes, not characters.
    if len(destination) > MAX_DESTINATION_LENGTH:
        raise EncodingError(
            f"destination_length is {len(destination)}, "
            f"exceeds wire limit of {MAX_DESTINATION_LENGTH}",
            field_name="destination_length",
            value=len(destination),
            limit=MAX_DESTINATION_LENGTH,
        )

    output = bytearray()

    # Transaction id (2 bytes, big-endian).
    output.extend(packet.transaction_id.to_bytes(byteorder="big"))

    # Flags.
    if profile is WireProfile.PACKED:
        # Reserved bits stay zero because PacketFlag has no members there.
        output.append(int(packet.flags))
    else:
        output.extend(1 if getattr(packet, name) else 0 for _, name in FLAG_FIELDS)

    # Train number (2 bytes, little-endian).
    output.extend(packet.train_number.to_bytes(byteorder="little"))

    # Destination length, recomputed from the payload.
    output.append(len(destination))
    output.extend(destination)

    output.extend(bytes([PADDING_BYTE]) * profile.padding_for(len(destination)))

    return bytes(output)


def decode_packet(data: bytes, profile: WireProfile = WireProfile.PACKED) -> PidsPacket:
    """
    Decode wire bytes into a packet.

    Args:
        data: Received bytes. Anything after the destination is ignored.
        profile: Flag encoding variant.

    Returns:
        The fully populated packet.

    Raises:
        TruncatedInputError: If the header or the declared destination is incomplete.
        DecodingError: If a legacy flag byte is not 0 or 1, or the destination
            is not valid UTF-8.
    """
    header_size = profile.header_size

    # Step 1: The fixed header must be complete.
    if len(data) < header_size:
        raise TruncatedInputError(
            "packet header", expected_bytes=header_size, actual_bytes=len(data)
        )

    # Step 2: Parse the header.
    transaction_id = Uint16.decode_bytes(data[0:2], byteorder="big")
    flags = _decode_flags(data[2 : 2 + profile.flags_size], profile)

    offset = 2 + profile.flags_size
    train_number = Uint16.decode_bytes(data[offset : offset + 2], byteorder="little")
    destination_length = data[offset + 2]

    # Step 3: The declared destination must be fully present.
    #
    # Reading fewer bytes would silently shorten the station name.
    end = header_size + destination_length
    if len(data) < end:
        raise TruncatedInputError("destination", expected_bytes=end, actual_bytes=len(data))

    try:
        destination = bytes(data[header_size:end]).decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodingError(f"Destination is not valid UTF-8: {e}") from e

    return PidsPacket.from_flags(
        transaction_id=transaction_id,
        flags=flags,
        train_number=train_number,
        destination=destination,
    )


def _decode_flags(raw: bytes, profile: WireProfile) -> PacketFlag:
    """Parse the flag bytes of either profile into a flag set."""
    if profile is WireProfile.PACKED:
        return PacketFlag(raw[0] & ~RESERVED_FLAG_BITS & 0xFF)

    flags = PacketFlag(0)
    for (flag, name), value in zip(FLAG_FIELDS, raw, strict=True):
        if value not in (0, 1):
            raise DecodingError(f"Legacy flag byte for {name} must be 0 or 1, got {value:#04x}")
        if value:
            flags |= flag
    return flags


def frame_size(data: bytes, profile: WireProfile = WireProfile.PACKED) -> int | None:
    """
    Total wire size of the packet that starts at the beginning of `data`.

    Args:
        data: Buffered bytes, possibly incomplete.
        profile: Flag encoding variant.

    Returns:
        Header, destination and padding size, or None while the header
        itself is still incomplete.
    """
    header_size = profile.header_size
    if len(data) < header_size:
        return None

    destination_length = data[header_size - 1]
    return header_size + destination_length + profile.padding_for(destination_length)


def split_frames(
    data: bytes, profile: WireProfile = WireProfile.PACKED
) -> tuple[list[bytes], bytes]:
    """
    Split buffered bytes into complete packets.

    Args:
        data: Buffered bytes from a stream.
        profile: Flag encoding variant.

    Returns:
        Tuple of (complete_frames, remainder). The remainder is the start of
        a packet that has not fully arrived yet.
    """
    frames: list[bytes] = []
    offset = 0

    while True:
        size = frame_size(data[offset:], profile)
        if size is None or len(data) - offset < size:
            break
        frames.append(bytes(data[offset : offset + size]))
        offset += size

    return frames, bytes(data[offset:])
