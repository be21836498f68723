"""
PIDS wire protocol: packet codec and transaction exchange.

Publishers send one event packet per stream and wait for its acknowledgment;
displays decode, announce and acknowledge on the same stream.
"""

from .announcements import ARRIVAL_TEMPLATE, DEPARTURE_TEMPLATE, announcement_for
from .codec import (
    HEADER_SIZE,
    MAX_PACKET_SIZE,
    RECEIVE_BUFFER_SIZE,
    WireProfile,
    decode_packet,
    encode_packet,
    frame_size,
    padding_length,
    split_frames,
)
from .correlation import ACK_TRANSACTION_ID_MASK, ack_transaction_id, is_correlated
from .errors import (
    DecodingError,
    EncodingError,
    PidsError,
    ProtocolError,
    TransportError,
    TruncatedInputError,
)
from .exchange import TransactionClient, respond, send_transaction
from .packet import PacketFlag, PidsPacket

__all__ = [
    "ACK_TRANSACTION_ID_MASK",
    "ARRIVAL_TEMPLATE",
    "DEPARTURE_TEMPLATE",
    "HEADER_SIZE",
    "MAX_PACKET_SIZE",
    "RECEIVE_BUFFER_SIZE",
    "DecodingError",
    "EncodingError",
    "PacketFlag",
    "PidsError",
    "PidsPacket",
    "ProtocolError",
    "TransactionClient",
    "TransportError",
    "TruncatedInputError",
    "WireProfile",
    "ack_transaction_id",
    "announcement_for",
    "decode_packet",
    "encode_packet",
    "frame_size",
    "is_correlated",
    "padding_length",
    "respond",
    "send_transaction",
]
