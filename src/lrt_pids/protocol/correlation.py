"""
Acknowledgment correlation.

A subscriber does not echo the request's transaction id. It transforms it
with a fixed XOR mask, and the publisher applies the same mask to check
that an acknowledgment answers the request it sent. XOR is its own inverse,
so one function serves both directions.

This is part of the wire contract: both peers must use the same mask.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from lrt_pids.types import Uint16

if TYPE_CHECKING:
    from .packet import PidsPacket

ACK_TRANSACTION_ID_MASK: Final = Uint16(0xABCD)
"""Mask applied to a request's transaction id to form its acknowledgment id."""


def ack_transaction_id(transaction_id: Uint16) -> Uint16:
    """
    Map a request id to its acknowledgment id, or an acknowledgment id back.

    Args:
        transaction_id: Id to transform.

    Returns:
        The transformed id.
    """
    return Uint16(transaction_id) ^ ACK_TRANSACTION_ID_MASK


def is_correlated(request: PidsPacket, response: PidsPacket) -> bool:
    """Check that `response` is an acknowledgment of `request`."""
    return response.is_ack and response.transaction_id == ack_transaction_id(
        request.transaction_id
    )
