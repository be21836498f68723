"""
Request/acknowledgment exchange on a single stream.


TWO ROLES
---------
The exchange is asymmetric:

    Sender:    open_stream -> encode -> write -> read -> decode -> validate
    Responder: accept_stream -> read -> decode -> announce -> acknowledge -> write

Each stream carries its own exchange. Nothing is shared between streams, so
any number of exchanges may run concurrently on one connection.


FAILURE POLICY
--------------
The sender never reports success it cannot prove. Every failure reaches the
caller as a typed error:

- EncodingError: the request cannot be represented. Nothing is written.
- TransportError: write or read failed, the stream ended early, or the
  exchange timed out.
- DecodingError: the response is not a valid packet.
- ProtocolError: the response is valid but does not acknowledge the request.

The responder is fire-and-forget about bad input. An undecodable request is
logged and dropped without an acknowledgment. One bad packet must never take
down the task serving the connection.

Nothing here retries. Retry policy, if any, belongs to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from .announcements import Announcer, announcement_for, log_announcement
from .codec import (
    RECEIVE_BUFFER_SIZE,
    WireProfile,
    decode_packet,
    encode_packet,
    frame_size,
    split_frames,
)
from .correlation import ack_transaction_id, is_correlated
from .errors import DecodingError, ProtocolError, TransportError
from .packet import PidsPacket

if TYPE_CHECKING:
    from lrt_pids.transport.types import Connection, Stream

logger = logging.getLogger(__name__)

EXCHANGE_TIMEOUT_SECONDS: Final = 10.0
"""Default bound on one complete request/acknowledgment round trip."""


async def send_transaction(
    stream: Stream,
    packet: PidsPacket,
    *,
    profile: WireProfile = WireProfile.PACKED,
    timeout: float | None = None,
) -> PidsPacket:
    """
    Send one request and wait for its acknowledgment.

    Args:
        stream: Freshly opened stream, exclusively owned by this exchange.
        packet: Request to send.
        profile: Wire profile agreed with the peer.
        timeout: Seconds allowed for the whole round trip. None waits for
            the transport's own idle timeout.

    Returns:
        The acknowledgment packet.

    Raises:
        EncodingError: If the request cannot be encoded.
        TransportError: If writing or reading fails, or the timeout expires.
        DecodingError: If the response cannot be decoded.
        ProtocolError: If the response does not acknowledge the request.
    """
    # Encode before touching the stream.
    #
    # An unrepresentable request must not leave a half-written packet behind.
    data = encode_packet(packet, profile)

    try:
        raw_response = await asyncio.wait_for(_round_trip(stream, data, profile), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise TransportError(
            f"Transaction {packet.transaction_id} timed out after {timeout}s"
        ) from e

    response = decode_packet(raw_response, profile)

    expected_id = ack_transaction_id(packet.transaction_id)
    if not response.is_ack:
        raise ProtocolError(
            f"Response to transaction {packet.transaction_id} is not an acknowledgment",
            expected_id=int(expected_id),
            received_id=int(response.transaction_id),
        )
    if not is_correlated(packet, response):
        raise ProtocolError(
            f"Acknowledgment {response.transaction_id} does not answer "
            f"transaction {packet.transaction_id} (expected {expected_id})",
            expected_id=int(expected_id),
            received_id=int(response.transaction_id),
        )

    return response


async def _round_trip(stream: Stream, data: bytes, profile: WireProfile) -> bytes:
    """Write the request, then read back one response packet."""
    try:
        await stream.write(data)
    except OSError as e:
        raise TransportError(f"Write failed on stream {stream.stream_id}: {e}") from e

    return await read_packet(stream, profile)


async def read_packet(stream: Stream, profile: WireProfile = WireProfile.PACKED) -> bytes:
    """
    Read one packet's worth of bytes from a stream.

    Reads until the buffered bytes hold the complete packet announced by its
    header, or the stream ends. Whatever has arrived by the end of the stream
    is returned as is; decoding decides whether it is complete.

    Args:
        stream: Stream to read from.
        profile: Wire profile, which fixes the header size.

    Returns:
        The buffered bytes, at most RECEIVE_BUFFER_SIZE.

    Raises:
        TransportError: If a read fails, or the stream ends before any byte.
    """
    buffer = bytearray()

    while True:
        size = frame_size(buffer, profile)
        if size is not None and len(buffer) >= size:
            return bytes(buffer)
        if len(buffer) >= RECEIVE_BUFFER_SIZE:
            return bytes(buffer)

        try:
            chunk = await stream.read(RECEIVE_BUFFER_SIZE - len(buffer))
        except OSError as e:
            raise TransportError(f"Read failed on stream {stream.stream_id}: {e}") from e

        if not chunk:
            if not buffer:
                raise TransportError(f"Stream {stream.stream_id} closed before any response")
            return bytes(buffer)

        buffer.extend(chunk)


async def respond(
    stream: Stream,
    *,
    profile: WireProfile = WireProfile.PACKED,
    announce: Announcer = log_announcement,
) -> int:
    """
    Serve every request arriving on an accepted stream.

    Each complete packet in the stream is one request. Each decodable request
    is announced and acknowledged on the same stream, in order. Bytes left
    over when the stream ends are tried as a final request.

    The caller owns the stream and closes it afterwards.

    Args:
        stream: Accepted stream.
        profile: Wire profile agreed with the peer.
        announce: Receives the announcement text for each train event.

    Returns:
        Number of acknowledgments written.
    """
    buffer = b""
    acknowledged = 0

    while True:
        try:
            chunk = await stream.read(RECEIVE_BUFFER_SIZE)
        except (OSError, TransportError) as e:
            logger.warning("Read failed on stream %d: %s", stream.stream_id, e)
            return acknowledged

        if not chunk:
            break

        frames, buffer = split_frames(buffer + chunk, profile)
        for frame in frames:
            sent = await _acknowledge(stream, frame, profile, announce)
            if sent is None:
                continue
            if not sent:
                return acknowledged
            acknowledged += 1

    # A request may be missing its trailing padding.
    #
    # Decoding does not need padding, so the leftover can still be valid.
    if buffer and await _acknowledge(stream, buffer, profile, announce):
        acknowledged += 1

    return acknowledged


async def _acknowledge(
    stream: Stream,
    frame: bytes,
    profile: WireProfile,
    announce: Announcer,
) -> bool | None:
    """
    Decode one request, announce it and write its acknowledgment.

    Returns:
        True when the acknowledgment was written, False when the write failed,
        None when the request was dropped as undecodable.
    """
    try:
        request = decode_packet(frame, profile)
    except DecodingError as e:
        logger.warning("Dropping undecodable packet on stream %d: %s", stream.stream_id, e)
        return None

    if request.is_ack:
        logger.debug(
            "Received acknowledgment %s as a request on stream %d",
            request.transaction_id,
            stream.stream_id,
        )

    text = announcement_for(request)
    if text is not None:
        announce(text)

    ack = request.acknowledge()
    try:
        await stream.write(encode_packet(ack, profile))
    except (OSError, TransportError) as e:
        logger.warning(
            "Failed to acknowledge transaction %s on stream %d: %s",
            request.transaction_id,
            stream.stream_id,
            e,
        )
        return False

    logger.info(
        "Sent ACK for transaction %s (train %s)", request.transaction_id, request.train_number
    )
    return True


@dataclass(slots=True)
class TransactionClient:
    """
    Runs each transaction on its own fresh stream of a connection.

    The stream is closed after every exchange, whatever its outcome.
    """

    connection: Connection
    """Established connection to a display."""

    profile: WireProfile = WireProfile.PACKED
    """Wire profile agreed with the display."""

    timeout: float | None = EXCHANGE_TIMEOUT_SECONDS
    """Seconds allowed for each round trip."""

    async def send(self, packet: PidsPacket) -> PidsPacket:
        """
        Send a request on a new stream and return its acknowledgment.

        Raises:
            EncodingError, TransportError, DecodingError, ProtocolError:
                As for `send_transaction`.
        """
        try:
            stream = await self.connection.open_stream()
        except OSError as e:
            raise TransportError(f"Failed to open stream: {e}") from e

        try:
            return await send_transaction(
                stream, packet, profile=self.profile, timeout=self.timeout
            )
        finally:
            try:
                await stream.close()
            except (OSError, TransportError) as e:
                logger.debug("Error closing stream %d: %s", stream.stream_id, e)
