"""
Exception hierarchy for the PIDS notification protocol.

Every failure an exchange can produce maps to exactly one of these types::

    PidsError
    ├── EncodingError          caller data cannot be represented on the wire
    ├── DecodingError          bytes do not form a valid packet
    │   └── TruncatedInputError    fewer bytes than the header or length declares
    ├── TransportError         the channel failed to deliver bytes
    └── ProtocolError          a valid packet that breaks the exchange contract

Errors are always raised. Decoding never returns a zero-valued packet in
place of a failure.
"""

from __future__ import annotations


class PidsError(Exception):
    """
    Base exception for all protocol errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class EncodingError(PidsError):
    """
    Raised when a packet cannot be represented in the wire format.

    Attributes:
        field_name: The field whose value cannot be encoded.
        value: The offending value, when it is a size (a byte length for the destination).
        limit: The largest value the wire field can hold, when the failure is a size.
    """

    def __init__(
        self,
        message: str,
        *,
        field_name: str,
        value: int | None = None,
        limit: int | None = None,
    ) -> None:
        self.field_name = field_name
        self.value = value
        self.limit = limit
        super().__init__(message)


class DecodingError(PidsError):
    """Raised when received bytes do not form a valid packet."""


class TruncatedInputError(DecodingError):
    """
    Raised when input ends before the packet it describes.

    Attributes:
        expected_bytes: Bytes required by the header or declared length.
        actual_bytes: Bytes actually available.
    """

    def __init__(self, what: str, *, expected_bytes: int, actual_bytes: int) -> None:
        self.expected_bytes = expected_bytes
        self.actual_bytes = actual_bytes
        super().__init__(f"Truncated {what}: need {expected_bytes} bytes, have {actual_bytes}")


class TransportError(PidsError):
    """Raised when the underlying stream fails to read, write, or times out."""


class ProtocolError(PidsError):
    """
    Raised when a decodable response violates the exchange contract.

    Attributes:
        expected_id: Transaction id the acknowledgment should carry.
        received_id: Transaction id the response actually carried.
    """

    def __init__(self, message: str, *, expected_id: int, received_id: int) -> None:
        self.expected_id = expected_id
        self.received_id = received_id
        super().__init__(message)
