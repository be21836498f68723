"""
Fixed-width unsigned integers for wire fields.

Each width is its own type. Values of different widths never mix: comparing
or combining a `Uint16` with a plain `int` or a `Uint8` is a `TypeError`,
so a field can never be silently checked against a value of the wrong size.
"""

from __future__ import annotations

from typing import Any, ClassVar, Literal, SupportsIndex, SupportsInt

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema
from typing_extensions import Self

ByteOrder = Literal["little", "big"]


class BaseUint(int):
    """Unsigned integer of `BITS` bits. Subclasses fix the width."""

    BITS: ClassVar[int]
    """Width of the type in bits."""

    def __new__(cls, value: SupportsInt) -> Self:
        """
        Build a value, checking that it fits the width.

        Raises:
            OverflowError: If `value` is negative or needs more than `BITS` bits.
        """
        number = int(value)
        if number < 0 or number > cls.max_value():
            raise OverflowError(f"{number} is out of range for {cls.__name__}")
        return super().__new__(cls, number)

    @classmethod
    def max_value(cls) -> int:
        """Largest value of this width."""
        return (1 << cls.BITS) - 1

    @classmethod
    def byte_length(cls) -> int:
        """Number of bytes a value occupies on the wire."""
        return cls.BITS // 8

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """Validate model fields through the constructor, accepting only real integers."""

        def validate(value: Any) -> BaseUint:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(
                    f"Expected an integer for {cls.__name__}, got {type(value).__name__}"
                )
            try:
                return cls(value)
            except OverflowError as e:
                raise ValueError(str(e)) from e

        return core_schema.json_or_python_schema(
            json_schema=core_schema.int_schema(ge=0, le=cls.max_value()),
            python_schema=core_schema.no_info_plain_validator_function(validate),
            serialization=core_schema.plain_serializer_function_ser_schema(int),
        )

    def to_bytes(
        self,
        length: SupportsIndex | None = None,
        byteorder: ByteOrder = "little",
        *,
        signed: bool = False,
    ) -> bytes:
        """
        Encode the value in its natural width.

        Little-endian unless the caller asks otherwise. Big-endian fields
        must say so explicitly.
        """
        size = self.byte_length() if length is None else int(length)
        return super().to_bytes(size, byteorder, signed=signed)

    @classmethod
    def decode_bytes(cls, data: bytes, byteorder: ByteOrder = "little") -> Self:
        """
        Decode a value from exactly `byte_length()` bytes.

        Raises:
            ValueError: If `data` has any other length.
        """
        size = cls.byte_length()
        if len(data) != size:
            raise ValueError(f"{cls.__name__} requires exactly {size} bytes, got {len(data)}")
        return cls(int.from_bytes(data, byteorder))

    def _same_width(self, other: Any, symbol: str) -> int:
        """Return `other` as an int, or refuse if it is not the same type."""
        if not isinstance(other, type(self)):
            raise TypeError(
                f"Unsupported operand type(s) for {symbol}: "
                f"'{type(self).__name__}' and '{type(other).__name__}'"
            )
        return int(other)

    # Bitwise operators keep the width.

    def __and__(self, other: Any) -> Self:
        return type(self)(int(self) & self._same_width(other, "&"))

    def __or__(self, other: Any) -> Self:
        return type(self)(int(self) | self._same_width(other, "|"))

    def __xor__(self, other: Any) -> Self:
        return type(self)(int(self) ^ self._same_width(other, "^"))

    __rand__ = __and__
    __ror__ = __or__
    __rxor__ = __xor__

    # Comparisons only between values of the same width.

    def __eq__(self, other: object) -> bool:
        return int(self) == self._same_width(other, "==")

    def __ne__(self, other: object) -> bool:
        return int(self) != self._same_width(other, "!=")

    def __lt__(self, other: Any) -> bool:
        return int(self) < self._same_width(other, "<")

    def __le__(self, other: Any) -> bool:
        return int(self) <= self._same_width(other, "<=")

    def __gt__(self, other: Any) -> bool:
        return int(self) > self._same_width(other, ">")

    def __ge__(self, other: Any) -> bool:
        return int(self) >= self._same_width(other, ">=")

    def __hash__(self) -> int:
        return hash((type(self), int(self)))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({int(self)})"

    def __str__(self) -> str:
        return str(int(self))


class Uint8(BaseUint):
    """8-bit unsigned integer, the width of the destination length field."""

    BITS = 8


class Uint16(BaseUint):
    """16-bit unsigned integer, used for transaction ids and train numbers."""

    BITS = 16
