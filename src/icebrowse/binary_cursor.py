"""
Position-tracking reader over an immutable byte buffer.
"""

import struct
from typing import Union

from .exceptions import FormatError
from .varint import decode_long

_FLOAT = struct.Struct("<f")
_DOUBLE = struct.Struct("<d")


class BinaryCursor:
    """Reads Avro primitives from a buffer, advancing on every read.

    Every read is bounds checked; reading past the end raises FormatError
    instead of returning short data.
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview]):
        self._buf = memoryview(data)
        self._pos = 0

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        """Number of unread bytes"""
        return len(self._buf) - self._pos

    def _require(self, n: int) -> None:
        if n < 0:
            raise FormatError(f"Negative length {n} at position {self._pos}")
        if n > self.remaining:
            raise FormatError(
                f"Read of {n} bytes at position {self._pos} runs past end of "
                f"buffer ({len(self._buf)} bytes)"
            )

    def read_byte(self) -> int:
        self._require(1)
        value = self._buf[self._pos]
        self._pos += 1
        return value

    def read_bytes(self, n: int) -> memoryview:
        """Return a view of the next ``n`` bytes and advance past them"""
        self._require(n)
        view = self._buf[self._pos : self._pos + n]
        self._pos += n
        return view

    def skip(self, n: int) -> None:
        self._require(n)
        self._pos += n

    def read_long(self) -> int:
        value, consumed = decode_long(self._buf, self._pos)
        self._pos += consumed
        return value

    def read_int(self) -> int:
        # int and long share the same wire encoding
        return self.read_long()

    def read_float(self) -> float:
        return _FLOAT.unpack(self.read_bytes(4))[0]

    def read_double(self) -> float:
        return _DOUBLE.unpack(self.read_bytes(8))[0]

    def read_boolean(self) -> bool:
        return self.read_byte() != 0

    def read_bytes_value(self) -> bytes:
        """Read a length-prefixed byte sequence"""
        length = self.read_long()
        return bytes(self.read_bytes(length))

    def read_string(self) -> str:
        """Read a length-prefixed UTF-8 string"""
        start = self._pos
        raw = self.read_bytes_value()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(f"Invalid UTF-8 string at position {start}") from e

    def skip_bytes_value(self) -> None:
        """Skip a length-prefixed byte sequence or string"""
        self.skip(self.read_long())

    def read_fixed(self, size: int) -> bytes:
        return bytes(self.read_bytes(size))
