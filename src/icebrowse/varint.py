"""
Zigzag variable-length integer encoding used by Avro ``int`` and ``long``.

Each byte carries 7 bits of payload, least significant group first; the high
bit marks that more bytes follow. Signed values are zigzag mapped so small
magnitudes stay short:

    0 -> 0, -1 -> 1, 1 -> 2, -2 -> 3, ...
"""

from typing import Tuple, Union

from .exceptions import FormatError

BufferLike = Union[bytes, bytearray, memoryview]

# Avro longs are 64-bit; 10 groups of 7 bits cover them.
MAX_VARINT_BYTES = 10
_MASK_64 = (1 << 64) - 1


def zigzag_encode(value: int) -> int:
    """Map a signed 64-bit integer to its unsigned zigzag form"""
    return ((value << 1) ^ (value >> 63)) & _MASK_64


def zigzag_decode(raw: int) -> int:
    """Map an unsigned zigzag value back to a signed integer"""
    return (raw >> 1) ^ -(raw & 1)


def encode_long(value: int) -> bytes:
    """
    Encode a signed integer as a zigzag varint.

    Args:
        value: Integer in the signed 64-bit range

    Returns:
        Encoded bytes (1-10 bytes)

    Examples:
        >>> encode_long(0)
        b'\\x00'
        >>> encode_long(-1)
        b'\\x01'
        >>> encode_long(64)
        b'\\x80\\x01'
    """
    raw = zigzag_encode(value)
    result = bytearray()

    while raw > 0x7F:
        # Set high bit (0x80) to indicate more bytes follow
        result.append((raw & 0x7F) | 0x80)
        raw >>= 7

    result.append(raw)
    return bytes(result)


def decode_long(data: BufferLike, offset: int = 0) -> Tuple[int, int]:
    """
    Decode a zigzag varint starting at ``offset``.

    Args:
        data: Buffer holding the varint
        offset: Starting position in the buffer

    Returns:
        Tuple of (decoded_value, bytes_consumed)

    Raises:
        FormatError: If the varint runs past the end of the buffer or is
            longer than 64 bits
    """
    raw = 0
    shift = 0
    consumed = 0
    end = len(data)

    while True:
        if offset + consumed >= end:
            raise FormatError(f"Truncated varint at position {offset}")
        if consumed == MAX_VARINT_BYTES:
            raise FormatError(f"Varint longer than {MAX_VARINT_BYTES} bytes at position {offset}")

        byte = data[offset + consumed]
        consumed += 1

        raw |= (byte & 0x7F) << shift
        shift += 7

        if not byte & 0x80:
            break

    return zigzag_decode(raw & _MASK_64), consumed
