"""
Little-endian byte reader used by the quote decoders.

A ByteReader is created for a single decode call and walks forward over
an immutable bytes value. Every read checks the remaining length first,
so truncated input raises MalformedQuoteError instead of returning short
slices.
"""

import struct

from .errors import MalformedQuoteError


class ByteReader:
    """Forward-only cursor over a bytes value."""

    def __init__(self, data: bytes, offset: int = 0):
        self._data = bytes(data)
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def take(self, size: int, what: str = "field") -> bytes:
        """Return the next `size` bytes and advance past them."""
        if size < 0:
            raise MalformedQuoteError(f"Negative read size for {what}: {size}")
        if self.remaining < size:
            raise MalformedQuoteError(
                f"Quote truncated reading {what}: need {size} bytes at offset "
                f"{self._offset}, {self.remaining} available"
            )
        start = self._offset
        self._offset += size
        return self._data[start:self._offset]

    def rest(self) -> bytes:
        """Return everything left and move to the end."""
        return self.take(self.remaining, "trailing data")

    def _unpack(self, fmt: str, what: str) -> int:
        raw = self.take(struct.calcsize(fmt), what)
        return struct.unpack(fmt, raw)[0]

    def u16(self, what: str = "u16") -> int:
        return self._unpack("<H", what)

    def u32(self, what: str = "u32") -> int:
        return self._unpack("<I", what)

    def i16(self, what: str = "i16") -> int:
        return self._unpack("<h", what)

    def i32(self, what: str = "i32") -> int:
        return self._unpack("<i", what)
