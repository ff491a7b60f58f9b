from __future__ import annotations

import struct
from typing import Optional


class ByteCursor:
    """Sequential little-endian reader over an in-memory byte buffer.

    Reads that run past the end of the buffer consume whatever remains and
    return ``None`` (or ``""`` for strings) instead of raising.  Callers
    substitute their own defaults, which keeps truncated modules decodable.
    """

    def __init__(self, data: bytes, pos: int = 0) -> None:
        self.data = bytes(data)
        self.pos = pos

    def __len__(self) -> int:
        return len(self.data)

    @property
    def remaining(self) -> int:
        return max(0, len(self.data) - self.pos)

    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def tell(self) -> int:
        return self.pos

    def seek_absolute(self, offset: int) -> None:
        self.pos = max(0, offset)

    def skip(self, count: int) -> None:
        self.pos += count

    def read_bytes(self, count: int) -> bytes:
        """Return up to ``count`` bytes; shorter near the end of the buffer."""
        chunk = self.data[self.pos : self.pos + count]
        self.pos += count
        return chunk

    def slice(self, count: int) -> "ByteCursor":
        """Return a cursor bounded to the next ``count`` bytes and advance past them."""
        return ByteCursor(self.read_bytes(count))

    def _unpack(self, fmt: str, size: int) -> Optional[int]:
        if self.pos + size > len(self.data):
            self.pos = max(self.pos, len(self.data))
            return None
        value = struct.unpack_from(fmt, self.data, self.pos)[0]
        self.pos += size
        return value

    def read_u8(self) -> Optional[int]:
        return self._unpack("<B", 1)

    def read_i8(self) -> Optional[int]:
        return self._unpack("<b", 1)

    def read_u16le(self) -> Optional[int]:
        return self._unpack("<H", 2)

    def read_u32le(self) -> Optional[int]:
        return self._unpack("<I", 4)

    def read_fixed_string(self, count: int, encoding: str = "latin-1") -> str:
        """Read exactly ``count`` bytes as text, cut at the first NUL.

        A short read yields an empty string.
        """
        raw = self.read_bytes(count)
        if len(raw) < count:
            return ""
        return raw.split(b"\x00", 1)[0].decode(encoding)
