"""XM module header.

Layout (all multi-byte fields little-endian)::

    0x00  17  "Extended Module: "
    0x11  20  module name (NUL padded)
    0x25   1  0x1A marker
    0x26  20  tracker name
    0x3A   1  version minor
    0x3B   1  version major
    0x3C   4  header size, counted from 0x3C itself
    0x40   2  song length            0x48   2  instrument count
    0x42   2  restart position       0x4A   2  flags (bit 0 = linear table)
    0x44   2  channel count          0x4C   2  default tempo (ticks/row)
    0x46   2  pattern count          0x4E   2  default BPM
    0x50 256  pattern order table

The first pattern header starts at ``0x3C + header_size``, which is what
``relative_offset`` computes from the position after the size field.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

from .cursor import ByteCursor

logger = logging.getLogger(__name__)

SIGNATURE = b"Extended Module: "
MARKER_BYTE = 0x1A
NAME_SIZE = 20
ORDER_TABLE_SIZE = 256
DEFAULT_TEMPO = 6
DEFAULT_BPM = 125

FREQ_TABLE_AMIGA = 0
FREQ_TABLE_LINEAR = 1


class XMFormatError(ValueError):
    """Raised when the input is not an Extended Module file."""


def relative_offset(base: int, size: int) -> int:
    """Absolute offset of the block following a size-prefixed header.

    XM stores header sizes counted from the start of the 4-byte size field
    itself.  ``base`` is the position right *after* that field, so the block
    that follows begins at ``base - 4 + size``.
    """
    return base - 4 + size


@dataclass(frozen=True)
class ModuleHeader:
    name: str
    tracker_name: str
    version_major: int
    version_minor: int
    header_size: int
    song_length: int
    restart_position: int
    channel_count: int
    pattern_count: int
    instrument_count: int
    flags: int
    default_tempo: int
    default_bpm: int
    pattern_order: Tuple[int, ...]

    @property
    def version(self) -> Tuple[int, int]:
        return (self.version_major, self.version_minor)

    @property
    def freq_table_type(self) -> int:
        return self.flags & 0x01

    @property
    def uses_linear_frequency(self) -> bool:
        return self.freq_table_type == FREQ_TABLE_LINEAR


def read_header(cursor: ByteCursor) -> ModuleHeader:
    """Decode the module header and leave ``cursor`` at the first pattern."""
    signature = cursor.read_bytes(len(SIGNATURE))
    if signature != SIGNATURE:
        raise XMFormatError(f"invalid XM signature: {signature!r}")

    name = cursor.read_fixed_string(NAME_SIZE)

    marker = cursor.read_u8()
    if marker != MARKER_BYTE:
        shown = "EOF" if marker is None else f"0x{marker:02X}"
        raise XMFormatError(f"invalid XM marker byte {shown} (expected 0x1A)")

    tracker_name = cursor.read_fixed_string(NAME_SIZE)
    version_minor = cursor.read_u8() or 0
    version_major = cursor.read_u8() or 0

    header_size = cursor.read_u32le()
    header_start = cursor.tell()
    if header_size is None:
        logger.warning("XM header truncated before header size field")

    fields = [cursor.read_u16le() for _ in range(8)]
    if any(value is None for value in fields):
        logger.warning("XM header truncated; missing fields use defaults")
    (
        song_length,
        restart_position,
        channel_count,
        pattern_count,
        instrument_count,
        flags,
        default_tempo,
        default_bpm,
    ) = fields

    order_raw = cursor.read_bytes(ORDER_TABLE_SIZE)
    order = tuple(order_raw) + (0,) * (ORDER_TABLE_SIZE - len(order_raw))

    if header_size is not None:
        cursor.seek_absolute(relative_offset(header_start, header_size))

    header = ModuleHeader(
        name=name,
        tracker_name=tracker_name,
        version_major=version_major,
        version_minor=version_minor,
        header_size=header_size or 0,
        song_length=song_length or 0,
        restart_position=restart_position or 0,
        channel_count=channel_count or 0,
        pattern_count=pattern_count or 0,
        instrument_count=instrument_count or 0,
        flags=flags or 0,
        default_tempo=DEFAULT_TEMPO if default_tempo is None else default_tempo,
        default_bpm=DEFAULT_BPM if default_bpm is None else default_bpm,
        pattern_order=order,
    )
    logger.debug(
        "XM header %r: v%d.%02d, %d channels, %d patterns, %d instruments",
        header.name,
        header.version_major,
        header.version_minor,
        header.channel_count,
        header.pattern_count,
        header.instrument_count,
    )
    return header
