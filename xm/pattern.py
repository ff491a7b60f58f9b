"""XM pattern cells and the packed pattern stream.

Every cell starts with one control byte:

  0x80 set:   bitmask. Bits 0-4 flag which of note, instrument, volume,
              effect type and effect parameter follow, in that order.
  0x80 clear: the byte is the note itself and the four other fields
              follow unconditionally.

Absent fields are zero.  A pattern whose packed size is 0 is entirely empty.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .cursor import ByteCursor

logger = logging.getLogger(__name__)

NOTE_EMPTY = 0
NOTE_MAX = 96
NOTE_OFF = 97

EFFECT_SET_VOLUME = 0x0C
EFFECT_EXTENDED = 0x0E
EFFECT_SET_SPEED = 0x0F
EXTENDED_NOTE_CUT = 0x0C
EXTENDED_NOTE_DELAY = 0x0D

PACKED_FLAG = 0x80
HAS_NOTE = 0x01
HAS_INSTRUMENT = 0x02
HAS_VOLUME = 0x04
HAS_EFFECT = 0x08
HAS_PARAM = 0x10

DEFAULT_ROWS = 64
MAX_ROWS = 256


@dataclass(frozen=True)
class Cell:
    """One channel's data for one row."""

    note: int = 0  # 0 empty, 1-96 pitch, 97 note-off
    instrument: int = 0  # 0 = keep the channel's previous instrument
    volume: int = 0  # raw volume-column byte, 0 = unset
    effect_type: int = 0
    effect_param: int = 0

    @property
    def is_note_on(self) -> bool:
        return 1 <= self.note <= NOTE_MAX

    @property
    def is_note_off(self) -> bool:
        return self.note == NOTE_OFF

    def is_empty(self) -> bool:
        return self == EMPTY_CELL


EMPTY_CELL = Cell()


@dataclass(frozen=True)
class Pattern:
    """A row-major grid of cells: ``rows[row][channel]``."""

    rows: Tuple[Tuple[Cell, ...], ...]
    channel_count: int
    packing_type: int = 0

    @classmethod
    def empty(cls, row_count: int, channel_count: int) -> "Pattern":
        row = (EMPTY_CELL,) * channel_count
        return cls(rows=(row,) * row_count, channel_count=channel_count)

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[Cell]], channel_count: int) -> "Pattern":
        grid = []
        for row in rows:
            cells = tuple(row[:channel_count])
            if len(cells) < channel_count:
                cells += (EMPTY_CELL,) * (channel_count - len(cells))
            grid.append(cells)
        return cls(rows=tuple(grid), channel_count=channel_count)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def cell(self, row: int, channel: int) -> Cell:
        return self.rows[row][channel]


def unpack_cells(cursor: ByteCursor, row_count: int, channel_count: int) -> Pattern:
    """Decode a packed cell stream; reads past the end of ``cursor`` give 0."""

    def next_byte() -> int:
        value = cursor.read_u8()
        return 0 if value is None else value

    rows: List[Tuple[Cell, ...]] = []
    for _ in range(row_count):
        cells: List[Cell] = []
        for _ in range(channel_count):
            control = next_byte()
            if control & PACKED_FLAG:
                note = next_byte() if control & HAS_NOTE else 0
                instrument = next_byte() if control & HAS_INSTRUMENT else 0
                volume = next_byte() if control & HAS_VOLUME else 0
                effect_type = next_byte() if control & HAS_EFFECT else 0
                effect_param = next_byte() if control & HAS_PARAM else 0
            else:
                note = control
                instrument = next_byte()
                volume = next_byte()
                effect_type = next_byte()
                effect_param = next_byte()
            cells.append(Cell(note, instrument, volume, effect_type, effect_param))
        rows.append(tuple(cells))
    return Pattern(rows=tuple(rows), channel_count=channel_count)


def _clamp_rows(row_count: int) -> int:
    return min(max(row_count, 1), MAX_ROWS)


def read_pattern(
    cursor: ByteCursor,
    channel_count: int,
    version: Tuple[int, int] = (1, 4),
) -> Pattern:
    """Read one pattern header and its packed data from ``cursor``.

    ``version`` is ``(major, minor)``; version 1.2 stores the row count as a
    single byte holding ``rows - 1``.
    """
    start = cursor.tell()
    header_length = cursor.read_u32le()
    if header_length is None:
        logger.warning(
            "pattern header missing at offset 0x%X; using %d empty rows",
            start,
            DEFAULT_ROWS,
        )
        return Pattern.empty(DEFAULT_ROWS, channel_count)

    packing_type = cursor.read_u8() or 0

    if version == (1, 2):
        raw_rows = cursor.read_u8()
        row_count = (DEFAULT_ROWS - 1 if raw_rows is None else raw_rows) + 1
    else:
        raw_rows = cursor.read_u16le()
        row_count = DEFAULT_ROWS if raw_rows is None else raw_rows
    if not 1 <= row_count <= MAX_ROWS:
        logger.warning("pattern at 0x%X declares %d rows; clamping", start, row_count)
        row_count = _clamp_rows(row_count)

    packed_size = cursor.read_u16le() or 0
    if packed_size == 0:
        pattern = Pattern.empty(row_count, channel_count)
    else:
        packed = cursor.slice(packed_size)
        if len(packed) < packed_size:
            logger.warning(
                "pattern at 0x%X truncated: %d of %d packed bytes present",
                start,
                len(packed),
                packed_size,
            )
        pattern = unpack_cells(packed, row_count, channel_count)
    return Pattern(
        rows=pattern.rows,
        channel_count=channel_count,
        packing_type=packing_type,
    )


def encode_cell(cell: Cell) -> bytes:
    """Encode one cell, omitting zero fields.

    A cell with all five fields present is written unpacked, which is
    shorter than the bitmask form.
    """
    fields = (
        (HAS_NOTE, cell.note),
        (HAS_INSTRUMENT, cell.instrument),
        (HAS_VOLUME, cell.volume),
        (HAS_EFFECT, cell.effect_type),
        (HAS_PARAM, cell.effect_param),
    )
    if all(value for _, value in fields) and cell.note < PACKED_FLAG:
        return bytes(value for _, value in fields)
    control = PACKED_FLAG
    body = bytearray()
    for flag, value in fields:
        if value:
            control |= flag
            body.append(value & 0xFF)
    return bytes([control]) + bytes(body)


def encode_pattern(pattern: Pattern) -> bytes:
    """Pack a pattern's cells into the stream ``unpack_cells`` reads.

    Returns ``b""`` for an all-empty pattern, matching the packed-size-0
    convention.
    """
    if all(cell.is_empty() for row in pattern.rows for cell in row):
        return b""
    return b"".join(encode_cell(cell) for row in pattern.rows for cell in row)
