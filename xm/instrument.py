"""XM instrument and sample headers.

Only names and sizes are kept.  Envelope, vibrato and fadeout settings are
skipped as one fixed block, and the sample audio that follows the sample
headers is skipped without being decoded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from .cursor import ByteCursor
from .header import relative_offset

logger = logging.getLogger(__name__)

INSTRUMENT_NAME_SIZE = 22
SAMPLE_NAME_SIZE = 22

# Note-to-sample map, volume and panning envelopes, envelope/vibrato bytes,
# fadeout and reserved words.  Never decoded; read_instrument re-seeks from
# the header size afterwards.
INSTRUMENT_EXTRA_SIZE = 96 + 48 + 48 + 14 + 4 + 2 + 2

SAMPLE_16BIT = 0x10
SAMPLE_LOOP_MASK = 0x03
SAMPLE_LOOP_NONE = 0
SAMPLE_LOOP_FORWARD = 1
SAMPLE_LOOP_PINGPONG = 2


@dataclass(frozen=True)
class SampleHeader:
    length: int  # in sample frames
    type_flags: int = 0
    loop_start: int = 0
    loop_length: int = 0
    volume: int = 64
    finetune: int = 0
    panning: int = 0x80
    relative_note: int = 0
    name: str = ""

    @property
    def is_16bit(self) -> bool:
        return bool(self.type_flags & SAMPLE_16BIT)

    @property
    def loop_type(self) -> int:
        return self.type_flags & SAMPLE_LOOP_MASK

    @property
    def byte_length(self) -> int:
        return self.length * 2 if self.is_16bit else self.length


@dataclass(frozen=True)
class Instrument:
    name: str = ""
    type: int = 0
    sample_header_size: int = 0
    samples: Tuple[SampleHeader, ...] = field(default_factory=tuple)

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    @property
    def sample_data_size(self) -> int:
        return sum(sample.byte_length for sample in self.samples)

    def is_empty(self) -> bool:
        return not self.samples


def read_sample_header(cursor: ByteCursor) -> SampleHeader:
    length = cursor.read_u32le() or 0
    loop_start = cursor.read_u32le() or 0
    loop_length = cursor.read_u32le() or 0
    volume = cursor.read_u8()
    finetune = cursor.read_i8() or 0
    type_flags = cursor.read_u8() or 0
    panning = cursor.read_u8()
    relative_note = cursor.read_i8() or 0
    cursor.skip(1)  # reserved
    name = cursor.read_fixed_string(SAMPLE_NAME_SIZE)
    return SampleHeader(
        length=length,
        type_flags=type_flags,
        loop_start=loop_start,
        loop_length=loop_length,
        volume=64 if volume is None else volume,
        finetune=finetune,
        panning=0x80 if panning is None else panning,
        relative_note=relative_note,
        name=name,
    )


def read_instrument(cursor: ByteCursor) -> Instrument:
    """Read one instrument, its sample headers, and skip its sample data."""
    header_size = cursor.read_u32le()
    if header_size is None:
        logger.warning("instrument header missing at offset 0x%X; using empty instrument", cursor.tell())
        return Instrument()
    header_start = cursor.tell()

    name = cursor.read_fixed_string(INSTRUMENT_NAME_SIZE)
    inst_type = cursor.read_u8() or 0
    sample_count = cursor.read_u16le() or 0

    sample_header_size = 0
    if sample_count > 0:
        sample_header_size = cursor.read_u32le() or 0
        cursor.skip(INSTRUMENT_EXTRA_SIZE)

    # Extended instrument headers may carry more than we skipped.
    cursor.seek_absolute(relative_offset(header_start, header_size))

    samples: List[SampleHeader] = [read_sample_header(cursor) for _ in range(sample_count)]
    instrument = Instrument(
        name=name,
        type=inst_type,
        sample_header_size=sample_header_size,
        samples=tuple(samples),
    )

    data_size = instrument.sample_data_size
    if data_size > cursor.remaining:
        logger.warning(
            "instrument %r sample data truncated: %d of %d bytes present",
            name,
            cursor.remaining,
            data_size,
        )
    cursor.skip(data_size)
    return instrument
