from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .cursor import ByteCursor
from .header import ModuleHeader, XMFormatError, read_header
from .instrument import Instrument, read_instrument
from .pattern import Pattern, read_pattern

logger = logging.getLogger(__name__)

__all__ = ["XMModule", "XMFormatError", "read_module"]


@dataclass(frozen=True)
class XMModule:
    """A fully parsed Extended Module.

    Only the first ``song_length`` entries of ``pattern_order`` are
    meaningful.  Order entries may point past ``patterns``; use
    ``pattern_for_position`` to resolve them safely.
    """

    header: ModuleHeader
    patterns: Tuple[Pattern, ...]
    instruments: Tuple[Instrument, ...]

    @classmethod
    def from_bytes(cls, data: bytes) -> "XMModule":
        cursor = ByteCursor(data)
        header = read_header(cursor)

        patterns: List[Pattern] = []
        for _ in range(header.pattern_count):
            patterns.append(read_pattern(cursor, header.channel_count, header.version))

        instruments: List[Instrument] = []
        for _ in range(header.instrument_count):
            instruments.append(read_instrument(cursor))

        return cls(header=header, patterns=tuple(patterns), instruments=tuple(instruments))

    @property
    def name(self) -> str:
        return self.header.name

    @property
    def tracker_name(self) -> str:
        return self.header.tracker_name

    @property
    def version(self) -> Tuple[int, int]:
        return self.header.version

    @property
    def song_length(self) -> int:
        return self.header.song_length

    @property
    def restart_position(self) -> int:
        return self.header.restart_position

    @property
    def channel_count(self) -> int:
        return self.header.channel_count

    @property
    def pattern_count(self) -> int:
        return self.header.pattern_count

    @property
    def instrument_count(self) -> int:
        return self.header.instrument_count

    @property
    def freq_table_type(self) -> int:
        return self.header.freq_table_type

    @property
    def default_tempo(self) -> int:
        return self.header.default_tempo

    @property
    def default_bpm(self) -> int:
        return self.header.default_bpm

    @property
    def pattern_order(self) -> Tuple[int, ...]:
        return self.header.pattern_order

    @property
    def song_order(self) -> Tuple[int, ...]:
        """The meaningful prefix of the pattern order table."""
        return self.header.pattern_order[: self.header.song_length]

    def pattern_for_position(self, position: int) -> Optional[Pattern]:
        """Pattern played at song ``position``, or None if the entry is out of range."""
        if not 0 <= position < len(self.header.pattern_order):
            return None
        index = self.header.pattern_order[position]
        if index >= len(self.patterns):
            return None
        return self.patterns[index]

    def instrument(self, number: int) -> Optional[Instrument]:
        """Look up an instrument by its 1-based number as used in cells."""
        if 1 <= number <= len(self.instruments):
            return self.instruments[number - 1]
        return None


def read_module(path: Union[str, Path]) -> XMModule:
    """Read and decode the XM file at ``path``.

    Raises ``XMFormatError`` if the file is not an Extended Module.
    """
    data = Path(path).read_bytes()
    module = XMModule.from_bytes(data)
    logger.debug("decoded %s: %d bytes", path, len(data))
    return module
