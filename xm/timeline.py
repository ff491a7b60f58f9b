"""Replay an XM song order into note events timed in seconds.

The song is walked once, forward: song positions in order, rows in order,
channels in order.  Each channel is either idle or holds one open note.  An
open note closes when the channel gets a new note-on, a note-off, or when its
pattern ends; notes never carry across a pattern boundary.

Timing follows the tracker convention::

    seconds_per_tick = 2.5 / bpm
    row_duration     = seconds_per_tick * tempo     (tempo = ticks per row)

``Fxx`` sets tempo (xx < 0x20) or BPM (xx >= 0x20) starting with the row it
appears on, so the whole row is scanned for it before the row is timed.
``EDx`` delays a note-on by x ticks, ``ECx`` cuts the open note x ticks after
its (delayed) start.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .header import DEFAULT_BPM, DEFAULT_TEMPO
from .module import XMModule
from .notes import note_name, semitones_from_c4
from .pattern import (
    EFFECT_EXTENDED,
    EFFECT_SET_SPEED,
    EFFECT_SET_VOLUME,
    EXTENDED_NOTE_CUT,
    EXTENDED_NOTE_DELAY,
    Cell,
    Pattern,
)

logger = logging.getLogger(__name__)

MAX_VOLUME = 64
DEFAULT_INSTRUMENT = 1
VOLUME_COLUMN_MIN = 0x10
VOLUME_COLUMN_MAX = 0x50
BPM_THRESHOLD = 0x20


@dataclass(frozen=True)
class NoteEvent:
    """A finished note: ``start_time < end_time``, both in seconds."""

    channel: int  # 1-based
    instrument: int
    note: int  # raw XM note code 1-96
    volume: int  # 0-64
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def name(self) -> str:
        return note_name(self.note)

    @property
    def semitones(self) -> Optional[int]:
        return semitones_from_c4(self.note)

    @property
    def label(self) -> str:
        return f"{self.name} I{self.instrument:02d} V{self.volume:02d}"


def resolve_instrument(last_instruments: Dict[int, int], channel: int, cell_instrument: int) -> int:
    """Apply instrument carry-over for a note-on.

    A nonzero instrument is remembered for ``channel``; zero reuses the last
    one remembered, or instrument 1 if the channel has none yet.
    """
    if cell_instrument == 0:
        return last_instruments.get(channel, DEFAULT_INSTRUMENT)
    last_instruments[channel] = cell_instrument
    return cell_instrument


def resolve_volume(cell: Cell) -> int:
    """Note-on volume; a ``Cxx`` effect overrides the volume column."""
    volume = MAX_VOLUME
    if VOLUME_COLUMN_MIN <= cell.volume <= VOLUME_COLUMN_MAX:
        volume = cell.volume - VOLUME_COLUMN_MIN
    if cell.effect_type == EFFECT_SET_VOLUME:
        volume = min(MAX_VOLUME, cell.effect_param)
    return volume


@dataclass(frozen=True)
class RowTiming:
    start: float
    duration: float
    tempo: int

    @property
    def tick_seconds(self) -> float:
        return self.duration / self.tempo


@dataclass
class OpenNote:
    instrument: int
    note: int
    volume: int
    start_time: float
    end_time: float

    def finish(self, channel: int) -> Optional[NoteEvent]:
        if self.end_time <= self.start_time:
            return None
        return NoteEvent(
            channel=channel,
            instrument=self.instrument,
            note=self.note,
            volume=self.volume,
            start_time=self.start_time,
            end_time=self.end_time,
        )


def extended_offsets(cell: Cell, timing: RowTiming) -> Tuple[float, Optional[float]]:
    """Return ``(note_delay, note_cut)`` in seconds for a cell's ``Exy`` effect.

    A delay never reaches past the end of its row.
    """
    if cell.effect_type != EFFECT_EXTENDED:
        return 0.0, None
    command = cell.effect_param >> 4
    ticks = cell.effect_param & 0x0F
    if command == EXTENDED_NOTE_DELAY:
        return min(ticks, timing.tempo) * timing.tick_seconds, None
    if command == EXTENDED_NOTE_CUT:
        return 0.0, ticks * timing.tick_seconds
    return 0.0, None


@dataclass
class TimelineState:
    """Mutable state threaded through one reconstruction pass."""

    tempo: int = DEFAULT_TEMPO
    bpm: int = DEFAULT_BPM
    time: float = 0.0
    last_instruments: Dict[int, int] = field(default_factory=dict)
    active: Dict[int, OpenNote] = field(default_factory=dict)

    @classmethod
    def for_module(cls, module: XMModule) -> "TimelineState":
        return cls(
            tempo=module.default_tempo or DEFAULT_TEMPO,
            bpm=module.default_bpm or DEFAULT_BPM,
        )

    @property
    def row_duration(self) -> float:
        return (2.5 / self.bpm) * self.tempo

    def apply_speed_effects(self, row: Sequence[Cell]) -> None:
        for cell in row:
            if cell.effect_type == EFFECT_SET_SPEED and cell.effect_param > 0:
                if cell.effect_param < BPM_THRESHOLD:
                    self.tempo = cell.effect_param
                else:
                    self.bpm = cell.effect_param

    def time_pattern(self, pattern: Pattern) -> List[RowTiming]:
        """Time every row of ``pattern`` and advance ``time`` past its end."""
        timings: List[RowTiming] = []
        for row in pattern.rows:
            self.apply_speed_effects(row)
            duration = self.row_duration
            timings.append(RowTiming(start=self.time, duration=duration, tempo=self.tempo))
            self.time += duration
        return timings

    def close(self, channel: int, at: float) -> Optional[NoteEvent]:
        """Close the channel's open note no later than ``at``."""
        open_note = self.active.pop(channel, None)
        if open_note is None:
            return None
        open_note.end_time = min(open_note.end_time, at)
        return open_note.finish(channel)

    def dispatch(
        self,
        channel: int,
        cell: Cell,
        timing: RowTiming,
        pattern_end: float,
    ) -> Optional[NoteEvent]:
        """Apply one cell; return the note it closed, if any."""
        note_delay, note_cut = extended_offsets(cell, timing)
        onset = timing.start + note_delay

        if cell.is_note_on:
            closed = self.close(channel, onset)
            end_time = pattern_end
            if note_cut is not None:
                end_time = onset + note_cut
            self.active[channel] = OpenNote(
                instrument=resolve_instrument(self.last_instruments, channel, cell.instrument),
                note=cell.note,
                volume=resolve_volume(cell),
                start_time=onset,
                end_time=end_time,
            )
            return closed

        if cell.is_note_off:
            return self.close(channel, onset)

        open_note = self.active.get(channel)
        if note_cut is not None and open_note is not None:
            open_note.end_time = min(open_note.end_time, timing.start + note_cut)
        return None


def iter_note_events(module: XMModule) -> Iterator[NoteEvent]:
    """Yield note events in the order they close."""
    state = TimelineState.for_module(module)
    for position, pattern_index in enumerate(module.song_order):
        pattern = module.pattern_for_position(position)
        if pattern is None:
            logger.debug(
                "order position %d references missing pattern %d; skipped",
                position,
                pattern_index,
            )
            continue

        timings = state.time_pattern(pattern)
        pattern_end = state.time

        for row, timing in zip(pattern.rows, timings):
            for channel, cell in enumerate(row, start=1):
                event = state.dispatch(channel, cell, timing, pattern_end)
                if event is not None:
                    yield event

        for channel in sorted(state.active):
            event = state.close(channel, pattern_end)
            if event is not None:
                yield event


def reconstruct_timeline(module: XMModule) -> List[NoteEvent]:
    return list(iter_note_events(module))


def song_duration(module: XMModule) -> float:
    """Total playing time of the song order in seconds."""
    state = TimelineState.for_module(module)
    for position in range(len(module.song_order)):
        pattern = module.pattern_for_position(position)
        if pattern is not None:
            state.time_pattern(pattern)
    return state.time
