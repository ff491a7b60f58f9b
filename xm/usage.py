from __future__ import annotations

from typing import Dict, List, Set

from .module import XMModule
from .timeline import resolve_instrument


def collect_channel_instruments(module: XMModule) -> Dict[int, List[int]]:
    """Map each 1-based channel to the sorted instruments it actually plays.

    Walks the same song order as the timeline and resolves instrument
    carry-over with the same rule, so the two always agree.  Channels that
    never sound a note map to an empty list.
    """
    used: Dict[int, Set[int]] = {ch: set() for ch in range(1, module.channel_count + 1)}
    last_instruments: Dict[int, int] = {}

    for position in range(len(module.song_order)):
        pattern = module.pattern_for_position(position)
        if pattern is None:
            continue
        for row in pattern.rows:
            for channel, cell in enumerate(row, start=1):
                if cell.is_note_on:
                    instrument = resolve_instrument(last_instruments, channel, cell.instrument)
                    used[channel].add(instrument)

    return {channel: sorted(instruments) for channel, instruments in used.items()}
