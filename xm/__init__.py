"""Decode FastTracker 2 Extended Module (.xm) files into timed note events."""

from .cursor import ByteCursor  # noqa: F401
from .header import (  # noqa: F401
    SIGNATURE,
    ModuleHeader,
    XMFormatError,
    read_header,
    relative_offset,
)
from .instrument import Instrument, SampleHeader, read_instrument  # noqa: F401
from .module import XMModule, read_module  # noqa: F401
from .notes import midi_pitch, note_name, semitones_from_c4  # noqa: F401
from .pattern import (  # noqa: F401
    EMPTY_CELL,
    NOTE_OFF,
    Cell,
    Pattern,
    encode_pattern,
    read_pattern,
    unpack_cells,
)
from .timeline import (  # noqa: F401
    NoteEvent,
    TimelineState,
    iter_note_events,
    reconstruct_timeline,
    resolve_instrument,
    song_duration,
)
from .usage import collect_channel_instruments  # noqa: F401
