"""Presentation helpers for raw XM note codes."""

from __future__ import annotations

from typing import Optional

from .pattern import NOTE_EMPTY, NOTE_MAX, NOTE_OFF

NOTE_NAMES = ("C-", "C#", "D-", "D#", "E-", "F-", "F#", "G-", "G#", "A-", "A#", "B-")

# XM note 49 is C-4.
REFERENCE_NOTE = 49
XM_TO_MIDI_PITCH = 11


def note_name(note: int) -> str:
    """Return a tracker-style name: ``---`` empty, ``===`` off, else e.g. ``C#4``."""
    if note == NOTE_EMPTY:
        return "---"
    if note == NOTE_OFF:
        return "==="
    pitch_class = (note - 1) % 12
    octave = (note - 1) // 12
    return f"{NOTE_NAMES[pitch_class]}{octave}"


def semitones_from_c4(note: int) -> Optional[int]:
    """Signed semitone offset from C-4, or None for empty/note-off."""
    if note in (NOTE_EMPTY, NOTE_OFF):
        return None
    return note - REFERENCE_NOTE


def midi_pitch(note: int) -> Optional[int]:
    """MIDI note number for a sounding XM note (C-4 -> 60)."""
    if not 1 <= note <= NOTE_MAX:
        return None
    return min(127, note + XM_TO_MIDI_PITCH)
