"""Write reconstructed note events as a Standard MIDI File.

One MIDI track per XM channel (channel N -> MIDI channel (N - 1) % 16),
preceded by a conductor track carrying the tempo.  Seconds are converted to
ticks at a single fixed tempo, so timing is exact even though XM tempo
changes are not reproduced as MIDI tempo events.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

import mido

from .notes import midi_pitch
from .timeline import MAX_VOLUME, NoteEvent

DEFAULT_TICKS_PER_BEAT = 480


def volume_to_velocity(volume: int) -> int:
    """Scale XM volume 0-64 to MIDI velocity 1-127."""
    return max(1, min(127, round(volume * 127 / MAX_VOLUME)))


def _channel_track(
    channel: int,
    events: List[NoteEvent],
    *,
    ticks_per_beat: int,
    tempo: int,
    name: str,
) -> mido.MidiTrack:
    midi_channel = (channel - 1) % 16
    timed: List[Tuple[int, int, mido.Message]] = []
    for event in events:
        pitch = midi_pitch(event.note)
        if pitch is None:
            continue
        start = round(mido.second2tick(event.start_time, ticks_per_beat, tempo))
        end = round(mido.second2tick(event.end_time, ticks_per_beat, tempo))
        if end <= start:
            end = start + 1
        velocity = volume_to_velocity(event.volume)
        # note_off sorts before note_on at the same tick
        timed.append((start, 1, mido.Message("note_on", channel=midi_channel, note=pitch, velocity=velocity)))
        timed.append((end, 0, mido.Message("note_off", channel=midi_channel, note=pitch, velocity=0)))
    timed.sort(key=lambda item: (item[0], item[1]))

    track = mido.MidiTrack()
    track.append(mido.MetaMessage("track_name", name=name, time=0))
    last_tick = 0
    for tick, _, message in timed:
        track.append(message.copy(time=tick - last_tick))
        last_tick = tick
    track.append(mido.MetaMessage("end_of_track", time=0))
    return track


def build_midi_file(
    events: Iterable[NoteEvent],
    *,
    channel_count: Optional[int] = None,
    bpm: float = 125,
    ticks_per_beat: int = DEFAULT_TICKS_PER_BEAT,
    title: str = "",
) -> mido.MidiFile:
    """Build a type-1 MIDI file from note events.

    ``channel_count`` forces a track for every XM channel (empty ones
    included); otherwise only channels that have events get a track.

    Each XM channel gets its own track, but MIDI has only 16 channels, so
    XM channels N and N+16 share a MIDI channel.  Where both hold the same
    pitch at overlapping times, the earlier note_off ends the other note
    too.
    """
    by_channel: Dict[int, List[NoteEvent]] = {}
    for event in events:
        by_channel.setdefault(event.channel, []).append(event)

    channels = sorted(by_channel)
    if channel_count is not None:
        channels = list(range(1, channel_count + 1))

    tempo = mido.bpm2tempo(bpm)
    midi = mido.MidiFile(type=1, ticks_per_beat=ticks_per_beat)

    conductor = mido.MidiTrack()
    if title:
        conductor.append(mido.MetaMessage("track_name", name=title, time=0))
    conductor.append(mido.MetaMessage("set_tempo", tempo=tempo, time=0))
    conductor.append(mido.MetaMessage("end_of_track", time=0))
    midi.tracks.append(conductor)

    for channel in channels:
        midi.tracks.append(
            _channel_track(
                channel,
                by_channel.get(channel, []),
                ticks_per_beat=ticks_per_beat,
                tempo=tempo,
                name=f"Ch {channel:02d}",
            )
        )
    return midi
