"""Tests for note-event reconstruction."""

from collections import defaultdict

import pytest

from xm.module import XMModule
from xm.pattern import Cell
from xm.timeline import (
    NoteEvent,
    iter_note_events,
    reconstruct_timeline,
    resolve_instrument,
    resolve_volume,
    song_duration,
)

from xm_factory import build_xm, empty_rows, rows_with

ROW = 2.5 / 125 * 6  # 0.12 s at tempo 6, BPM 125
TICK = ROW / 6


def _module(patterns, **kwargs) -> XMModule:
    return XMModule.from_bytes(build_xm(patterns, **kwargs))


def _single(cells: dict, rows: int = 4, **kwargs) -> XMModule:
    return _module([rows_with(rows, cells)], **kwargs)


def _times(event: NoteEvent) -> tuple:
    return (event.start_time, event.end_time)


# ── scenarios ───────────────────────────────────────────────────────


class TestScenarios:
    def test_single_note_spans_pattern(self) -> None:
        events = reconstruct_timeline(_single({(0, 0): Cell(49, 1, 0x30)}))
        assert len(events) == 1
        event = events[0]
        assert event.channel == 1
        assert event.instrument == 1
        assert event.note == 49
        assert event.name == "C-4"
        assert event.semitones == 0
        assert event.volume == 32
        assert event.start_time == 0.0
        assert event.end_time == pytest.approx(0.48)

    def test_tempo_change_mid_pattern(self) -> None:
        module = _single(
            {
                (0, 0): Cell(49, 1, 0x30),
                (2, 0): Cell(effect_type=0x0F, effect_param=0x04),
            }
        )
        (event,) = reconstruct_timeline(module)
        assert event.end_time == pytest.approx(0.40)

    def test_note_off_closes_note(self) -> None:
        module = _single({(0, 0): Cell(49, 1, 0x30), (2, 0): Cell(97)})
        (event,) = reconstruct_timeline(module)
        assert _times(event) == pytest.approx((0.0, 0.24))

    def test_instrument_carry_over(self) -> None:
        module = _single(
            {
                (0, 0): Cell(49, 0),
                (1, 0): Cell(50, 3),
                (2, 0): Cell(51, 0),
            }
        )
        events = reconstruct_timeline(module)
        assert [e.instrument for e in events] == [1, 3, 3]


# ── tempo / BPM ─────────────────────────────────────────────────────


class TestTiming:
    def test_bpm_change(self) -> None:
        module = _single(
            {(0, 0): Cell(49, 1, effect_type=0x0F, effect_param=150)}
        )
        (event,) = reconstruct_timeline(module)
        assert event.end_time == pytest.approx(4 * 2.5 / 150 * 6)

    def test_speed_effect_on_other_channel_applies_to_whole_row(self) -> None:
        rows = rows_with(
            2,
            {
                (0, 0): Cell(49, 1),
                (0, 1): Cell(effect_type=0x0F, effect_param=0x03),
            },
            channels=2,
        )
        (event,) = reconstruct_timeline(_module([rows], channels=2))
        assert event.end_time == pytest.approx(2 * 2.5 / 125 * 3)

    def test_speed_zero_is_ignored(self) -> None:
        module = _single({(0, 0): Cell(49, 1, effect_type=0x0F, effect_param=0)})
        (event,) = reconstruct_timeline(module)
        assert event.end_time == pytest.approx(4 * ROW)

    def test_tempo_persists_across_patterns(self) -> None:
        first = rows_with(2, {(0, 0): Cell(effect_type=0x0F, effect_param=0x03)})
        second = rows_with(2, {(0, 0): Cell(49, 1)})
        (event,) = reconstruct_timeline(_module([first, second]))
        half_row = 2.5 / 125 * 3
        assert _times(event) == pytest.approx((2 * half_row, 4 * half_row))

    def test_song_duration(self) -> None:
        module = _module([empty_rows(4), empty_rows(8)], order=[0, 1, 0])
        assert song_duration(module) == pytest.approx(16 * ROW)

    def test_zero_default_tempo_falls_back(self) -> None:
        module = _single({(0, 0): Cell(49, 1)}, tempo=0, bpm=0)
        (event,) = reconstruct_timeline(module)
        assert event.end_time == pytest.approx(4 * ROW)


# ── note delay / cut ────────────────────────────────────────────────


class TestDelayAndCut:
    def test_note_delay_defers_start_and_closes_previous(self) -> None:
        module = _single(
            {
                (0, 0): Cell(49, 1),
                (1, 0): Cell(52, 1, effect_type=0x0E, effect_param=0xD3),
            }
        )
        first, second = reconstruct_timeline(module)
        assert _times(first) == pytest.approx((0.0, ROW + 3 * TICK))
        assert _times(second) == pytest.approx((ROW + 3 * TICK, 4 * ROW))

    def test_note_delay_uses_current_row_tempo(self) -> None:
        module = _single(
            {
                (0, 0): Cell(effect_type=0x0F, effect_param=0x03),
                (1, 0): Cell(49, 1, effect_type=0x0E, effect_param=0xD2),
            }
        )
        (event,) = reconstruct_timeline(module)
        row = 2.5 / 125 * 3
        assert event.start_time == pytest.approx(row + 2 * (row / 3))

    def test_delay_longer_than_row_is_clamped(self) -> None:
        module = _single(
            {(0, 0): Cell(49, 1, effect_type=0x0E, effect_param=0xDF)}
        )
        (event,) = reconstruct_timeline(module)
        assert event.start_time == pytest.approx(ROW)

    def test_note_cut_on_note_row(self) -> None:
        module = _single({(0, 0): Cell(49, 1, effect_type=0x0E, effect_param=0xC2)})
        (event,) = reconstruct_timeline(module)
        assert _times(event) == pytest.approx((0.0, 2 * TICK))

    def test_note_cut_on_later_row(self) -> None:
        module = _single({(1, 0): Cell(49, 1, effect_type=0x0E, effect_param=0xC2)})
        (event,) = reconstruct_timeline(module)
        assert _times(event) == pytest.approx((ROW, ROW + 2 * TICK))

    def test_note_cut_on_empty_row_shortens_open_note(self) -> None:
        module = _single(
            {
                (0, 0): Cell(49, 1),
                (2, 0): Cell(effect_type=0x0E, effect_param=0xC3),
            }
        )
        (event,) = reconstruct_timeline(module)
        assert _times(event) == pytest.approx((0.0, 2 * ROW + 3 * TICK))

    def test_cut_then_later_note_keeps_cut_end(self) -> None:
        module = _single(
            {
                (0, 0): Cell(49, 1, effect_type=0x0E, effect_param=0xC1),
                (2, 0): Cell(50, 1),
            }
        )
        first, second = reconstruct_timeline(module)
        assert first.end_time == pytest.approx(TICK)
        assert second.start_time == pytest.approx(2 * ROW)

    def test_zero_tick_cut_discards_note(self) -> None:
        module = _single({(0, 0): Cell(49, 1, effect_type=0x0E, effect_param=0xC0)})
        assert reconstruct_timeline(module) == []

    def test_cut_on_empty_channel_is_noop(self) -> None:
        module = _single({(1, 0): Cell(effect_type=0x0E, effect_param=0xC1)})
        assert reconstruct_timeline(module) == []


# ── volume ──────────────────────────────────────────────────────────


class TestVolume:
    @pytest.mark.parametrize(
        "cell, expected",
        [
            (Cell(49, 1, 0x10), 0),
            (Cell(49, 1, 0x30), 32),
            (Cell(49, 1, 0x50), 64),
            (Cell(49, 1, 0x00), 64),
            (Cell(49, 1, 0x65), 64),  # volume slide, not a set-volume
            (Cell(49, 1, 0x30, 0x0C, 0x20), 32),
            (Cell(49, 1, 0x30, 0x0C, 0x10), 16),
            (Cell(49, 1, 0x00, 0x0C, 0xFF), 64),
        ],
    )
    def test_resolve_volume(self, cell: Cell, expected: int) -> None:
        assert resolve_volume(cell) == expected


# ── channel state ───────────────────────────────────────────────────


class TestChannelState:
    def test_note_off_without_open_note(self) -> None:
        module = _single({(0, 0): Cell(97)})
        assert reconstruct_timeline(module) == []

    def test_channel_idle_after_note_off(self) -> None:
        module = _single({(0, 0): Cell(49, 1), (1, 0): Cell(97), (3, 0): Cell(50, 1)})
        first, second = reconstruct_timeline(module)
        assert _times(first) == pytest.approx((0.0, ROW))
        assert _times(second) == pytest.approx((3 * ROW, 4 * ROW))

    def test_notes_close_at_pattern_end(self) -> None:
        first = rows_with(2, {(0, 0): Cell(49, 1)})
        second = rows_with(2, {(1, 0): Cell(50, 0)})
        events = reconstruct_timeline(_module([first, second]))
        assert [_times(e) for e in events] == [
            pytest.approx((0.0, 2 * ROW)),
            pytest.approx((3 * ROW, 4 * ROW)),
        ]
        assert events[1].instrument == 1

    def test_channels_are_independent(self) -> None:
        rows = rows_with(
            4,
            {
                (0, 0): Cell(49, 1),
                (0, 1): Cell(61, 2),
                (2, 1): Cell(97),
            },
            channels=2,
        )
        events = reconstruct_timeline(_module([rows], channels=2))
        by_channel = {e.channel: e for e in events}
        assert _times(by_channel[1]) == pytest.approx((0.0, 4 * ROW))
        assert _times(by_channel[2]) == pytest.approx((0.0, 2 * ROW))
        assert by_channel[2].instrument == 2

    def test_carry_over_is_per_channel(self) -> None:
        rows = rows_with(
            2,
            {(0, 0): Cell(49, 5), (1, 1): Cell(49, 0)},
            channels=2,
        )
        events = reconstruct_timeline(_module([rows], channels=2))
        assert {e.channel: e.instrument for e in events} == {1: 5, 2: 1}

    def test_missing_pattern_in_order_is_skipped(self) -> None:
        module = _module([rows_with(4, {(0, 0): Cell(49, 1)})], order=[0, 7, 0])
        events = reconstruct_timeline(module)
        assert [_times(e) for e in events] == [
            pytest.approx((0.0, 4 * ROW)),
            pytest.approx((4 * ROW, 8 * ROW)),
        ]

    def test_events_are_yielded_lazily(self) -> None:
        module = _single({(0, 0): Cell(49, 1), (1, 0): Cell(50, 1)})
        stream = iter_note_events(module)
        first = next(stream)
        assert first.note == 49
        assert next(stream).note == 50


def test_resolve_instrument_updates_last() -> None:
    last: dict = {}
    assert resolve_instrument(last, 1, 0) == 1
    assert resolve_instrument(last, 1, 4) == 4
    assert resolve_instrument(last, 1, 0) == 4
    assert resolve_instrument(last, 2, 0) == 1


def test_event_label() -> None:
    event = NoteEvent(channel=1, instrument=3, note=50, volume=7, start_time=0.0, end_time=1.0)
    assert event.label == "C#4 I03 V07"
    assert event.duration == 1.0


def test_event_invariants_on_busy_song() -> None:
    channels = 3
    patterns = []
    for p in range(3):
        cells = {}
        for row in range(16):
            for ch in range(channels):
                step = (row * 7 + ch * 5 + p * 3) % 11
                if step == 0:
                    cells[(row, ch)] = Cell(40 + row, (ch + p) % 4, 0x10 + row * 4)
                elif step == 3:
                    cells[(row, ch)] = Cell(97)
                elif step == 5:
                    cells[(row, ch)] = Cell(30 + ch, 0, 0, 0x0E, 0xD0 | (row % 8))
                elif step == 7:
                    cells[(row, ch)] = Cell(effect_type=0x0E, effect_param=0xC0 | (row % 6))
                elif step == 9:
                    cells[(row, ch)] = Cell(effect_type=0x0F, effect_param=3 + (row % 5))
                elif step == 10:
                    cells[(row, ch)] = Cell(60, 2, 0, 0x0C, row * 9)
        patterns.append(rows_with(16, cells, channels=channels))

    module = _module(patterns, channels=channels, order=[0, 1, 2, 1, 9, 0])
    events = reconstruct_timeline(module)
    assert events

    per_channel = defaultdict(list)
    for event in events:
        assert event.end_time > event.start_time
        assert 0 <= event.volume <= 64
        assert event.instrument != 0
        per_channel[event.channel].append(event)

    for channel_events in per_channel.values():
        ordered = sorted(channel_events, key=lambda e: e.start_time)
        assert ordered == channel_events
        for prev, nxt in zip(ordered, ordered[1:]):
            assert prev.end_time <= nxt.start_time + 1e-9
