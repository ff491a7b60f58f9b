"""Tests for the XM module header decoder."""

import struct

import pytest

from xm.cursor import ByteCursor
from xm.header import XMFormatError, read_header, relative_offset
from xm.module import XMModule

from xm_factory import HEADER_SIZE, build_xm, empty_rows


def test_relative_offset_pinned_to_standard_header() -> None:
    # Size field sits at 0x3C, so base is 0x40; standard size 276 -> 0x150.
    assert relative_offset(0x40, 276) == 0x150
    assert relative_offset(0x40, 276) == 0x3C + HEADER_SIZE


def test_relative_offset_instrument_header() -> None:
    assert relative_offset(1004, 263) == 1263


def test_header_fields() -> None:
    data = build_xm(
        [empty_rows(4)],
        channels=8,
        tempo=3,
        bpm=140,
        name="my song",
        tracker="FastTracker v2.00",
        flags=0x01,
        restart=1,
    )
    header = read_header(ByteCursor(data))
    assert header.name == "my song"
    assert header.tracker_name == "FastTracker v2.00"
    assert header.version == (1, 4)
    assert header.song_length == 1
    assert header.restart_position == 1
    assert header.channel_count == 8
    assert header.pattern_count == 1
    assert header.default_tempo == 3
    assert header.default_bpm == 140
    assert header.freq_table_type == 1
    assert header.uses_linear_frequency
    assert len(header.pattern_order) == 256


def test_reserved_flag_bits_ignored() -> None:
    data = build_xm([empty_rows(4)], flags=0xFFFE)
    header = read_header(ByteCursor(data))
    assert header.freq_table_type == 0


def test_cursor_lands_on_first_pattern_with_extended_header() -> None:
    data = build_xm([empty_rows(4)], header_padding=12)
    cursor = ByteCursor(data)
    read_header(cursor)
    assert cursor.tell() == 0x3C + HEADER_SIZE + 12
    assert struct.unpack_from("<I", data, cursor.tell())[0] == 9


def test_bad_signature_raises() -> None:
    data = bytearray(build_xm([empty_rows(4)]))
    data[0:8] = b"Impulse "
    with pytest.raises(XMFormatError, match="signature"):
        XMModule.from_bytes(bytes(data))


def test_bad_marker_byte_raises() -> None:
    data = bytearray(build_xm([empty_rows(4)]))
    data[37] = 0x00
    with pytest.raises(XMFormatError, match="marker"):
        XMModule.from_bytes(bytes(data))


def test_empty_input_raises() -> None:
    with pytest.raises(XMFormatError):
        XMModule.from_bytes(b"")


def test_format_error_is_value_error() -> None:
    assert issubclass(XMFormatError, ValueError)


def test_truncated_header_uses_defaults() -> None:
    data = build_xm([empty_rows(4)])[: 0x40 + 4]  # song length + restart only
    header = read_header(ByteCursor(data))
    assert header.song_length == 1
    assert header.channel_count == 0
    assert header.default_tempo == 6
    assert header.default_bpm == 125
    assert header.pattern_order == (0,) * 256
