#!/usr/bin/env python3
"""Human-readable XM module inspector.

Prints the module header, song order, instruments, the instruments each
channel plays, and optionally every reconstructed note event::

    python tools/inspect_xm.py song.xm
    python tools/inspect_xm.py song.xm --events
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from xm.header import FREQ_TABLE_AMIGA, FREQ_TABLE_LINEAR  # noqa: E402
from xm.instrument import (  # noqa: E402
    SAMPLE_LOOP_FORWARD,
    SAMPLE_LOOP_NONE,
    SAMPLE_LOOP_PINGPONG,
)
from xm.module import XMFormatError, XMModule, read_module  # noqa: E402
from xm.timeline import reconstruct_timeline, song_duration  # noqa: E402
from xm.usage import collect_channel_instruments  # noqa: E402


FREQ_TABLE_NAMES = {FREQ_TABLE_AMIGA: "Amiga", FREQ_TABLE_LINEAR: "linear"}
LOOP_NAMES = {
    SAMPLE_LOOP_NONE: "no loop",
    SAMPLE_LOOP_FORWARD: "forward loop",
    SAMPLE_LOOP_PINGPONG: "ping-pong loop",
}


def format_header(module: XMModule) -> list[str]:
    major, minor = module.version
    return [
        f"Module: {module.name}",
        f"Tracker: {module.tracker_name}",
        f"Version: {major}.{minor:02d}",
        f"Channels: {module.channel_count}",
        f"Patterns: {module.pattern_count} (song length: {module.song_length}, "
        f"restart: {module.restart_position})",
        f"Instruments: {module.instrument_count}",
        f"Frequency table: {FREQ_TABLE_NAMES.get(module.freq_table_type, '?')}",
        f"Tempo: {module.default_tempo} / BPM: {module.default_bpm}",
        f"Duration: {song_duration(module):.3f}s",
    ]


def format_order(module: XMModule) -> list[str]:
    order = " ".join(f"{index:02X}" for index in module.song_order)
    return [f"Order: {order or '(empty)'}"]


def format_instruments(module: XMModule) -> list[str]:
    lines = ["Instruments:"]
    for number, inst in enumerate(module.instruments, start=1):
        size = inst.sample_data_size
        lines.append(
            f"  {number:02d}: {inst.name!r:<24} samples={inst.sample_count} data={size} bytes"
        )
        for sample in inst.samples:
            width = 16 if sample.is_16bit else 8
            loop = LOOP_NAMES.get(sample.loop_type, "bad loop type")
            lines.append(f"      - {sample.name!r} {sample.length} frames, {width}-bit, {loop}")
    return lines


def format_channel_instruments(module: XMModule) -> list[str]:
    lines = ["Channel instruments:"]
    for channel, instruments in collect_channel_instruments(module).items():
        used = ", ".join(f"{num:02d}" for num in instruments) or "-"
        lines.append(f"  Ch {channel:02d}: {used}")
    return lines


def format_events(module: XMModule) -> list[str]:
    events = reconstruct_timeline(module)
    lines = [f"Events: {len(events)}"]
    for event in events:
        semis = event.semitones
        lines.append(
            f"  ch={event.channel:02d} {event.label}  "
            f"{event.start_time:9.4f}s -> {event.end_time:9.4f}s  "
            f"pitch={semis:+d} st"
        )
    return lines


def build_report(module: XMModule, *, events: bool = False) -> str:
    sections = [
        format_header(module),
        format_order(module),
        format_instruments(module),
        format_channel_instruments(module),
    ]
    if events:
        sections.append(format_events(module))
    return "\n\n".join("\n".join(section) for section in sections)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect an XM module.")
    parser.add_argument("path", type=Path, help="Path to the .xm file")
    parser.add_argument(
        "--events",
        action="store_true",
        help="Also list every reconstructed note event",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log decoder details")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        module = read_module(args.path)
    except (OSError, XMFormatError) as err:
        print(f"ERR {args.path}: {err}", file=sys.stderr)
        return 1

    print(build_report(module, events=args.events))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
