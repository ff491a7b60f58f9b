#!/usr/bin/env python3
"""Export the note events of an XM module as MIDI or JSON.

Examples
--------
    python tools/export_xm.py song.xm -o song.mid
    python tools/export_xm.py song.xm --format json -o song.json
    python tools/export_xm.py --spec export.json

Command-line options override values from the JSON spec.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from xm.export_spec import (  # noqa: E402
    FORMAT_JSON,
    FORMAT_MIDI,
    ExportSpec,
    apply_event_filter,
    event_listing,
    load_export_spec,
    validate_bpm,
)
from xm.midi_export import build_midi_file  # noqa: E402
from xm.module import XMFormatError, read_module  # noqa: E402
from xm.timeline import reconstruct_timeline  # noqa: E402

log = logging.getLogger("export_xm")


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export XM note events to MIDI or JSON")
    parser.add_argument("input", type=Path, nargs="?", default=None, help="Input .xm file")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Output path")
    parser.add_argument(
        "--format",
        choices=[FORMAT_MIDI, FORMAT_JSON],
        default=None,
        help="Output format (default: midi, or the spec's format)",
    )
    parser.add_argument("--spec", type=Path, default=None, help="JSON export spec")
    parser.add_argument("--bpm", type=int, default=None, help="MIDI tempo (default: module BPM)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log decoder details")
    return parser


def _merge(spec: ExportSpec, args: argparse.Namespace) -> ExportSpec:
    overrides = {}
    if args.input is not None:
        overrides["input"] = args.input
    if args.output is not None:
        overrides["output"] = args.output
    if args.format is not None:
        overrides["format"] = args.format
    if args.bpm is not None:
        overrides["bpm"] = args.bpm
    return dataclasses.replace(spec, **overrides)


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        base = load_export_spec(args.spec) if args.spec is not None else ExportSpec()
    except (OSError, ValueError) as err:
        parser.error(f"bad spec: {err}")
    spec = _merge(base, args)
    if args.bpm is not None:
        try:
            validate_bpm(args.bpm, where="--bpm")
        except ValueError as err:
            parser.error(str(err))

    if spec.input is None:
        parser.error("input path required: pass INPUT or set spec.input")

    try:
        module = read_module(spec.input)
    except (OSError, XMFormatError) as err:
        print(f"ERR {spec.input}: {err}", file=sys.stderr)
        return 1

    events = apply_event_filter(spec, reconstruct_timeline(module))
    out = spec.output
    if out is None:
        suffix = ".mid" if spec.format == FORMAT_MIDI else ".json"
        out = spec.input.with_suffix(suffix)
    out.parent.mkdir(parents=True, exist_ok=True)

    if spec.format == FORMAT_JSON:
        payload = event_listing(module, events)
        out.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    else:
        midi = build_midi_file(
            events,
            channel_count=module.channel_count,
            bpm=spec.tempo_for(module),
            ticks_per_beat=spec.ticks_per_beat,
            title=module.name,
        )
        midi.save(str(out))

    log.debug("wrote %s", out)
    print(f"Wrote {len(events)} events ({spec.format}) -> {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
