from xm.module import XMModule
from xm.pattern import Cell
from xm.timeline import reconstruct_timeline
from xm.usage import collect_channel_instruments

from xm_factory import build_xm, rows_with


def test_instruments_per_channel_sorted_and_distinct() -> None:
    rows = rows_with(
        6,
        {
            (0, 0): Cell(49, 2),
            (1, 0): Cell(50, 0),
            (2, 0): Cell(51, 1),
            (3, 0): Cell(97, 7),  # note-off does not count
            (4, 2): Cell(49, 0),
            (5, 1): Cell(0, 9),  # instrument without a note does not count
        },
        channels=3,
    )
    module = XMModule.from_bytes(build_xm([rows], channels=3))
    assert collect_channel_instruments(module) == {1: [1, 2], 2: [], 3: [1]}


def test_carry_over_crosses_patterns() -> None:
    first = rows_with(2, {(0, 0): Cell(49, 4)})
    second = rows_with(2, {(0, 0): Cell(50, 0)})
    module = XMModule.from_bytes(build_xm([first, second], order=[1, 0, 1]))
    # Position 0 plays pattern 1 before any explicit instrument.
    assert collect_channel_instruments(module) == {1: [1, 4]}


def test_matches_timeline_instruments() -> None:
    rows = rows_with(
        8,
        {
            (0, 0): Cell(49, 3),
            (2, 0): Cell(52, 0, effect_type=0x0E, effect_param=0xC0),
            (4, 1): Cell(49, 0),
            (6, 1): Cell(55, 6),
        },
        channels=2,
    )
    module = XMModule.from_bytes(build_xm([rows], channels=2, order=[0, 4]))
    table = collect_channel_instruments(module)
    for event in reconstruct_timeline(module):
        assert event.instrument in table[event.channel]
