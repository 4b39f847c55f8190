from __future__ import annotations

from src.protocol.uci.loop import UCIEngine, parse_go_args
from src.search.limits import SearchLimits


def _limits(eng: UCIEngine, line: str) -> SearchLimits:
    return eng._limits_for(parse_go_args(line.split()))


def test_clock_allocation_uses_side_to_move():
    eng = UCIEngine()
    assert _limits(eng, "wtime 3000 btime 100 winc 100").movetime_ms == 175

    eng.cmd_position(["startpos", "moves", "e2e4"])
    assert _limits(eng, "wtime 3000 btime 1000 movestogo 10").movetime_ms == 100


def test_clock_allocation_keeps_a_floor():
    eng = UCIEngine()
    assert _limits(eng, "wtime 80 btime 80").movetime_ms == 10


def test_movetime_wins_over_clock_and_default_depth_applies():
    eng = UCIEngine()
    lim = _limits(eng, "movetime 40 wtime 3000 btime 3000")
    assert lim.movetime_ms == 40
    assert lim.depth is None

    eng.cmd_setoption(["name", "Depth", "value", "3"])
    bare = _limits(eng, "")
    assert bare.depth == 3
    assert bare.movetime_ms is None and bare.nodes is None


def test_go_with_time_controls_sends_bestmove():
    eng = UCIEngine()
    out = []
    eng.cmd_go(["wtime", "300", "btime", "300", "winc", "50", "binc", "50"], out.append)
    eng._search_thread.join(5.0)
    assert [line for line in out if line.startswith("bestmove ")] != []
    assert any(line.startswith("info depth ") for line in out)
