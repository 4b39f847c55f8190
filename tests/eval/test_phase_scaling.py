from __future__ import annotations

from src.engine.board import Board
from src.eval import _phase, evaluate_white


def test_phase_runs_from_full_material_to_bare_kings() -> None:
    assert _phase(Board.startpos()) == 128
    assert _phase(Board.from_fen("4k3/pppppppp/8/8/8/8/PPPPPPPP/4K3 w - - 0 1")) == 0
    # One rook each: 4 of 24 units
    assert _phase(Board.from_fen("r3k3/8/8/8/8/8/8/R3K3 w - - 0 1")) == 21


def test_bare_kings_use_endgame_table() -> None:
    # e4 is +20 in the endgame table, black's e8 mirrors to e1 at -30
    board = Board.from_fen("4k3/8/8/8/4K3/8/8/8 w - - 0 1")
    assert evaluate_white(board) == 50


def test_king_walk_pays_off_only_without_pieces() -> None:
    end_center = Board.from_fen("4k3/8/8/8/3K4/8/8/8 w - - 0 1")
    end_home = Board.from_fen("4k3/8/8/8/8/8/8/4K3 w - - 0 1")
    assert evaluate_white(end_center) > evaluate_white(end_home)

    mid_center = Board.from_fen("rnbqkbnr/8/8/8/3K4/8/8/RNBQ1BNR w - - 0 1")
    mid_home = Board.from_fen("rnbqkbnr/8/8/8/8/8/8/RNBQKBNR w - - 0 1")
    assert evaluate_white(mid_center) < evaluate_white(mid_home)
