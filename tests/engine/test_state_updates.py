from __future__ import annotations

from src.engine.board import Board, CASTLE_BK, CASTLE_BQ, CASTLE_WK, CASTLE_WQ
from src.engine.movegen import parse_legal


def _play(b: Board, uci: str) -> None:
    b.apply(parse_legal(b, uci))


def test_halfmove_and_fullmove_counters_and_ep_clearing() -> None:
    b = Board.startpos()
    assert b.halfmove_clock == 0 and b.fullmove_number == 1

    # e2e4: pawn move resets halfmove, sets ep to e3, side -> black
    _play(b, "e2e4")
    assert b.halfmove_clock == 0
    assert b.side_to_move == "b"
    assert " e3 " in b.to_fen()
    assert b.fullmove_number == 1  # increments after black moves

    # g8f6: knight move increments halfmove, clears ep, side -> white, fullmove -> 2
    _play(b, "g8f6")
    assert b.halfmove_clock == 1
    assert b.side_to_move == "w"
    assert " - " in b.to_fen()  # ep cleared
    assert b.fullmove_number == 2

    # e4e5: pawn move resets halfmove
    _play(b, "e4e5")
    assert b.halfmove_clock == 0


def test_capture_resets_halfmove_clock() -> None:
    b = Board.from_fen("4k3/8/8/3n4/8/4N3/8/4K3 w - - 7 20")
    _play(b, "e3d5")
    assert b.halfmove_clock == 0


def test_castling_rights_update_on_king_and_rook_moves_and_captures() -> None:
    b = Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")

    # White rook moves h1h2: remove white kingside right only
    _play(b, "h1h2")
    assert b.castling == CASTLE_WQ | CASTLE_BK | CASTLE_BQ

    # Black rook captures a1: removes black queenside (moved from a8) and white queenside (captured on a1)
    _play(b, "a8a1")
    assert b.castling == CASTLE_BK

    # Moving the white king leaves only black's kingside right
    _play(b, "e1e2")
    assert b.castling == CASTLE_BK
    assert b.to_fen().split()[2] == "k"

    # Black king move clears the rest
    _play(b, "e8d7")
    assert b.castling == 0
    assert b.to_fen().split()[2] == "-"


def test_king_move_drops_both_rights_for_that_side() -> None:
    b = Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    _play(b, "e1f1")
    assert not b.castling & (CASTLE_WK | CASTLE_WQ)
    assert b.castling & (CASTLE_BK | CASTLE_BQ) == CASTLE_BK | CASTLE_BQ
