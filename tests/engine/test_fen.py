from __future__ import annotations

import pytest

from src.engine.board import Board, STARTPOS_FEN, CASTLE_WK, CASTLE_BQ
from src.engine.errors import ParseError


def test_startpos_round_trip() -> None:
    b = Board.from_fen(STARTPOS_FEN)
    assert b.to_fen() == STARTPOS_FEN


@pytest.mark.parametrize(
    "fen",
    [
        # Mixed pieces and empty squares, some castling rights
        "r1bqkbnr/pppp1ppp/2n5/4p3/3P4/5N2/PPP1PPPP/RNBQKB1R b KQ - 2 3",
        # No castling rights, ep target present on rank 3 or 6
        "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b - e3 0 1",
        # All castling rights
        "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1",
        # Kiwipete
        "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1",
    ],
)
def test_round_trip_various_positions(fen: str) -> None:
    b = Board.from_fen(fen)
    assert b.to_fen() == fen


def test_four_field_fen_defaults_counters() -> None:
    b = Board.from_fen("4k3/8/8/8/8/8/8/4K3 w - -")
    assert b.halfmove_clock == 0
    assert b.fullmove_number == 1
    assert b.to_fen() == "4k3/8/8/8/8/8/8/4K3 w - - 0 1"


def test_castling_field_parsed_to_mask() -> None:
    b = Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w Kq - 0 1")
    assert b.castling == CASTLE_WK | CASTLE_BQ


@pytest.mark.parametrize(
    "fen",
    [
        "",  # empty
        "8/8/8/8/8/8/8 w - - 0 1",  # not enough ranks
        "4k3/8/8/8/8/8/8/4K3 w - - 0",  # five fields
        "4k3/8/8/8/8/8/8/4K3 x - - 0 1",  # bad side to move
        "4k3/8/8/8/8/8/8/4K3 w A - 0 1",  # bad castling
        "4k3/8/8/8/8/8/8/4K3 w - z9 0 1",  # bad ep square
        "4k3/8/8/8/8/8/8/4K3 w - e4 0 1",  # ep square on wrong rank
        "4k3/8/8/8/8/8/8/4K3 w - - -1 1",  # bad halfmove
        "4k3/8/8/8/8/8/8/4K3 w - - 0 0",  # bad fullmove
        "4k3/8/8/8/8/8/8/4K3 w - - x 1",  # non-numeric counter
        "9/8/8/8/8/8/8/8 w - - 0 1",  # too many squares
        "4k3/8/8/8/8/8/8/4K2 w - - 0 1",  # rank short of 8 squares
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNX w KQkq - 0 1",  # bad piece
        "8/8/8/8/8/8/8/4K3 w - - 0 1",  # no black king
        "4k3/8/8/8/8/8/8/3KK3 w - - 0 1",  # two white kings
        "P3k3/8/8/8/8/8/8/4K3 w - - 0 1",  # pawn on last rank
        "4k3/8/8/8/8/8/8/4RK2 w - - 0 1",  # side not to move already in check
    ],
)
def test_invalid_fen_raises(fen: str) -> None:
    with pytest.raises(ParseError):
        Board.from_fen(fen)


def test_parse_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        Board.from_fen("not a fen")


@pytest.mark.parametrize(
    "fen",
    [
        # Target on the mover's own side of the board
        "4k3/8/8/8/8/8/3PP3/4K3 w - e3 0 1",
        "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR w - e3 0 1",
        # Target square occupied
        "4k3/8/8/8/4P3/4N3/8/4K3 b - e3 0 1",
        # Square the pawn started from still occupied
        "4k3/8/8/8/4P3/8/4P3/4K3 b - e3 0 1",
        # No pawn in front of the target
        "4k3/8/8/8/8/8/8/4K3 b - e3 0 1",
        "4k3/8/8/4P3/8/8/8/4K3 w - e6 0 1",
    ],
)
def test_impossible_en_passant_target_raises(fen: str) -> None:
    with pytest.raises(ParseError):
        Board.from_fen(fen)


def test_en_passant_target_behind_enemy_pawn_is_kept() -> None:
    b = Board.from_fen("4k3/8/8/3Pp3/8/8/8/4K3 w - e6 0 1")
    assert b.to_fen() == "4k3/8/8/3Pp3/8/8/8/4K3 w - e6 0 1"


def test_side_to_move_may_be_in_check() -> None:
    b = Board.from_fen("4k3/8/8/8/8/8/8/4RK2 b - - 0 1")
    assert b.is_in_check()
