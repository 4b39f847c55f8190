from __future__ import annotations

import pytest

from src.engine.board import Board, STARTPOS_FEN
from src.engine.game import Game
from src.engine.movegen import generate_legal
from src.eval import evaluate, evaluate_white


def test_startpos_is_balanced() -> None:
    assert evaluate(Board.from_fen(STARTPOS_FEN)) == 0


def test_material_values() -> None:
    # Pawns do not change the phase, so an extra e2 pawn is worth 100 plus its square bonus
    bare = Board.from_fen("4k3/8/8/8/8/8/8/4K3 w - - 0 1")
    with_pawn = Board.from_fen("4k3/8/8/8/8/8/4P3/4K3 w - - 0 1")
    assert evaluate_white(with_pawn) - evaluate_white(bare) == 100 - 20


def test_knight_centralization_scores_higher() -> None:
    # White knight on d4 should score higher than on a1 (material equal)
    fen_center = "4k3/8/8/8/3N4/8/8/4K3 w - - 0 1"
    fen_rim = "4k3/8/8/8/8/8/8/N3K3 w - - 0 1"

    g_center = Game.from_fen(fen_center)
    g_rim = Game.from_fen(fen_rim)

    sc_center = evaluate(g_center.board)
    sc_rim = evaluate(g_rim.board)
    assert sc_center > sc_rim


def _mirror_and_swap_colors(fen: str) -> str:
    # Mirror ranks and swap piece colors; keep castling/ep as '-' for simplicity
    board, stm, _castling, _ep, halfmove, fullmove = fen.split()
    ranks = reversed(board.split("/"))
    new_board = "/".join(r.swapcase() for r in ranks)
    new_stm = "b" if stm == "w" else "w"
    return f"{new_board} {new_stm} - - {halfmove} {fullmove}"


POSITIONS = [
    "4k3/8/8/2n5/3B4/8/8/4K3 w - - 0 1",
    "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w - - 0 1",
    "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1",
    "rnbq1k1r/pp1Pbppp/2p5/8/2B5/8/PPP1NnPP/RNBQK2R b - - 1 8",
]


@pytest.mark.parametrize("fen", POSITIONS)
def test_eval_mirror_swap_negates_white_score(fen: str) -> None:
    sc = evaluate_white(Board.from_fen(fen))
    sc_m = evaluate_white(Board.from_fen(_mirror_and_swap_colors(fen)))
    assert sc_m == -sc


@pytest.mark.parametrize("fen", POSITIONS)
def test_side_to_move_score_is_colour_blind(fen: str) -> None:
    # Black to move in the mirrored position sees exactly what White saw
    assert evaluate(Board.from_fen(_mirror_and_swap_colors(fen))) == evaluate(Board.from_fen(fen))


@pytest.mark.parametrize("fen", POSITIONS)
def test_flipping_side_to_move_negates(fen: str) -> None:
    parts = fen.split()
    parts[1] = "b" if parts[1] == "w" else "w"
    assert evaluate(Board.from_fen(" ".join(parts))) == -evaluate(Board.from_fen(fen))


def test_evaluate_is_pure() -> None:
    b = Board.from_fen(POSITIONS[1])
    fen = b.to_fen()
    first = evaluate(b)
    for mv in generate_legal(b)[:5]:
        record = b.apply(mv)
        evaluate(b)
        b.revert(record)
    assert evaluate(b) == first
    assert b.to_fen() == fen
