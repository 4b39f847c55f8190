"""Static evaluation: material plus piece-square tables.

Pure, deterministic, and side-effect free.
"""

from __future__ import annotations

from typing import Final, Sequence

from src.engine.bitboard import iter_bits, mirror_sq
from src.engine.board import (
    Board,
    WP,
    WN,
    WB,
    WR,
    WQ,
    WK,
    BP,
    BN,
    BB,
    BR,
    BQ,
    BK,
)


# Material values in centipawns
P_VAL: Final = 100
N_VAL: Final = 320
B_VAL: Final = 330
R_VAL: Final = 500
Q_VAL: Final = 900


# Piece-square tables (white perspective, a1 first), centipawns
# fmt: off
PSQT_P: Final = (
      0,   0,   0,   0,   0,   0,   0,   0,
      5,  10,  10, -20, -20,  10,  10,   5,
      5,  -5, -10,   0,   0, -10,  -5,   5,
      0,   0,   0,  20,  20,   0,   0,   0,
      5,   5,  10,  25,  25,  10,   5,   5,
     10,  10,  20,  30,  30,  20,  10,  10,
     50,  50,  50,  50,  50,  50,  50,  50,
      0,   0,   0,   0,   0,   0,   0,   0,
)

PSQT_N: Final = (
    -50, -40, -30, -30, -30, -30, -40, -50,
    -40, -20,   0,   0,   0,   0, -20, -40,
    -30,   0,  10,  15,  15,  10,   0, -30,
    -30,   5,  15,  20,  20,  15,   5, -30,
    -30,   0,  15,  20,  20,  15,   0, -30,
    -30,   5,  10,  15,  15,  10,   5, -30,
    -40, -20,   0,   5,   5,   0, -20, -40,
    -50, -40, -30, -30, -30, -30, -40, -50,
)

PSQT_B: Final = (
    -20, -10, -10, -10, -10, -10, -10, -20,
    -10,   5,   0,   0,   0,   0,   5, -10,
    -10,  10,  10,  10,  10,  10,  10, -10,
    -10,   0,  10,  10,  10,  10,   0, -10,
    -10,   5,   5,  10,  10,   5,   5, -10,
    -10,   0,   5,  10,  10,   5,   0, -10,
    -10,   0,   0,   0,   0,   0,   0, -10,
    -20, -10, -10, -10, -10, -10, -10, -20,
)

PSQT_R: Final = (
      0,   0,   5,  10,  10,   5,   0,   0,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
      5,  10,  10,  10,  10,  10,  10,   5,
      0,   0,   0,   0,   0,   0,   0,   0,
)

PSQT_Q: Final = (
    -20, -10, -10,  -5,  -5, -10, -10, -20,
    -10,   0,   0,   0,   0,   0,   0, -10,
    -10,   0,   5,   5,   5,   5,   0, -10,
     -5,   0,   5,   5,   5,   5,   0,  -5,
     -5,   0,   5,   5,   5,   5,   0,  -5,
    -10,   0,   5,   5,   5,   5,   0, -10,
    -10,   0,   0,   0,   0,   0,   0, -10,
    -20, -10, -10,  -5,  -5, -10, -10, -20,
)

PSQT_K: Final = (
     20,  30,  10,   0,   0,  10,  30,  20,
     20,  20,   0,   0,   0,   0,  20,  20,
    -10, -20, -20, -20, -20, -20, -20, -10,
    -20, -30, -30, -40, -40, -30, -30, -20,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
)

PSQT_K_EG: Final = (
    -50, -30, -30, -30, -30, -30, -30, -50,
    -30, -10,   0,   0,   0,   0, -10, -30,
    -30,   0,  10,  15,  15,  10,   0, -30,
    -30,   0,  15,  20,  20,  15,   0, -30,
    -30,   0,  15,  20,  20,  15,   0, -30,
    -30,   0,  10,  15,  15,  10,   0, -30,
    -30, -10,   0,   0,   0,   0, -10, -30,
    -50, -30, -30, -30, -30, -30, -30, -50,
)
# fmt: on

_PIECE_TABLES: Final = (
    (WP, BP, P_VAL, PSQT_P),
    (WN, BN, N_VAL, PSQT_N),
    (WB, BB, B_VAL, PSQT_B),
    (WR, BR, R_VAL, PSQT_R),
    (WQ, BQ, Q_VAL, PSQT_Q),
)

PHASE_TOTAL: Final = 24


def _phase(board: Board) -> int:
    """Middlegame weight on a 0..128 scale from the remaining non-pawn material."""
    knights = (board.bb[WN] | board.bb[BN]).bit_count()
    bishops = (board.bb[WB] | board.bb[BB]).bit_count()
    rooks = (board.bb[WR] | board.bb[BR]).bit_count()
    queens = (board.bb[WQ] | board.bb[BQ]).bit_count()
    phase_units = knights + bishops + 2 * rooks + 4 * queens
    return max(0, min(128, (phase_units * 128) // PHASE_TOTAL))


def _table_sum(bb: int, table: Sequence[int], mirror: bool) -> int:
    if mirror:
        return sum(table[mirror_sq(sq)] for sq in iter_bits(bb))
    return sum(table[sq] for sq in iter_bits(bb))


def evaluate_white(board: Board) -> int:
    """Return a material + PSQT evaluation in centipawns from White's point of view.

    Mirroring the board vertically and swapping colours negates the result.
    """
    score = 0
    for white_idx, black_idx, value, table in _PIECE_TABLES:
        w = board.bb[white_idx]
        b = board.bb[black_idx]
        score += (w.bit_count() - b.bit_count()) * value
        score += _table_sum(w, table, False) - _table_sum(b, table, True)

    # King tables: blend MG/EG
    mg_scaled = _phase(board)
    eg_scaled = 128 - mg_scaled
    for sq in iter_bits(board.bb[WK]):
        score += (mg_scaled * PSQT_K[sq] + eg_scaled * PSQT_K_EG[sq]) // 128
    for sq in iter_bits(board.bb[BK]):
        idx = mirror_sq(sq)
        score -= (mg_scaled * PSQT_K[idx] + eg_scaled * PSQT_K_EG[idx]) // 128

    return score


def evaluate(board: Board) -> int:
    """Return the static score in centipawns; positive favours the side to move.

    This is the form negamax needs: a child's score negated is the parent's.
    """
    score = evaluate_white(board)
    return score if board.side_to_move == "w" else -score
