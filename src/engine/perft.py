from __future__ import annotations

from typing import Dict

from .board import Board
from .movegen import generate_legal


def perft(board: Board, depth: int) -> int:
    """Compute perft node count for `board` at `depth`.

    Definition:
    - depth == 0 returns 1 (the current node).
    - depth > 0 returns the sum over all legal child positions' perft(depth-1).

    The board is mutated with apply/revert and restored before returning.
    """
    if depth < 0:
        raise ValueError("depth must be >= 0")
    if depth == 0:
        return 1

    moves = generate_legal(board)
    if depth == 1:
        return len(moves)

    nodes = 0
    for m in moves:
        record = board.apply(m)
        nodes += perft(board, depth - 1)
        board.revert(record)
    return nodes


def perft_divide(board: Board, depth: int) -> Dict[str, int]:
    """Return per-root-move node counts, keyed by UCI move, in generation order."""
    if depth < 1:
        raise ValueError("depth must be >= 1")
    out: Dict[str, int] = {}
    for m in generate_legal(board):
        record = board.apply(m)
        out[m.to_uci()] = perft(board, depth - 1)
        board.revert(record)
    return out
