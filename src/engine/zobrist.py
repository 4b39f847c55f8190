from __future__ import annotations

from typing import List, TYPE_CHECKING

from .bitboard import MASK64, SplitMix64, iter_bits

if TYPE_CHECKING:  # pragma: no cover
    from .board import Board


class Zobrist:
    """Zobrist hashing seeds.

    Table layout:
    - piece_square[12][64]: indices follow Board piece order (WP..BK)
    - side_to_move: toggle for black side to move
    - castling[16]: one key per castling-rights bitmask (XOR of the K, Q, k, q keys)
    - ep_file[8]: files a..h
    """

    piece_square: List[List[int]]
    side_to_move: int
    castling: List[int]
    ep_file: List[int]

    def __init__(self, seed: int = 0xC0FFEE_F00D_DEAD) -> None:
        prng = SplitMix64(seed)
        self.piece_square = [[prng.next() for _ in range(64)] for _ in range(12)]
        self.side_to_move = prng.next()
        rights = [prng.next() for _ in range(4)]  # K, Q, k, q
        self.castling = []
        for mask in range(16):
            h = 0
            for i in range(4):
                if mask & (1 << i):
                    h ^= rights[i]
            self.castling.append(h)
        self.ep_file = [prng.next() for _ in range(8)]  # a..h


# Global deterministic table
ZOBRIST = Zobrist()


def compute_hash_from_scratch(board: "Board") -> int:
    """Compute the 64-bit Zobrist hash of ``board``.

    The incremental hash maintained by ``Board.apply``/``Board.revert`` must
    always equal this value.
    """
    h = 0
    for p, keys in enumerate(ZOBRIST.piece_square):
        for sq in iter_bits(board.bb[p]):
            h ^= keys[sq]
    if board.side_to_move == "b":
        h ^= ZOBRIST.side_to_move
    h ^= ZOBRIST.castling[board.castling]
    if board.ep_square is not None:
        h ^= ZOBRIST.ep_file[board.ep_square % 8]
    return h & MASK64
