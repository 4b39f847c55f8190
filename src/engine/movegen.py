"""Legal move generation.

Two phases: pseudo-legal generation per piece type from occupancy and the
attack tables, then a legality filter that applies each candidate, rejects it
if the mover's king is attacked, and reverts. Pins and checks need no special
handling beyond that filter.

Order is deterministic: piece type (P, N, B, R, Q, K), then origin square,
then destination square, then promotion piece (q, r, b, n).
"""

from __future__ import annotations

from typing import List

from .attacks import ATTACKS
from .bitboard import iter_bits
from .board import (
    BK,
    BP,
    BR,
    Board,
    CASTLE_BK,
    CASTLE_BQ,
    CASTLE_WK,
    CASTLE_WQ,
    WK,
    WP,
    WR,
)
from .errors import IllegalMoveError
from .move import Move, MoveKind, PROMOTION_PIECES, parse_uci


# Squares that must be empty between king and rook
_WK_PATH = (1 << 5) | (1 << 6)  # f1 g1
_WQ_PATH = (1 << 1) | (1 << 2) | (1 << 3)  # b1 c1 d1
_BK_PATH = _WK_PATH << 56  # f8 g8
_BQ_PATH = _WQ_PATH << 56  # b8 c8 d8


def _castle_targets(board: Board, white: bool, occ: int) -> int:
    """Destination squares of castling moves available to the side to move."""
    rights = board.castling
    bb = board.bb
    targets = 0
    if white:
        if not (rights & (CASTLE_WK | CASTLE_WQ)) or not (bb[WK] >> 4) & 1:
            return 0
        if board.is_attacked(4, "b"):
            return 0
        if (
            rights & CASTLE_WK
            and (bb[WR] >> 7) & 1
            and not occ & _WK_PATH
            and not board.is_attacked(5, "b")
            and not board.is_attacked(6, "b")
        ):
            targets |= 1 << 6
        if (
            rights & CASTLE_WQ
            and bb[WR] & 1
            and not occ & _WQ_PATH
            and not board.is_attacked(3, "b")
            and not board.is_attacked(2, "b")
        ):
            targets |= 1 << 2
    else:
        if not (rights & (CASTLE_BK | CASTLE_BQ)) or not (bb[BK] >> 60) & 1:
            return 0
        if board.is_attacked(60, "w"):
            return 0
        if (
            rights & CASTLE_BK
            and (bb[BR] >> 63) & 1
            and not occ & _BK_PATH
            and not board.is_attacked(61, "w")
            and not board.is_attacked(62, "w")
        ):
            targets |= 1 << 62
        if (
            rights & CASTLE_BQ
            and (bb[BR] >> 56) & 1
            and not occ & _BQ_PATH
            and not board.is_attacked(59, "w")
            and not board.is_attacked(58, "w")
        ):
            targets |= 1 << 58
    return targets


def generate_pseudo_legal(board: Board) -> List[Move]:
    """Return moves obeying piece movement and occupancy rules for the side to move.

    Castling is only emitted when its path is clear and unattacked; other moves
    may still leave the mover's king in check.
    """
    moves: List[Move] = []
    append = moves.append
    white = board.side_to_move == "w"
    us = 0 if white else 1
    own = board.occupancy[us]
    enemy = board.occupancy[1 - us]
    occ = own | enemy
    not_own = ~own
    bb = board.bb
    mb = board.mailbox
    base = WP if white else BP

    # Pawns
    pawn = base
    push = 8 if white else -8
    start_rank = 1 if white else 6
    promo_rank = 7 if white else 0
    pawn_att = ATTACKS.pawn[us]
    ep = board.ep_square
    enemy_pawn = BP if white else WP
    for frm in iter_bits(bb[pawn]):
        targets = pawn_att[frm] & enemy
        if ep is not None and (pawn_att[frm] >> ep) & 1:
            targets |= 1 << ep
        one = frm + push
        if not (occ >> one) & 1:
            targets |= 1 << one
            if frm >> 3 == start_rank:
                two = one + push
                if not (occ >> two) & 1:
                    targets |= 1 << two
        for to in iter_bits(targets):
            if to == ep and (to & 7) != (frm & 7):
                append(Move(frm, to, None, pawn, enemy_pawn, MoveKind.EN_PASSANT))
            elif to >> 3 == promo_rank:
                captured = mb[to]
                for promo in PROMOTION_PIECES:
                    append(Move(frm, to, promo, pawn, captured, MoveKind.NORMAL))
            elif to - frm == 2 * push:
                append(Move(frm, to, None, pawn, None, MoveKind.DOUBLE_PUSH))
            else:
                append(Move(frm, to, None, pawn, mb[to], MoveKind.NORMAL))

    # Knights
    knight = base + 1
    for frm in iter_bits(bb[knight]):
        for to in iter_bits(ATTACKS.knight[frm] & not_own):
            append(Move(frm, to, None, knight, mb[to], MoveKind.NORMAL))

    # Bishops
    bishop = base + 2
    for frm in iter_bits(bb[bishop]):
        for to in iter_bits(ATTACKS.bishop_attacks(frm, occ) & not_own):
            append(Move(frm, to, None, bishop, mb[to], MoveKind.NORMAL))

    # Rooks
    rook = base + 3
    for frm in iter_bits(bb[rook]):
        for to in iter_bits(ATTACKS.rook_attacks(frm, occ) & not_own):
            append(Move(frm, to, None, rook, mb[to], MoveKind.NORMAL))

    # Queens
    queen = base + 4
    for frm in iter_bits(bb[queen]):
        for to in iter_bits(ATTACKS.queen_attacks(frm, occ) & not_own):
            append(Move(frm, to, None, queen, mb[to], MoveKind.NORMAL))

    # King, castling destinations merged into the ordinary targets
    king = base + 5
    for frm in iter_bits(bb[king]):
        castles = _castle_targets(board, white, occ)
        for to in iter_bits((ATTACKS.king[frm] & not_own) | castles):
            if (castles >> to) & 1:
                kind = MoveKind.KING_CASTLE if to > frm else MoveKind.QUEEN_CASTLE
                append(Move(frm, to, None, king, None, kind))
            else:
                append(Move(frm, to, None, king, mb[to], MoveKind.NORMAL))

    return moves


def generate_legal(board: Board) -> List[Move]:
    """Return all legal moves for the side to move.

    An empty list means checkmate (side to move in check) or stalemate.
    """
    mover = board.side_to_move
    legal: List[Move] = []
    for mv in generate_pseudo_legal(board):
        record = board.apply(mv)
        try:
            if not board.is_in_check(mover):
                legal.append(mv)
        finally:
            board.revert(record)
    return legal


def has_legal_moves(board: Board) -> bool:
    mover = board.side_to_move
    for mv in generate_pseudo_legal(board):
        record = board.apply(mv)
        try:
            if not board.is_in_check(mover):
                return True
        finally:
            board.revert(record)
    return False


def find_legal(board: Board, move: Move) -> Move:
    """Resolve a (possibly parsed) move to the matching generated legal move.

    Raises:
        IllegalMoveError: If ``move`` is not legal in ``board``.
    """
    for legal in generate_legal(board):
        if legal == move:
            return legal
    raise IllegalMoveError(move.to_uci(), board.to_fen())


def parse_legal(board: Board, uci: str) -> Move:
    """Parse UCI text and resolve it against ``board``.

    Raises:
        ParseError: If ``uci`` is malformed.
        IllegalMoveError: If it is well-formed but not legal.
    """
    return find_legal(board, parse_uci(uci))
