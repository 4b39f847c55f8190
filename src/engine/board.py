from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .attacks import ATTACKS
from .bitboard import iter_bits
from .errors import InternalInvariantViolation, ParseError
from .move import Move, MoveKind, square_to_str, str_to_square
from .zobrist import ZOBRIST, compute_hash_from_scratch


STARTPOS_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


# Piece indices for bitboards
WP, WN, WB, WR, WQ, WK, BP, BN, BB, BR, BQ, BK = range(12)
PIECE_ORDER = [WP, WN, WB, WR, WQ, WK, BP, BN, BB, BR, BQ, BK]
PIECE_TO_CHAR = {
    WP: "P",
    WN: "N",
    WB: "B",
    WR: "R",
    WQ: "Q",
    WK: "K",
    BP: "p",
    BN: "n",
    BB: "b",
    BR: "r",
    BQ: "q",
    BK: "k",
}
CHAR_TO_PIECE = {v: k for k, v in PIECE_TO_CHAR.items()}

# Promotion letter -> piece index, per color (0 white, 1 black)
PROMO_PIECE = (
    {"q": WQ, "r": WR, "b": WB, "n": WN},
    {"q": BQ, "r": BR, "b": BB, "n": BN},
)

# Castling rights bitmask
CASTLE_WK, CASTLE_WQ, CASTLE_BK, CASTLE_BQ = 1, 2, 4, 8
CASTLING_CHARS = "KQkq"
ALL_CASTLING = CASTLE_WK | CASTLE_WQ | CASTLE_BK | CASTLE_BQ

# Rights that survive a move touching a square (as origin or destination):
# king and rook home squares revoke the matching rights, everything else keeps all.
CASTLING_KEEP = [ALL_CASTLING] * 64
CASTLING_KEEP[4] = ALL_CASTLING & ~(CASTLE_WK | CASTLE_WQ)  # e1
CASTLING_KEEP[7] = ALL_CASTLING & ~CASTLE_WK  # h1
CASTLING_KEEP[0] = ALL_CASTLING & ~CASTLE_WQ  # a1
CASTLING_KEEP[60] = ALL_CASTLING & ~(CASTLE_BK | CASTLE_BQ)  # e8
CASTLING_KEEP[63] = ALL_CASTLING & ~CASTLE_BK  # h8
CASTLING_KEEP[56] = ALL_CASTLING & ~CASTLE_BQ  # a8

# King destination -> (rook origin, rook destination)
CASTLE_ROOK_SQUARES = {6: (7, 5), 2: (0, 3), 62: (63, 61), 58: (56, 59)}


def castling_to_str(rights: int) -> str:
    return "".join(ch for i, ch in enumerate(CASTLING_CHARS) if rights & (1 << i)) or "-"


def _set_bit(bb: int, sq: int) -> int:
    return bb | (1 << sq)


def _check_ep_target(bb: List[int], stm: str, ep_square: int) -> None:
    """Reject an en passant target that no double push could have produced.

    Raises:
        ParseError: Unless the target sits on the rank behind an enemy pawn that
            just advanced two squares, with both squares it crossed empty.
    """
    occ = 0
    for piece_bb in bb:
        occ |= piece_bb
    if stm == "w":
        rank, pusher, origin, pushed = 5, BP, ep_square + 8, ep_square - 8
    else:
        rank, pusher, origin, pushed = 2, WP, ep_square - 8, ep_square + 8
    if ep_square // 8 != rank:
        raise ParseError("invalid en passant square rank")
    if occ & (1 << ep_square) or occ & (1 << origin):
        raise ParseError("en passant square or pawn origin is occupied")
    if not bb[pusher] & (1 << pushed):
        raise ParseError("no pawn to capture en passant")


@dataclass(frozen=True)
class UndoRecord:
    """Minimal state needed to reverse one ``Board.apply``.

    Owned by the caller that applied the move and consumed by exactly one
    ``Board.revert``, in last-in-first-out order.
    """

    move: Move
    captured: Optional[int]
    castling: int
    ep_square: Optional[int]
    halfmove_clock: int
    zobrist_hash: int


@dataclass
class Board:
    """Board state with bitboards and FEN I/O.

    Notes:
    - Squares are 0..63 (a1=0 .. h8=63), rank-major from white's perspective.
    - ``occupancy``, ``mailbox`` and ``zobrist_hash`` are derived from ``bb``
      on construction and kept in sync incrementally by ``apply``/``revert``.
    - A board is mutated in place; give each concurrent worker its own ``copy()``.
    """

    # 12 piece bitboards, indexed by constants above
    bb: List[int]
    side_to_move: str  # 'w' or 'b'
    castling: int  # bitmask of CASTLE_* flags
    ep_square: Optional[int]  # square index or None
    halfmove_clock: int
    fullmove_number: int
    # [white, black] aggregate occupancy
    occupancy: List[int] = field(default_factory=lambda: [0, 0], repr=False)
    # square -> piece index
    mailbox: List[Optional[int]] = field(default_factory=lambda: [None] * 64, repr=False)
    zobrist_hash: int = 0
    # hashes of earlier positions in the current line, oldest first
    hash_history: List[int] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        self._sync_derived()

    def _sync_derived(self) -> None:
        white = 0
        black = 0
        mailbox: List[Optional[int]] = [None] * 64
        for p in PIECE_ORDER:
            for sq in iter_bits(self.bb[p]):
                mailbox[sq] = p
            if p < 6:
                white |= self.bb[p]
            else:
                black |= self.bb[p]
        self.occupancy = [white, black]
        self.mailbox = mailbox
        self.zobrist_hash = compute_hash_from_scratch(self)

    @classmethod
    def startpos(cls) -> "Board":
        """Create a board initialized to the standard chess starting position."""
        return cls.from_fen(STARTPOS_FEN)

    @classmethod
    def from_fen(cls, fen: str) -> "Board":
        """Create a board from a Forsyth–Edwards Notation (FEN) string.

        Args:
            fen (str): FEN with six fields, or four fields (move counters then
                default to ``0 1``).

        Returns:
            Board: Board instance initialized with state encoded in ``fen``.

        Raises:
            ParseError: If ``fen`` is empty, has the wrong number of fields,
                contains invalid piece placement, castling rights, en passant
                square or move counters, or does not have exactly one king per
                side.
        """
        if not fen or not isinstance(fen, str):
            raise ParseError("FEN must be a non-empty string")
        parts = fen.strip().split()
        if len(parts) == 4:
            parts += ["0", "1"]
        if len(parts) != 6:
            raise ParseError("FEN must have 6 fields")
        placement, stm, castling, ep, halfmove, fullmove = parts

        # Parse piece placement
        ranks = placement.split("/")
        if len(ranks) != 8:
            raise ParseError("FEN board must have 8 ranks")
        bb = [0] * 12
        for rank_idx, rank in enumerate(ranks[::-1]):  # start from rank 1 (bottom)
            file_idx = 0
            for ch in rank:
                if ch.isdigit():
                    n = int(ch)
                    if n < 1 or n > 8:
                        raise ParseError("invalid empty count in FEN rank")
                    file_idx += n
                else:
                    if ch not in CHAR_TO_PIECE:
                        raise ParseError(f"invalid piece in FEN: {ch!r}")
                    if file_idx >= 8:
                        raise ParseError("too many squares in FEN rank")
                    sq = rank_idx * 8 + file_idx
                    p = CHAR_TO_PIECE[ch]
                    bb[p] = _set_bit(bb[p], sq)
                    file_idx += 1
            if file_idx != 8:
                raise ParseError("rank does not sum to 8 squares in FEN")

        if bb[WK].bit_count() != 1 or bb[BK].bit_count() != 1:
            raise ParseError("FEN must contain exactly one king per side")
        if (bb[WP] | bb[BP]) & 0xFF000000000000FF:
            raise ParseError("pawns cannot stand on the first or last rank")

        # Side to move
        if stm not in ("w", "b"):
            raise ParseError("side to move must be 'w' or 'b'")

        # Castling rights
        rights = 0
        if castling != "-":
            for ch in castling:
                if ch not in CASTLING_CHARS:
                    raise ParseError("invalid castling rights")
                rights |= 1 << CASTLING_CHARS.index(ch)

        # En passant square
        ep_square: Optional[int]
        if ep == "-":
            ep_square = None
        else:
            try:
                ep_square = str_to_square(ep)
            except ParseError as e:
                raise ParseError("invalid en passant square") from e
            _check_ep_target(bb, stm, ep_square)

        # Halfmove / fullmove
        try:
            halfmove_clock = int(halfmove)
            fullmove_number = int(fullmove)
        except ValueError as e:
            raise ParseError("invalid move counters in FEN") from e
        if halfmove_clock < 0 or fullmove_number <= 0:
            raise ParseError("invalid move counters in FEN")

        board = cls(
            bb=bb,
            side_to_move=stm,
            castling=rights,
            ep_square=ep_square,
            halfmove_clock=halfmove_clock,
            fullmove_number=fullmove_number,
        )
        # The side that just moved cannot have left its king en prise
        if board.is_in_check("b" if stm == "w" else "w"):
            raise ParseError("side not to move is in check")
        return board

    def to_fen(self) -> str:
        """Serialize the current position into a normalized FEN string."""
        ranks_str: List[str] = []
        for rank_idx in range(7, -1, -1):  # 7..0 maps to ranks 8..1
            run = 0
            row = []
            for file_idx in range(8):
                p = self.mailbox[rank_idx * 8 + file_idx]
                if p is None:
                    run += 1
                else:
                    if run > 0:
                        row.append(str(run))
                        run = 0
                    row.append(PIECE_TO_CHAR[p])
            if run > 0:
                row.append(str(run))
            ranks_str.append("".join(row))
        placement = "/".join(ranks_str)

        ep = square_to_str(self.ep_square) if self.ep_square is not None else "-"
        return (
            f"{placement} {self.side_to_move} {castling_to_str(self.castling)} {ep} "
            f"{self.halfmove_clock} {self.fullmove_number}"
        )

    def copy(self) -> "Board":
        """Return an independent board with the same position and history."""
        b = Board(
            bb=list(self.bb),
            side_to_move=self.side_to_move,
            castling=self.castling,
            ep_square=self.ep_square,
            halfmove_clock=self.halfmove_clock,
            fullmove_number=self.fullmove_number,
        )
        b.hash_history = list(self.hash_history)
        return b

    # --- Queries ---
    @property
    def occupied(self) -> int:
        return self.occupancy[0] | self.occupancy[1]

    def piece_at(self, sq: int) -> Optional[int]:
        return self.mailbox[sq]

    def king_square(self, side: str) -> int:
        """Return the square of ``side``'s king.

        Raises:
            InternalInvariantViolation: If that king is missing.
        """
        kbb = self.bb[WK] if side == "w" else self.bb[BK]
        if kbb == 0:
            raise InternalInvariantViolation(f"no {side} king on board")
        return (kbb & -kbb).bit_length() - 1

    def attackers_to(self, sq: int, by_side: str, occ: Optional[int] = None) -> int:
        """Return the bitboard of ``by_side`` pieces attacking ``sq``.

        Args:
            sq (int): Target square.
            by_side (str): ``"w"`` or ``"b"``.
            occ (Optional[int]): Occupancy to use for slider blocking; defaults
                to the current board occupancy.
        """
        if occ is None:
            occ = self.occupancy[0] | self.occupancy[1]
        bb = self.bb
        if by_side == "w":
            # White pawns attacking sq stand where a black pawn on sq would attack
            pawns = ATTACKS.pawn[1][sq] & bb[WP]
            n, b, r, q, k = bb[WN], bb[WB], bb[WR], bb[WQ], bb[WK]
        else:
            pawns = ATTACKS.pawn[0][sq] & bb[BP]
            n, b, r, q, k = bb[BN], bb[BB], bb[BR], bb[BQ], bb[BK]
        return (
            pawns
            | (ATTACKS.knight[sq] & n)
            | (ATTACKS.king[sq] & k)
            | (ATTACKS.bishop_attacks(sq, occ) & (b | q))
            | (ATTACKS.rook_attacks(sq, occ) & (r | q))
        )

    def is_attacked(self, sq: int, by_side: str) -> bool:
        """Return True if ``by_side`` attacks ``sq`` (early-exit variant of attackers_to)."""
        bb = self.bb
        if by_side == "w":
            if ATTACKS.pawn[1][sq] & bb[WP] or ATTACKS.knight[sq] & bb[WN]:
                return True
            if ATTACKS.king[sq] & bb[WK]:
                return True
            diag = bb[WB] | bb[WQ]
            orth = bb[WR] | bb[WQ]
        else:
            if ATTACKS.pawn[0][sq] & bb[BP] or ATTACKS.knight[sq] & bb[BN]:
                return True
            if ATTACKS.king[sq] & bb[BK]:
                return True
            diag = bb[BB] | bb[BQ]
            orth = bb[BR] | bb[BQ]
        occ = self.occupancy[0] | self.occupancy[1]
        if diag and ATTACKS.bishop_attacks(sq, occ) & diag:
            return True
        return bool(orth and ATTACKS.rook_attacks(sq, occ) & orth)

    def is_in_check(self, side: Optional[str] = None) -> bool:
        """Return True if ``side`` (default: side to move) has its king attacked."""
        if side is None:
            side = self.side_to_move
        return self.is_attacked(self.king_square(side), "b" if side == "w" else "w")

    # --- Draw rules ---
    def repetition_count(self) -> int:
        """Number of earlier occurrences of the current position since the last irreversible move."""
        count = 0
        h = self.zobrist_hash
        hist = self.hash_history
        # Same side to move only: step back two plies at a time
        limit = min(self.halfmove_clock, len(hist))
        for i in range(2, limit + 1, 2):
            if hist[-i] == h:
                count += 1
        return count

    def is_fifty_move_draw(self) -> bool:
        return self.halfmove_clock >= 100

    def has_insufficient_material(self) -> bool:
        """True for K vs K and K + single minor vs K."""
        bb = self.bb
        if bb[WP] | bb[BP] | bb[WR] | bb[BR] | bb[WQ] | bb[BQ]:
            return False
        minors = bb[WN] | bb[BN] | bb[WB] | bb[BB]
        return minors.bit_count() <= 1

    # --- Make / unmake ---
    def apply(self, move: Move) -> UndoRecord:
        """Apply a generated ``move`` in place and return its undo record.

        ``move`` must come from the move generator for this exact position
        (its ``kind`` tag drives castling, en passant and double pushes).
        """
        frm, to = move.from_sq, move.to_sq
        white = self.side_to_move == "w"
        us = 0 if white else 1
        them = 1 - us
        bb = self.bb
        mb = self.mailbox
        occ = self.occupancy
        keys = ZOBRIST.piece_square
        kind = move.kind

        prev_castling = self.castling
        prev_ep = self.ep_square
        prev_halfmove = self.halfmove_clock
        prev_hash = self.zobrist_hash

        piece = mb[frm]
        if piece is None:
            raise InternalInvariantViolation(f"no piece on {square_to_str(frm)} for {move}")
        self.hash_history.append(prev_hash)

        h = prev_hash
        if prev_ep is not None:
            h ^= ZOBRIST.ep_file[prev_ep & 7]

        # Remove captured piece (the en-passant victim sits behind the destination)
        cap_sq = (to - 8 if white else to + 8) if kind == MoveKind.EN_PASSANT else to
        captured = mb[cap_sq]
        if captured is not None:
            cb = 1 << cap_sq
            bb[captured] ^= cb
            occ[them] ^= cb
            mb[cap_sq] = None
            h ^= keys[captured][cap_sq]

        # Move (or promote) the piece
        fb = 1 << frm
        tb = 1 << to
        bb[piece] ^= fb
        mb[frm] = None
        h ^= keys[piece][frm]
        placed = PROMO_PIECE[us][move.promotion] if move.promotion else piece
        bb[placed] |= tb
        mb[to] = placed
        occ[us] ^= fb | tb
        h ^= keys[placed][to]

        # Castling also moves the rook
        if kind == MoveKind.KING_CASTLE or kind == MoveKind.QUEEN_CASTLE:
            rf, rt = CASTLE_ROOK_SQUARES[to]
            rook = WR if white else BR
            rb = (1 << rf) | (1 << rt)
            bb[rook] ^= rb
            occ[us] ^= rb
            mb[rf] = None
            mb[rt] = rook
            h ^= keys[rook][rf] ^ keys[rook][rt]

        rights = prev_castling & CASTLING_KEEP[frm] & CASTLING_KEEP[to]
        if rights != prev_castling:
            h ^= ZOBRIST.castling[prev_castling] ^ ZOBRIST.castling[rights]
            self.castling = rights

        if kind == MoveKind.DOUBLE_PUSH:
            self.ep_square = (frm + to) >> 1
            h ^= ZOBRIST.ep_file[to & 7]
        else:
            self.ep_square = None

        if piece == WP or piece == BP or captured is not None:
            self.halfmove_clock = 0
        else:
            self.halfmove_clock = prev_halfmove + 1
        if not white:
            self.fullmove_number += 1

        self.side_to_move = "b" if white else "w"
        self.zobrist_hash = h ^ ZOBRIST.side_to_move

        return UndoRecord(
            move=move,
            captured=captured,
            castling=prev_castling,
            ep_square=prev_ep,
            halfmove_clock=prev_halfmove,
            zobrist_hash=prev_hash,
        )

    def revert(self, record: UndoRecord) -> None:
        """Undo the most recent unreverted ``apply``; ``record`` must be its result."""
        move = record.move
        frm, to = move.from_sq, move.to_sq
        white = self.side_to_move == "b"  # the side that made the move
        us = 0 if white else 1
        bb = self.bb
        mb = self.mailbox
        occ = self.occupancy

        placed = mb[to]
        piece = (WP if white else BP) if move.promotion else placed
        fb = 1 << frm
        tb = 1 << to
        bb[placed] ^= tb
        bb[piece] |= fb
        mb[to] = None
        mb[frm] = piece
        occ[us] ^= fb | tb

        kind = move.kind
        if kind == MoveKind.KING_CASTLE or kind == MoveKind.QUEEN_CASTLE:
            rf, rt = CASTLE_ROOK_SQUARES[to]
            rook = WR if white else BR
            rb = (1 << rf) | (1 << rt)
            bb[rook] ^= rb
            occ[us] ^= rb
            mb[rt] = None
            mb[rf] = rook

        captured = record.captured
        if captured is not None:
            cap_sq = (to - 8 if white else to + 8) if kind == MoveKind.EN_PASSANT else to
            bb[captured] |= 1 << cap_sq
            occ[1 - us] |= 1 << cap_sq
            mb[cap_sq] = captured

        self.side_to_move = "w" if white else "b"
        self.castling = record.castling
        self.ep_square = record.ep_square
        self.halfmove_clock = record.halfmove_clock
        self.zobrist_hash = record.zobrist_hash
        if not white:
            self.fullmove_number -= 1
        self.hash_history.pop()

    # --- Diagnostics ---
    def validate(self) -> None:
        """Check structural invariants.

        Raises:
            InternalInvariantViolation: If piece sets overlap, aggregates or
                mailbox disagree with the piece sets, or a side does not have
                exactly one king.
        """
        seen = 0
        white = 0
        black = 0
        for p in PIECE_ORDER:
            if seen & self.bb[p]:
                raise InternalInvariantViolation(f"piece set {PIECE_TO_CHAR[p]} overlaps another")
            seen |= self.bb[p]
            if p < 6:
                white |= self.bb[p]
            else:
                black |= self.bb[p]
        if self.occupancy != [white, black]:
            raise InternalInvariantViolation("occupancy aggregates out of sync")
        for sq in range(64):
            p = self.mailbox[sq]
            if p is None:
                if (seen >> sq) & 1:
                    raise InternalInvariantViolation(f"mailbox empty on occupied {square_to_str(sq)}")
            elif not (self.bb[p] >> sq) & 1:
                raise InternalInvariantViolation(f"mailbox mismatch on {square_to_str(sq)}")
        if self.bb[WK].bit_count() != 1 or self.bb[BK].bit_count() != 1:
            raise InternalInvariantViolation("each side must have exactly one king")
        if self.zobrist_hash != compute_hash_from_scratch(self):
            raise InternalInvariantViolation("incremental hash out of sync")

    def __str__(self) -> str:
        rows: List[str] = []
        for r in range(7, -1, -1):
            cells = []
            for f in range(8):
                p = self.mailbox[r * 8 + f]
                cells.append(PIECE_TO_CHAR[p] if p is not None else ".")
            rows.append(f"{r + 1} " + " ".join(cells))
        rows.append("  a b c d e f g h")
        return "\n".join(rows)
