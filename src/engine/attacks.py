"""Precomputed attack tables.

Sliding pieces (rooks, bishops) use magic bitboards: for every square a
relevance mask selects the squares that can block the piece, and a
multiplicative constant hashes the masked occupancy onto a dense table of
attack sets. Knights, kings and pawns have fixed per-square tables.

Tables are built once per process (``ATTACKS``) and never mutated afterwards,
so any number of searches may read them without locking.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Final, Iterable, List, Optional, Tuple

from src.config import load_config

from .bitboard import MASK64, SplitMix64, popcount, subsets
from .errors import InternalInvariantViolation


logger = logging.getLogger(__name__)

ROOK_DIRS: Tuple[Tuple[int, int], ...] = ((1, 0), (-1, 0), (0, 1), (0, -1))
BISHOP_DIRS: Tuple[Tuple[int, int], ...] = ((1, 1), (-1, 1), (1, -1), (-1, -1))
KNIGHT_OFFSETS = ((-1, 2), (1, 2), (-2, 1), (2, 1), (-2, -1), (2, -1), (-1, -2), (1, -2))
KING_OFFSETS = ((-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1))

HIGH_BYTE = 0xFF00000000000000
MAX_MAGIC_TRIES = 10_000_000

# Output of find_magic for seed 0x5EED_C0FFEE_F00D, indexed a1=0 .. h8=63
# fmt: off
ROOK_MAGICS: Final = (
    0x0080041484204000, 0x1040002000100040, 0x6880100020000880, 0x060008900E002040,
    0x1200200802001104, 0x0200040801820010, 0x21000100020000C4, 0x0C80070001204880,
    0x0080802080004000, 0x0908804008842000, 0x1020801000200880, 0x00450008E1041001,
    0x0100800800800400, 0x0040800200800400, 0x1408808001000200, 0x800200088C011842,
    0x0040008020408000, 0x0020008020400081, 0x0800808010002002, 0x8008008008100080,
    0x1002110008010004, 0x0004008002000480, 0x0040040008019002, 0x01AA020028408114,
    0x8000401080002080, 0x0020200040005002, 0x0228100080802000, 0x0002010A00204090,
    0x4310080080800400, 0x5110020080040080, 0x4200020400081081, 0x2000008200040041,
    0x2000400030800084, 0x0020002040401000, 0x0000200080801008, 0x881200410A001020,
    0x04C0100801000500, 0x6001000803000400, 0x1400011004000208, 0x820802530200008C,
    0x0400800100430020, 0x2010004020004000, 0x0010100020008080, 0x0010008008008010,
    0x00020120100A0004, 0x0081400420080110, 0x0400810802040010, 0x00500301A4420004,
    0x0044290450800100, 0x4400400820008880, 0x1802184022008200, 0x0008080010008080,
    0x1003011004880100, 0x0845000802040100, 0x0008900802010400, 0x100004004100A200,
    0x8040401021020082, 0x0010801041020022, 0x8480932900402001, 0x8010100100A02C19,
    0x80020020F0140812, 0x0821000208040001, 0x2004500208008104, 0x0000870048812402,
)

BISHOP_MAGICS: Final = (
    0x8040020400620041, 0x001810445080E090, 0x8010440080200025, 0x180E408102202020,
    0x88060E1084801002, 0x4021042004008210, 0x849080C820100000, 0x0200410288206200,
    0x2080580250024A0C, 0x00C4100148010040, 0x8C000802004A0000, 0x2020240502000208,
    0x0228611040004292, 0x0014010120900004, 0xA420090401A04824, 0x0240102205100944,
    0x6120000420440128, 0x22200008A8014040, 0x01100048014058A2, 0x8214061202120000,
    0x1901000820080001, 0x0402008100808428, 0x0020801044104870, 0x011100024C088400,
    0x0020062008080840, 0x000A200042086621, 0x00A0820010002200, 0x021004000C401060,
    0x00C1010064104000, 0x0030088241480400, 0x9001091404040142, 0x0004005000210C20,
    0x0001500902106060, 0x00441008609A1266, 0x8004C1D000C80121, 0x8802008400060210,
    0x8208020400001100, 0x4602100040020808, 0x00B02C0441010940, 0xA208210100042880,
    0x0011041084204200, 0x2104008808200408, 0x0400620026005001, 0x10080D4010404200,
    0x1008200200801410, 0x0010201800204144, 0xC010108200840444, 0x050811040080202C,
    0x1102008404400010, 0x0090221110084000, 0x0001410041101000, 0x0120214104880000,
    0x02211808A1010081, 0x4020220802082008, 0x0204200444008000, 0x4030842084104044,
    0x100190808410C000, 0x0000042C01080800, 0x002C80010080D001, 0x8400100040841100,
    0x010210410485040A, 0x0000184005084080, 0x84080460680210A1, 0x0004044088010102,
)
# fmt: on


def ray_attacks(sq: int, occ: int, dirs: Iterable[Tuple[int, int]]) -> int:
    """Reference attack set by walking rays until the first blocker (inclusive)."""
    f, r = sq % 8, sq // 8
    attacks = 0
    for df, dr in dirs:
        tf, tr = f + df, r + dr
        while 0 <= tf < 8 and 0 <= tr < 8:
            to = tr * 8 + tf
            attacks |= 1 << to
            if (occ >> to) & 1:
                break
            tf += df
            tr += dr
    return attacks


def relevance_mask(sq: int, dirs: Iterable[Tuple[int, int]]) -> int:
    """Squares that can block a slider on ``sq``; the last square of each ray is excluded."""
    f, r = sq % 8, sq // 8
    mask = 0
    for df, dr in dirs:
        tf, tr = f + df, r + dr
        while 0 <= tf + df < 8 and 0 <= tr + dr < 8:
            mask |= 1 << (tr * 8 + tf)
            tf += df
            tr += dr
    return mask


def _step_table(offsets: Iterable[Tuple[int, int]]) -> Tuple[int, ...]:
    offsets = tuple(offsets)
    table: List[int] = []
    for sq in range(64):
        f, r = sq % 8, sq // 8
        bb = 0
        for df, dr in offsets:
            tf, tr = f + df, r + dr
            if 0 <= tf < 8 and 0 <= tr < 8:
                bb |= 1 << (tr * 8 + tf)
        table.append(bb)
    return tuple(table)


@dataclass(frozen=True)
class MagicEntry:
    """Magic hashing data for one slider on one square."""

    mask: int
    magic: int
    bits: int
    shift: int
    table: Tuple[int, ...]

    def attacks(self, occ: int) -> int:
        return self.table[(((occ & self.mask) * self.magic) & MASK64) >> self.shift]


def magic_entry(sq: int, dirs: Tuple[Tuple[int, int], ...], magic: int) -> MagicEntry:
    """Build the dense attack table for a known magic constant.

    Raises:
        InternalInvariantViolation: If two occupancies with different attack
            sets hash to the same index.
    """
    mask = relevance_mask(sq, dirs)
    bits = popcount(mask)
    shift = 64 - bits
    table: List[Optional[int]] = [None] * (1 << bits)
    for occ in subsets(mask):
        att = ray_attacks(sq, occ, dirs)
        idx = ((occ * magic) & MASK64) >> shift
        if table[idx] is None:
            table[idx] = att
        elif table[idx] != att:
            raise InternalInvariantViolation(f"magic {magic:#018x} collides on square {sq}")
    return MagicEntry(
        mask=mask,
        magic=magic,
        bits=bits,
        shift=shift,
        table=tuple(0 if att is None else att for att in table),
    )


def find_magic(
    sq: int, dirs: Tuple[Tuple[int, int], ...], rng: SplitMix64
) -> MagicEntry:
    """Search for a constant mapping every masked occupancy to its attack set.

    Distinct occupancies may share an index only when their attack sets are
    identical (constructive collisions).

    Raises:
        InternalInvariantViolation: If no constant is found within the retry bound.
    """
    mask = relevance_mask(sq, dirs)
    shift = 64 - popcount(mask)
    pairs = [(occ, ray_attacks(sq, occ, dirs)) for occ in subsets(mask)]

    for _ in range(MAX_MAGIC_TRIES):
        magic = rng.sparse()
        # Cheap rejection: good magics spread the mask into the high byte
        if popcount(((mask * magic) & MASK64) & HIGH_BYTE) < 6:
            continue
        used: dict[int, int] = {}
        for occ, att in pairs:
            idx = ((occ * magic) & MASK64) >> shift
            if used.setdefault(idx, att) != att:
                break
        else:
            return magic_entry(sq, dirs, magic)
    raise InternalInvariantViolation(f"no magic found for square {sq}")


class AttackTables:
    """Read-only attack lookups for every piece type.

    Table layout:
    - rook[64], bishop[64]: MagicEntry per square
    - knight[64], king[64]: attack bitboards per square
    - pawn[color][64]: squares attacked by a pawn of ``color`` (0 white, 1 black)
    """

    def __init__(
        self,
        rook: Tuple[MagicEntry, ...],
        bishop: Tuple[MagicEntry, ...],
        knight: Tuple[int, ...],
        king: Tuple[int, ...],
        pawn: Tuple[Tuple[int, ...], Tuple[int, ...]],
    ) -> None:
        self.rook = rook
        self.bishop = bishop
        self.knight = knight
        self.king = king
        self.pawn = pawn

    @classmethod
    def build(cls, seed: Optional[int] = None, *, verify: bool = True) -> "AttackTables":
        """Build every table; ``seed`` switches from the embedded magics to a fresh search.

        A search is pure Python and takes on the order of a minute.
        """
        start = time.perf_counter()
        if seed is None:
            rook = tuple(magic_entry(sq, ROOK_DIRS, m) for sq, m in enumerate(ROOK_MAGICS))
            bishop = tuple(magic_entry(sq, BISHOP_DIRS, m) for sq, m in enumerate(BISHOP_MAGICS))
        else:
            rng = SplitMix64(seed)
            rook = tuple(find_magic(sq, ROOK_DIRS, rng) for sq in range(64))
            bishop = tuple(find_magic(sq, BISHOP_DIRS, rng) for sq in range(64))
        tables = cls(
            rook=rook,
            bishop=bishop,
            knight=_step_table(KNIGHT_OFFSETS),
            king=_step_table(KING_OFFSETS),
            pawn=(_step_table(((-1, 1), (1, 1))), _step_table(((-1, -1), (1, -1)))),
        )
        if verify:
            tables.verify()
        logger.info(
            "attack tables ready",
            extra={
                "seed": seed,
                "verified": verify,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return tables

    def rook_attacks(self, sq: int, occ: int) -> int:
        e = self.rook[sq]
        return e.table[(((occ & e.mask) * e.magic) & MASK64) >> e.shift]

    def bishop_attacks(self, sq: int, occ: int) -> int:
        e = self.bishop[sq]
        return e.table[(((occ & e.mask) * e.magic) & MASK64) >> e.shift]

    def queen_attacks(self, sq: int, occ: int) -> int:
        return self.rook_attacks(sq, occ) | self.bishop_attacks(sq, occ)

    def verify(self) -> None:
        """Exhaustively compare every masked occupancy against ray casting.

        Raises:
            InternalInvariantViolation: On the first mismatch.
        """
        for name, entries, dirs in (
            ("rook", self.rook, ROOK_DIRS),
            ("bishop", self.bishop, BISHOP_DIRS),
        ):
            for sq, entry in enumerate(entries):
                if entry.mask != relevance_mask(sq, dirs):
                    raise InternalInvariantViolation(f"{name} mask mismatch on square {sq}")
                if len(entry.table) != 1 << entry.bits:
                    raise InternalInvariantViolation(f"{name} table size mismatch on square {sq}")
                for occ in subsets(entry.mask):
                    if entry.attacks(occ) != ray_attacks(sq, occ, dirs):
                        raise InternalInvariantViolation(
                            f"{name} magic gap on square {sq} for occupancy {occ:#018x}"
                        )


# Global tables, built once per process
ATTACKS = AttackTables.build(load_config().magic_seed)
