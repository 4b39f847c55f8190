from __future__ import annotations

from typing import Iterator

# Squares are 0..63 (a1=0 .. h8=63), rank-major from white's perspective.

MASK64 = 0xFFFFFFFFFFFFFFFF


def popcount(bb: int) -> int:
    return bb.bit_count()


def iter_bits(bb: int) -> Iterator[int]:
    """Yield set square indices in ascending order."""
    while bb:
        low = bb & -bb
        yield low.bit_length() - 1
        bb ^= low


def mirror_sq(sq: int) -> int:
    # Flip vertically (rank mirror)
    return sq ^ 56


def subsets(mask: int) -> Iterator[int]:
    """Enumerate every subset of ``mask`` (carry-rippler), starting with 0."""
    sub = 0
    while True:
        yield sub
        sub = (sub - mask) & mask
        if sub == 0:
            return


class SplitMix64:
    """Deterministic 64-bit SplitMix64 generator.

    Shared by the Zobrist keys and the magic number search so that every
    process builds identical tables from the same seed.
    """

    def __init__(self, seed: int) -> None:
        self.state = seed & MASK64

    def next(self) -> int:
        self.state = (self.state + 0x9E3779B97F4A7C15) & MASK64
        z = self.state
        z = (z ^ (z >> 30)) * 0xBF58476D1CE4E5B9 & MASK64
        z = (z ^ (z >> 27)) * 0x94D049BB133111EB & MASK64
        z = z ^ (z >> 31)
        return z & MASK64

    def sparse(self) -> int:
        # Few set bits make good magic candidates
        return self.next() & self.next() & self.next()
