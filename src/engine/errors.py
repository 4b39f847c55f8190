from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine errors."""


class ParseError(EngineError, ValueError):
    """Malformed FEN or move text supplied at the boundary.

    Raised before any state is mutated.
    """


class IllegalMoveError(EngineError, ValueError):
    """A well-formed move that is not in the current legal move set."""

    def __init__(self, uci: str, fen: str | None = None) -> None:
        self.uci = uci
        self.fen = fen
        msg = f"illegal move: {uci}"
        if fen:
            msg += f" in position {fen}"
        super().__init__(msg)


class InternalInvariantViolation(EngineError, RuntimeError):
    """Broken board invariant or attack table gap; signals a defect, never user error."""
