from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from .board import Board, UndoRecord
from .move import Move
from .movegen import find_legal, generate_legal, has_legal_moves, parse_legal


@dataclass
class Game:
    """Game wrapper around a board with helper operations.

    Responsibility: track board state, validate moves at the boundary, keep the
    undo stack for the moves played so far.
    """

    board: Board
    move_stack: List[Move] = field(default_factory=list)
    undo_stack: List[UndoRecord] = field(default_factory=list, repr=False)

    @classmethod
    def new(cls) -> "Game":
        return cls(board=Board.startpos())

    @classmethod
    def from_fen(cls, fen: str) -> "Game":
        return cls(board=Board.from_fen(fen))

    @classmethod
    def from_position(cls, base: str, moves: Sequence[str] = ()) -> "Game":
        """Build a game from ``"startpos"`` or a FEN, then play ``moves`` (UCI).

        Nothing is shared with any existing game, so a failure leaves the
        caller's current game untouched.

        Raises:
            ParseError: If the FEN or a move string is malformed.
            IllegalMoveError: If a move is not legal at its point in the sequence.
        """
        if base == "startpos":
            game = cls.new()
        else:
            game = cls.from_fen(base)
        for uci in moves:
            game.push_uci(uci)
        return game

    def to_fen(self) -> str:
        return self.board.to_fen()

    def legal_moves(self) -> List[Move]:
        return generate_legal(self.board)

    def apply_move(self, move: Move) -> Move:
        """Validate and play ``move``; returns the resolved legal move.

        Raises:
            IllegalMoveError: If ``move`` is not legal; the board is unchanged.
        """
        legal = find_legal(self.board, move)
        self.undo_stack.append(self.board.apply(legal))
        self.move_stack.append(legal)
        return legal

    def push_uci(self, uci: str) -> Move:
        legal = parse_legal(self.board, uci)
        self.undo_stack.append(self.board.apply(legal))
        self.move_stack.append(legal)
        return legal

    def undo_move(self) -> Move:
        if not self.move_stack:
            raise ValueError("no moves to undo")
        self.board.revert(self.undo_stack.pop())
        return self.move_stack.pop()

    # --- State flags for protocol ---
    def in_check(self) -> bool:
        return self.board.is_in_check()

    def checkmate(self) -> bool:
        return (not has_legal_moves(self.board)) and self.board.is_in_check()

    def stalemate(self) -> bool:
        return (not has_legal_moves(self.board)) and (not self.board.is_in_check())

    def is_draw(self) -> bool:
        # Draw by 50-move rule, stalemate, threefold repetition or bare kings/minor
        if self.board.is_fifty_move_draw():
            return True
        if self.stalemate():
            return True
        if self.board.has_insufficient_material():
            return True
        return self.board.repetition_count() >= 2

    def move_history_uci(self) -> List[str]:
        return [m.to_uci() for m in self.move_stack]
