from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Union
import logging

from src.config import EngineConfig, load_config
from src.engine.board import Board
from src.engine.game import Game
from src.engine.move import Move
from src.engine.movegen import generate_legal, has_legal_moves
from src.eval import evaluate
from src.search.limits import Budget, SearchLimits

logger = logging.getLogger(__name__)

MATE_SCORE = 1_000_000  # checkmated side to move at the root scores -MATE_SCORE
INF = MATE_SCORE + 1
MAX_PLY = 64


@dataclass
class SearchResult:
    best_move: Optional[Move]
    score: int
    pv: List[Move] = field(default_factory=list)
    nodes: int = 0
    depth: int = 0
    time_ms: int = 0
    stopped: bool = False

    @property
    def mate_in(self) -> Optional[int]:
        """Moves to mate (negative when being mated), or None for a centipawn score."""
        if abs(self.score) < MATE_SCORE - MAX_PLY:
            return None
        plies = MATE_SCORE - abs(self.score)
        moves = (plies + 1) // 2
        return moves if self.score > 0 else -moves

    @property
    def score_cp(self) -> Optional[int]:
        return None if self.mate_in is not None else self.score


IterCallback = Callable[[SearchResult], None]


def _is_draw(board: Board) -> bool:
    return (
        board.is_fifty_move_draw()
        or board.has_insufficient_material()
        or board.repetition_count() >= 2
    )


class SearchService:
    """Negamax search over the legal move generator.

    ``search`` is a single fixed-depth pass; ``go`` wraps it in iterative
    deepening under a :class:`SearchLimits` budget.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or load_config()

    def search(
        self,
        board: Board,
        depth: int,
        limits: Optional[SearchLimits] = None,
        *,
        alpha_beta: bool = True,
    ) -> SearchResult:
        """Search ``board`` to ``depth`` plies and return the best move and its score.

        A depth of 0 is a leaf: ``(None, evaluate(board))``. With no legal moves
        the score is ``-MATE_SCORE`` when in check and 0 otherwise. Budget
        exhaustion is a normal outcome: the best move found so far is returned
        with ``stopped`` set. The board is restored before returning.

        ``alpha_beta=False`` is the plain negamax reference; pruning returns the
        same root move and score when the budget is not hit.

        Raises:
            InternalInvariantViolation: If either king is missing.
        """
        return self._search(board, depth, Budget(limits), alpha_beta)

    def _search(self, board: Board, depth: int, budget: Budget, alpha_beta: bool) -> SearchResult:
        if depth < 0:
            raise ValueError("depth must be >= 0")
        board.king_square("w")
        board.king_square("b")
        depth = min(depth, MAX_PLY)
        start_nodes = budget.nodes

        def negamax(d: int, alpha: int, beta: int, ply: int) -> Tuple[int, List[Move]]:
            if budget.enter_node():
                # Below the root the value is discarded by the caller
                return (evaluate(board) if ply == 0 else 0), []
            if d == 0 or ply >= MAX_PLY:
                # Mate at the horizon; stalemate is left to the static score
                if ply > 0 and board.is_in_check() and not has_legal_moves(board):
                    return -MATE_SCORE + ply, []
                if ply > 0 and _is_draw(board):
                    return 0, []
                return evaluate(board), []

            moves = generate_legal(board)
            if not moves:
                if board.is_in_check():
                    return -MATE_SCORE + ply, []
                return 0, []
            # Mate and stalemate take precedence over the draw rules
            if ply > 0 and _is_draw(board):
                return 0, []

            best_score = -INF
            best_pv: List[Move] = []
            for mv in moves:
                record = board.apply(mv)
                try:
                    child, child_pv = negamax(d - 1, -beta, -alpha, ply + 1)
                finally:
                    board.revert(record)
                if budget.exhausted:
                    # The interrupted child's score is incomplete
                    break
                score = -child
                if score > best_score:
                    best_score = score
                    best_pv = [mv] + child_pv
                    if alpha_beta:
                        if score > alpha:
                            alpha = score
                        if alpha >= beta:
                            break
            if not best_pv:
                return evaluate(board), []
            return best_score, best_pv

        score, pv = negamax(depth, -INF, INF, 0)
        result = SearchResult(
            best_move=pv[0] if pv else None,
            score=score,
            pv=pv,
            nodes=budget.nodes - start_nodes,
            depth=depth,
            time_ms=budget.elapsed_ms(),
            stopped=budget.exhausted,
        )
        logger.debug(
            "search done",
            extra={
                "depth": depth,
                "score": score,
                "nodes": result.nodes,
                "time_ms": result.time_ms,
                "stopped": result.stopped,
                "alpha_beta": alpha_beta,
            },
        )
        return result

    def go(
        self,
        target: Union[Board, Game],
        limits: Optional[SearchLimits] = None,
        on_iter: Optional[IterCallback] = None,
        *,
        alpha_beta: Optional[bool] = None,
    ) -> SearchResult:
        """Iterative deepening from depth 1 until a limit is reached.

        Returns the last completed iteration; if none completed, the
        interrupted one, and failing that the first legal move. ``on_iter`` is
        called after every completed iteration.
        """
        board = target.board if isinstance(target, Game) else target
        if limits is None:
            limits = SearchLimits(depth=self.config.depth)
        if alpha_beta is None:
            alpha_beta = self.config.alpha_beta

        if limits.depth is not None:
            max_depth = limits.depth
        elif limits.infinite or limits.movetime_ms is not None or limits.nodes is not None:
            max_depth = MAX_PLY
        else:
            max_depth = self.config.depth
        max_depth = max(1, min(max_depth, self.config.max_depth, MAX_PLY))

        budget = Budget(limits)
        completed: Optional[SearchResult] = None
        interrupted: Optional[SearchResult] = None
        for d in range(1, max_depth + 1):
            res = self._search(board, d, budget, alpha_beta)
            res.nodes = budget.nodes
            if res.stopped:
                interrupted = res
                break
            completed = res
            if on_iter is not None:
                on_iter(res)
            if res.best_move is None or res.mate_in is not None:
                # Terminal root, or a forced mate already proven
                break

        result = completed
        if result is None or result.best_move is None:
            if interrupted is not None and interrupted.best_move is not None:
                result = interrupted
        if result is None:
            result = SearchResult(best_move=None, score=evaluate(board), stopped=True)
        if result.best_move is None:
            legal = generate_legal(board)
            if legal:
                result.best_move = legal[0]
        result.time_ms = budget.elapsed_ms()
        logger.debug(
            "go done",
            extra={
                "depth": result.depth,
                "nodes": budget.nodes,
                "time_ms": result.time_ms,
                "best_move": result.best_move.to_uci() if result.best_move else None,
            },
        )
        return result
