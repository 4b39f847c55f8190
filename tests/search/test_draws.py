from __future__ import annotations

import pytest

from src.engine.board import Board
from src.engine.game import Game
from src.eval import evaluate
from src.search.service import MATE_SCORE, SearchService


def test_fifty_move_rule_draw_returns_zero() -> None:
    # K vs K with the 50-move counter exceeded
    board = Board.from_fen("8/8/8/8/8/8/8/4K2k w - - 100 1")
    res = SearchService().search(board, depth=3)
    assert res.mate_in is None
    assert res.score == 0


def test_fifty_move_rule_reached_inside_search() -> None:
    # A queen up, but every quiet move hits the 100-ply limit
    board = Board.from_fen("4k3/8/8/8/8/8/8/3QK3 w - - 99 60")
    assert evaluate(board) > 800
    res = SearchService().search(board, depth=1)
    assert res.score == 0


@pytest.mark.parametrize("depth", [1, 2])
def test_mate_on_the_hundredth_half_move_beats_the_draw(depth: int) -> None:
    board = Board.from_fen("6k1/5ppp/8/8/8/8/8/R5K1 w - - 99 60")
    res = SearchService().search(board, depth=depth)
    assert res.best_move is not None and res.best_move.to_uci() == "a1a8"
    assert res.score == MATE_SCORE - 1

def test_insufficient_material_scores_zero() -> None:
    board = Board.from_fen("4k3/8/8/8/8/8/8/2B1K3 w - - 0 1")
    assert SearchService().search(board, depth=2).score == 0


@pytest.mark.parametrize("alpha_beta", [True, False])
def test_losing_side_takes_threefold_repetition(alpha_beta: bool) -> None:
    shuffle = ["g1f3", "g8f6", "f3g1", "f6g8", "g1f3", "g8f6", "f3g1"]
    game = Game.from_position("4k1n1/8/8/8/8/8/8/3QK1N1 w - - 0 1", shuffle)
    assert game.board.side_to_move == "b"
    res = SearchService().search(game.board, depth=1, alpha_beta=alpha_beta)
    assert res.best_move is not None and res.best_move.to_uci() == "f6g8"
    assert res.score == 0
