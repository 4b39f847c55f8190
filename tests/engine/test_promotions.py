from __future__ import annotations

from src.engine.board import Board, BQ, WN, WP
from src.engine.move import str_to_square
from src.engine.movegen import generate_legal, parse_legal


def _uci_list(b: Board) -> list[str]:
    return [m.to_uci() for m in generate_legal(b)]


def test_white_pawn_push_promotions_in_order() -> None:
    b = Board.from_fen("k7/4P3/8/8/8/8/8/4K3 w - - 0 1")
    ms = _uci_list(b)
    promos = [u for u in ms if u.startswith("e7e8")]
    assert promos == ["e7e8q", "e7e8r", "e7e8b", "e7e8n"]


def test_white_pawn_capture_promotion() -> None:
    b = Board.from_fen("3rk3/4P3/8/8/8/8/8/4K3 w - - 0 1")
    assert set(_uci_list(b)) >= {"e7d8q", "e7d8r", "e7d8b", "e7d8n"}


def test_black_pawn_push_promotions() -> None:
    b = Board.from_fen("4k3/8/8/8/8/8/3p4/6K1 b - - 0 1")
    assert set(_uci_list(b)) >= {"d2d1q", "d2d1r", "d2d1b", "d2d1n"}


def test_under_promotion_places_chosen_piece_and_reverts() -> None:
    fen = "3rk3/4P3/8/8/8/8/8/4K3 w - - 0 1"
    b = Board.from_fen(fen)
    record = b.apply(parse_legal(b, "e7d8n"))
    d8 = str_to_square("d8")
    assert b.piece_at(d8) == WN
    assert b.bb[WP] == 0
    b.revert(record)
    assert b.to_fen() == fen


def test_black_promotion_to_queen() -> None:
    b = Board.from_fen("4k3/8/8/8/8/8/3p4/K7 b - - 0 1")
    b.apply(parse_legal(b, "d2d1q"))
    assert b.piece_at(str_to_square("d1")) == BQ


def test_promotion_requires_suffix() -> None:
    import pytest

    from src.engine.errors import IllegalMoveError

    b = Board.from_fen("k7/4P3/8/8/8/8/8/4K3 w - - 0 1")
    with pytest.raises(IllegalMoveError):
        parse_legal(b, "e7e8")
