from __future__ import annotations

import pytest

from src.engine.board import Board, STARTPOS_FEN
from src.engine.perft import perft, perft_divide


KIWIPETE = "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1"


@pytest.mark.parametrize(
    ("depth", "expected"),
    [
        (0, 1),
        (1, 20),
        (2, 400),
        (3, 8902),
    ],
)
def test_startpos_perft(depth: int, expected: int) -> None:
    b = Board.from_fen(STARTPOS_FEN)
    assert perft(b, depth) == expected
    # Board is restored after counting
    assert b.to_fen() == STARTPOS_FEN


@pytest.mark.slow
def test_startpos_perft_depth4() -> None:
    b = Board.from_fen(STARTPOS_FEN)
    assert perft(b, 4) == 197281


@pytest.mark.parametrize(
    ("fen", "depth", "expected"),
    [
        # Castling, en passant and promotion heavy
        (KIWIPETE, 1, 48),
        (KIWIPETE, 2, 2039),
        (KIWIPETE, 3, 97862),
        # Discovered checks along the rank, en passant pins
        ("8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1", 2, 191),
        ("8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1", 3, 2812),
        # Promotions with capture, black castling only
        ("r3k2r/Pppp1ppp/1b3nbN/nP6/BBP1P3/q4N2/Pp1P2PP/R2Q1RK1 w kq - 0 1", 1, 6),
        ("r3k2r/Pppp1ppp/1b3nbN/nP6/BBP1P3/q4N2/Pp1P2PP/R2Q1RK1 w kq - 0 1", 2, 264),
        ("r3k2r/Pppp1ppp/1b3nbN/nP6/BBP1P3/q4N2/Pp1P2PP/R2Q1RK1 w kq - 0 1", 3, 9467),
        ("rnbq1k1r/pp1Pbppp/2p5/8/2B5/8/PPP1NnPP/RNBQK2R w KQ - 1 8", 1, 44),
        ("rnbq1k1r/pp1Pbppp/2p5/8/2B5/8/PPP1NnPP/RNBQK2R w KQ - 1 8", 2, 1486),
        ("r4rk1/1pp1qppp/p1np1n2/2b1p1B1/2B1P1b1/P1NP1N2/1PP1QPPP/R4RK1 w - - 0 10", 1, 46),
        ("r4rk1/1pp1qppp/p1np1n2/2b1p1B1/2B1P1b1/P1NP1N2/1PP1QPPP/R4RK1 w - - 0 10", 2, 2079),
    ],
)
def test_reference_positions(fen: str, depth: int, expected: int) -> None:
    b = Board.from_fen(fen)
    assert perft(b, depth) == expected


@pytest.mark.slow
def test_position4_perft_depth3() -> None:
    b = Board.from_fen("rnbq1k1r/pp1Pbppp/2p5/8/2B5/8/PPP1NnPP/RNBQK2R w KQ - 1 8")
    assert perft(b, 3) == 62379


def test_divide_sums_to_perft() -> None:
    b = Board.from_fen(KIWIPETE)
    divide = perft_divide(b, 2)
    assert len(divide) == 48
    assert sum(divide.values()) == 2039
    assert divide["e1g1"] == perft_after(b, "e1g1", 1)


def perft_after(b: Board, uci: str, depth: int) -> int:
    from src.engine.movegen import parse_legal

    record = b.apply(parse_legal(b, uci))
    try:
        return perft(b, depth)
    finally:
        b.revert(record)


def test_negative_depth_rejected() -> None:
    with pytest.raises(ValueError):
        perft(Board.startpos(), -1)
