from __future__ import annotations

import pytest

from src.engine.board import Board, STARTPOS_FEN
from src.engine.movegen import generate_legal, parse_legal
from src.engine.zobrist import compute_hash_from_scratch


POSITIONS = [
    STARTPOS_FEN,
    "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1",
    "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1",
    "r3k2r/Pppp1ppp/1b3nbN/nP6/BBP1P3/q4N2/Pp1P2PP/R2Q1RK1 w kq - 0 1",
    "rnbq1k1r/pp1Pbppp/2p5/8/2B5/8/PPP1NnPP/RNBQK2R w KQ - 1 8",
    # En passant available
    "rnbqkbnr/ppp1p1pp/8/3pPp2/8/8/PPPP1PPP/RNBQKBNR w KQkq f6 0 3",
]


def _snapshot(b: Board):
    return (
        list(b.bb),
        b.side_to_move,
        b.castling,
        b.ep_square,
        b.halfmove_clock,
        b.fullmove_number,
        list(b.occupancy),
        list(b.mailbox),
        b.zobrist_hash,
        list(b.hash_history),
    )


def test_make_unmake_restores_position() -> None:
    b = Board.from_fen(STARTPOS_FEN)
    h_before = compute_hash_from_scratch(b)
    mv = parse_legal(b, "e2e4")
    record = b.apply(mv)
    assert b.to_fen() != STARTPOS_FEN
    b.revert(record)
    assert b.to_fen() == STARTPOS_FEN
    assert compute_hash_from_scratch(b) == h_before


@pytest.mark.parametrize("fen", POSITIONS)
def test_every_legal_move_round_trips(fen: str) -> None:
    b = Board.from_fen(fen)
    before = _snapshot(b)
    for mv in generate_legal(b):
        record = b.apply(mv)
        b.validate()
        b.revert(record)
        assert _snapshot(b) == before, mv.to_uci()


@pytest.mark.parametrize("fen", POSITIONS)
def test_two_ply_round_trip_with_nested_records(fen: str) -> None:
    b = Board.from_fen(fen)
    before = _snapshot(b)
    for mv in generate_legal(b):
        r1 = b.apply(mv)
        for reply in generate_legal(b):
            r2 = b.apply(reply)
            b.revert(r2)
        b.revert(r1)
    assert _snapshot(b) == before


def test_copy_is_independent() -> None:
    b = Board.startpos()
    c = b.copy()
    c.apply(parse_legal(c, "e2e4"))
    assert b.to_fen() == STARTPOS_FEN
    assert c.zobrist_hash != b.zobrist_hash
