from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import List, Optional

import uvicorn

from src.config import EngineConfig, load_config


def _configure_logging(config: EngineConfig) -> None:
    # stdout belongs to the UCI protocol; logs go to stderr
    logging.basicConfig(
        level=config.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bitboard-negamax", description="Bitboard negamax chess engine")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("uci", help="Speak UCI on stdin/stdout (default)")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None, help="Bind address (default: ENGINE_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: ENGINE_PORT)")

    perft = sub.add_parser("perft", help="Count leaf nodes of the legal move tree")
    perft.add_argument("--fen", type=str, default=None, help="FEN string (default: startpos)")
    perft.add_argument("--depth", type=int, default=3, help="Perft depth (default: 3)")
    perft.add_argument("--divide", action="store_true", help="Print per-move counts")
    return parser


def _run_perft(fen: Optional[str], depth: int, divide: bool) -> int:
    from src.engine.board import Board, STARTPOS_FEN
    from src.engine.perft import perft, perft_divide

    board = Board.from_fen(fen or STARTPOS_FEN)
    start = time.perf_counter()
    if divide:
        counts = perft_divide(board, depth)
        for uci, n in counts.items():
            print(f"{uci}: {n}")
        print()
        nodes = sum(counts.values())
    else:
        nodes = perft(board, depth)
    dt = time.perf_counter() - start
    print(f"nodes={nodes} depth={depth} time_ms={int(dt * 1000)} nps={int(nodes / max(dt, 1e-9))}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    config = load_config()
    _configure_logging(config)

    command = args.command or "uci"
    if command == "serve":
        uvicorn.run(
            "src.protocol.http.app:create_app",
            factory=True,
            host=args.host or config.host,
            port=args.port or config.port,
            log_level=config.log_level.lower(),
        )
        return 0
    if command == "perft":
        return _run_perft(args.fen, args.depth, args.divide)

    from src.protocol.uci.loop import run_uci

    run_uci(config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
