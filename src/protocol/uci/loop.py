from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from ...config import EngineConfig, load_config
from ...engine.errors import EngineError, ParseError
from ...engine.game import Game
from ...engine.perft import perft_divide
from ...search.limits import SearchLimits
from ...search.service import SearchResult, SearchService

logger = logging.getLogger(__name__)

Writer = Callable[[str], None]

ENGINE_NAME = "bitboard-negamax"
ENGINE_AUTHOR = "bitboard-negamax developers"


@dataclass
class GoParams:
    depth: Optional[int] = None
    movetime_ms: Optional[int] = None
    nodes: Optional[int] = None
    infinite: bool = False
    wtime: Optional[int] = None
    btime: Optional[int] = None
    winc: Optional[int] = None
    binc: Optional[int] = None
    movestogo: Optional[int] = None
    perft: Optional[int] = None


_INT_GO_ARGS = {
    "depth": "depth",
    "movetime": "movetime_ms",
    "nodes": "nodes",
    "wtime": "wtime",
    "btime": "btime",
    "winc": "winc",
    "binc": "binc",
    "movestogo": "movestogo",
    "perft": "perft",
}


def parse_position_args(args: List[str]) -> Tuple[str, List[str]]:
    """Split ``position`` arguments into a base (``"startpos"`` or FEN) and UCI moves.

    Raises:
        ParseError: If the command is malformed.
    """
    if not args:
        raise ParseError("position requires 'startpos' or 'fen'")
    if args[0] == "startpos":
        base = "startpos"
        rest = args[1:]
    elif args[0] == "fen":
        idx = 1
        while idx < len(args) and args[idx] != "moves":
            idx += 1
        if idx == 1:
            raise ParseError("position fen requires a FEN string")
        base = " ".join(args[1:idx])
        rest = args[idx:]
    else:
        raise ParseError(f"unknown position type: {args[0]!r}")
    if not rest:
        return base, []
    if rest[0] != "moves":
        raise ParseError(f"unexpected token: {rest[0]!r}")
    return base, rest[1:]


def parse_go_args(args: List[str]) -> GoParams:
    """Parse ``go`` arguments; unsupported tokens (``ponder``, ``searchmoves``...) are skipped.

    Raises:
        ParseError: If a numeric argument is missing or not an integer.
    """
    gp = GoParams()
    i = 0
    while i < len(args):
        tok = args[i]
        if tok == "infinite":
            gp.infinite = True
            i += 1
            continue
        attr = _INT_GO_ARGS.get(tok)
        if attr is None:
            i += 1
            continue
        if i + 1 >= len(args):
            raise ParseError(f"go {tok} requires a value")
        try:
            value = int(args[i + 1])
        except ValueError as e:
            raise ParseError(f"go {tok}: not an integer: {args[i + 1]!r}") from e
        if value < 0:
            raise ParseError(f"go {tok}: must be >= 0")
        setattr(gp, attr, value)
        i += 2
    return gp


def format_info(res: SearchResult) -> str:
    time_ms = max(0, res.time_ms)
    nps = int(res.nodes * 1000 / max(1, time_ms))
    if res.mate_in is not None:
        score = f"mate {res.mate_in}"
    else:
        score = f"cp {res.score}"
    line = f"info depth {res.depth} score {score} nodes {res.nodes} nps {nps} time {time_ms}"
    if res.pv:
        line += " pv " + " ".join(m.to_uci() for m in res.pv)
    return line


class UCIEngine:
    """UCI protocol adapter around the core engine.

    Notes:
    - Core remains pure; I/O is isolated here.
    - ``position`` is atomic: a bad FEN or move leaves the current game as it was.
    - ``go`` runs on a daemon thread over a private board copy; ``stop`` sets
      its stop event and waits for the ``bestmove`` line.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or load_config()
        self.game: Game = Game.new()
        self.search = SearchService(self.config)
        # Session options (setoption)
        self.depth: int = self.config.depth
        self.alpha_beta: bool = self.config.alpha_beta
        # Async search state
        self._search_thread: Optional[threading.Thread] = None
        self._limits: Optional[SearchLimits] = None
        self._write_lock = threading.Lock()

    # ---- Command handlers ----
    def cmd_uci(self, write: Writer) -> None:
        write(f"id name {ENGINE_NAME}")
        write(f"id author {ENGINE_AUTHOR}")
        write(f"option name Depth type spin default {self.config.depth} min 1 max {self.config.max_depth}")
        write(f"option name AlphaBeta type check default {str(self.config.alpha_beta).lower()}")
        write("uciok")

    def cmd_isready(self, write: Writer) -> None:
        write("readyok")

    def cmd_ucinewgame(self) -> None:
        self.stop_search()
        self.game = Game.new()

    def cmd_position(self, args: List[str], write: Optional[Writer] = None) -> bool:
        """Replace the current game; returns False (state untouched) on bad input."""
        self.stop_search()
        try:
            base, moves = parse_position_args(args)
            game = Game.from_position(base, moves)
        except ValueError as e:
            self._reject("position", e, write)
            return False
        self.game = game
        return True

    def cmd_setoption(self, args: List[str], write: Optional[Writer] = None) -> None:
        # setoption name <name> [value <value>]
        i = 0
        if i < len(args) and args[i] == "name":
            i += 1
        name_tokens: List[str] = []
        while i < len(args) and args[i] != "value":
            name_tokens.append(args[i])
            i += 1
        value = " ".join(args[i + 1 :]).strip() if i < len(args) else ""
        name = " ".join(name_tokens).strip().lower()
        try:
            if name == "depth":
                depth = int(value)
                if not (1 <= depth <= self.config.max_depth):
                    raise ValueError(f"Depth must be in 1..{self.config.max_depth}")
                self.depth = depth
            elif name == "alphabeta":
                if value.lower() not in ("true", "false"):
                    raise ValueError(f"AlphaBeta expects true/false, got {value!r}")
                self.alpha_beta = value.lower() == "true"
            else:
                raise ValueError(f"unknown option: {name!r}")
        except ValueError as e:
            self._reject("setoption", e, write)

    def cmd_go(self, args: List[str], write: Writer) -> None:
        try:
            params = parse_go_args(args)
        except ParseError as e:
            self._reject("go", e, write)
            return
        if params.perft is not None:
            self.cmd_perft(params.perft, write)
            return

        self.stop_search()
        if self.is_searching():
            self._reject("go", RuntimeError("previous search has not finished"), write)
            return
        limits = self._limits_for(params)
        board = self.game.board.copy()
        self._limits = limits
        emit = self._locked(write)

        def worker() -> None:
            try:
                res = self.search.go(
                    board, limits, on_iter=lambda r: emit(format_info(r)), alpha_beta=self.alpha_beta
                )
            except EngineError as e:
                logger.exception("search failed", extra={"fen": board.to_fen()})
                emit(f"info string error: {e}")
                emit("bestmove 0000")
                return
            if limits.infinite:
                # bestmove is only sent once the host says stop
                limits.stop_event.wait()
            best = res.best_move.to_uci() if res.best_move else "0000"
            emit(f"bestmove {best}")

        self._search_thread = threading.Thread(target=worker, name="uci-search", daemon=True)
        self._search_thread.start()

    def cmd_stop(self) -> None:
        self.stop_search()

    def cmd_perft(self, depth: int, write: Writer) -> None:
        if depth < 1:
            self._reject("go perft", ParseError("perft depth must be >= 1"), write)
            return
        board = self.game.board.copy()
        divide = perft_divide(board, depth)
        for uci, count in divide.items():
            write(f"{uci}: {count}")
        write("")
        write(f"Nodes searched: {sum(divide.values())}")

    def cmd_d(self, write: Writer) -> None:
        for row in str(self.game.board).splitlines():
            write(row)
        write(f"fen: {self.game.to_fen()}")

    def handle(self, line: str, write: Writer) -> bool:
        """Dispatch one input line; returns False on ``quit``."""
        parts = line.split()
        if not parts:
            return True
        cmd, args = parts[0], parts[1:]
        if cmd == "uci":
            self.cmd_uci(write)
        elif cmd == "isready":
            self.cmd_isready(write)
        elif cmd == "setoption":
            self.cmd_setoption(args, write)
        elif cmd == "ucinewgame":
            self.cmd_ucinewgame()
        elif cmd == "position":
            self.cmd_position(args, write)
        elif cmd == "go":
            self.cmd_go(args, write)
        elif cmd == "stop":
            self.cmd_stop()
        elif cmd == "d":
            self.cmd_d(write)
        elif cmd == "quit":
            self.stop_search()
            return False
        else:
            # Unknown commands are ignored per UCI convention
            logger.debug("ignored command", extra={"command": cmd})
        return True

    # ---- Utilities ----
    def stop_search(self, timeout: Optional[float] = 5.0) -> None:
        """Signal the running search (if any) and wait for its bestmove."""
        thread = self._search_thread
        if thread is None:
            return
        if self._limits is not None:
            self._limits.stop()
        thread.join(timeout)
        if thread.is_alive():
            # Keep the reference so no second worker is started alongside it
            logger.warning("search thread still running after stop", extra={"timeout": timeout})
            return
        self._search_thread = None
        self._limits = None

    def is_searching(self) -> bool:
        return self._search_thread is not None and self._search_thread.is_alive()

    def _limits_for(self, gp: GoParams) -> SearchLimits:
        common = dict(depth=gp.depth, nodes=gp.nodes, infinite=gp.infinite)
        if gp.movetime_ms is not None:
            return SearchLimits(movetime_ms=max(1, gp.movetime_ms), **common)
        if any(v is not None for v in (gp.wtime, gp.btime)):
            return SearchLimits.from_clock(
                self.game.board.side_to_move,
                wtime=gp.wtime,
                btime=gp.btime,
                winc=gp.winc,
                binc=gp.binc,
                movestogo=gp.movestogo,
                **common,
            )
        if gp.depth is None and gp.nodes is None and not gp.infinite:
            common["depth"] = self.depth
        return SearchLimits(**common)

    def _locked(self, write: Writer) -> Writer:
        def _w(line: str) -> None:
            with self._write_lock:
                write(line)

        return _w

    def _reject(self, command: str, err: Exception, write: Optional[Writer]) -> None:
        logger.warning("rejected %s", command, extra={"error": str(err)})
        if write is not None:
            write(f"info string error: {err}")


def _default_writer(line: str) -> None:
    # Ensure newline termination and immediate flush
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def run_uci(
    config: Optional[EngineConfig] = None,
    lines: Optional[Iterable[str]] = None,
    write: Writer = _default_writer,
) -> None:
    eng = UCIEngine(config)
    for raw in lines if lines is not None else sys.stdin:
        if not eng.handle(raw.strip(), write):
            break
    eng.stop_search()
