from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from .error import (
    engine_error_handler,
    exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from .logging_middleware import RequestIDLoggingMiddleware
from .session import InMemorySessionStore
from ...config import EngineConfig, load_config
from ...engine.board import Board, STARTPOS_FEN
from ...engine.errors import EngineError
from ...engine.game import Game
from ...engine.perft import perft as perft_nodes, perft_divide
from ...search.limits import SearchLimits
from ...search.service import MAX_PLY, SearchService


logger = logging.getLogger(__name__)


class CreateGameResponse(BaseModel):
    game_id: str
    fen: str


class SetPositionRequest(BaseModel):
    fen: str = Field(..., description="FEN string or 'startpos'")
    moves: List[str] = Field(default_factory=list, description="UCI moves played from `fen`")


class MoveRequest(BaseModel):
    move: str = Field(..., description="UCI move string, e.g., e2e4")


class SearchRequest(BaseModel):
    depth: Optional[int] = Field(default=None, ge=1, le=MAX_PLY)
    movetime_ms: Optional[int] = Field(default=None, ge=1)
    nodes: Optional[int] = Field(default=None, ge=1)
    alpha_beta: Optional[bool] = None


class PerftRequest(BaseModel):
    fen: str = Field(default=STARTPOS_FEN)
    depth: int = Field(default=1, ge=0, le=6)
    divide: bool = False


class GameState(BaseModel):
    game_id: str
    fen: str
    side_to_move: str
    legal_moves: list[str]
    in_check: bool
    checkmate: bool
    stalemate: bool
    draw: bool
    last_move: Optional[str]
    move_history: list[str]


def _state(game_id: str, game: Game) -> GameState:
    history = game.move_history_uci()
    return GameState(
        game_id=game_id,
        fen=game.to_fen(),
        side_to_move=game.board.side_to_move,
        legal_moves=[m.to_uci() for m in game.legal_moves()],
        in_check=game.in_check(),
        checkmate=game.checkmate(),
        stalemate=game.stalemate(),
        draw=game.is_draw(),
        last_move=history[-1] if history else None,
        move_history=history,
    )


def create_app(config: Optional[EngineConfig] = None) -> FastAPI:
    config = config or load_config()
    app = FastAPI(title="Bitboard Negamax Engine API", version="0.1.0")

    # Basic logging setup
    logging.basicConfig(level=config.log_level)

    # Middleware & error handling
    app.add_middleware(RequestIDLoggingMiddleware)
    # Preserve FastAPI 422 validation behavior and structured HTTP errors
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(EngineError, engine_error_handler)
    app.add_exception_handler(Exception, exception_handler)

    # In-memory session store for games
    store = InMemorySessionStore()
    service = SearchService(config)

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/games", response_model=CreateGameResponse)
    async def create_game() -> CreateGameResponse:
        game = Game.new()
        game_id = store.create(game)
        return CreateGameResponse(game_id=game_id, fen=game.to_fen())

    @app.delete("/api/games/{game_id}")
    async def delete_game(game_id: str) -> Dict[str, bool]:
        if not store.delete(game_id):
            raise HTTPException(status_code=404, detail="game not found")
        return {"deleted": True}

    @app.get("/api/games/{game_id}/state", response_model=GameState)
    async def get_state(game_id: str) -> GameState:
        return _state(game_id, _require_game(store, game_id))

    @app.post("/api/games/{game_id}/position", response_model=GameState)
    async def set_position(game_id: str, req: SetPositionRequest) -> GameState:
        _require_game(store, game_id)
        # Built aside and swapped in only once every move is legal
        game = Game.from_position(req.fen.strip(), req.moves)
        store.set(game_id, game)
        return _state(game_id, game)

    @app.post("/api/games/{game_id}/move", response_model=GameState)
    async def make_move(game_id: str, req: MoveRequest) -> GameState:
        game = _require_game(store, game_id)
        game.push_uci(req.move.strip())
        return _state(game_id, game)

    @app.post("/api/games/{game_id}/undo", response_model=GameState)
    async def undo(game_id: str) -> GameState:
        game = _require_game(store, game_id)
        if not game.move_stack:
            raise HTTPException(status_code=400, detail="no moves to undo")
        game.undo_move()
        return _state(game_id, game)

    @app.post("/api/games/{game_id}/search")
    async def search(game_id: str, req: SearchRequest) -> Dict[str, Any]:
        game = _require_game(store, game_id)
        board: Board = game.board.copy()
        if req.depth is None and req.movetime_ms is None and req.nodes is None:
            limits = SearchLimits(depth=config.depth)
        else:
            limits = SearchLimits(depth=req.depth, movetime_ms=req.movetime_ms, nodes=req.nodes)
        res = await run_in_threadpool(service.go, board, limits, None, alpha_beta=req.alpha_beta)
        # Score object: either cp or mate (UCI-style)
        score: Dict[str, int]
        if res.mate_in is not None:
            score = {"mate": res.mate_in}
        else:
            score = {"cp": res.score}

        return {
            "best_move": res.best_move.to_uci() if res.best_move else None,
            "score": score,
            "pv": [m.to_uci() for m in res.pv],
            "nodes": res.nodes,
            "depth": res.depth,
            "time_ms": res.time_ms,
            "stopped": res.stopped,
        }

    @app.post("/api/perft")
    async def perft(req: PerftRequest) -> Dict[str, Any]:
        board = Board.from_fen(req.fen)
        if req.divide and req.depth >= 1:
            divide = await run_in_threadpool(perft_divide, board, req.depth)
            return {"nodes": sum(divide.values()), "divide": divide}
        nodes = await run_in_threadpool(perft_nodes, board, req.depth)
        return {"nodes": nodes}

    return app


def _require_game(store: InMemorySessionStore, game_id: str) -> Game:
    game = store.get(game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="game not found")
    return game
