from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
import threading
import time


@dataclass
class SearchLimits:
    """Constraints for one ``go``; any subset may be set, the first one reached wins.

    ``depth`` is the iterative-deepening ceiling, ``movetime_ms`` a wall-clock
    budget, ``nodes`` a node-count budget. ``infinite`` runs until
    ``stop_event`` is set.
    """

    depth: Optional[int] = None
    movetime_ms: Optional[int] = None
    nodes: Optional[int] = None
    infinite: bool = False
    stop_event: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def from_clock(
        cls,
        side_to_move: str,
        wtime: Optional[int] = None,
        btime: Optional[int] = None,
        winc: Optional[int] = None,
        binc: Optional[int] = None,
        movestogo: Optional[int] = None,
        **kwargs,
    ) -> "SearchLimits":
        """Derive ``movetime_ms`` from a game clock (remaining/moves-to-go plus most of the increment)."""
        remaining = wtime if side_to_move == "w" else btime
        inc = (winc if side_to_move == "w" else binc) or 0
        if remaining is None:
            return cls(**kwargs)
        mtg = movestogo if movestogo and movestogo > 0 else 30
        budget = remaining // mtg + (inc * 3) // 4
        # Keep a small reserve so the clock never hits zero
        budget = max(10, min(budget, remaining - 50 if remaining > 100 else remaining // 2))
        return cls(movetime_ms=budget, **kwargs)

    def stop(self) -> None:
        self.stop_event.set()


class Budget:
    """Node and wall-clock accounting for one search, checked at every node entry."""

    def __init__(self, limits: Optional[SearchLimits] = None) -> None:
        self.limits = limits or SearchLimits()
        self.nodes = 0
        self.start = time.perf_counter()
        self.exhausted = False

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.start) * 1000)

    def enter_node(self) -> bool:
        """Count a node; return True when the search must unwind."""
        if self.exhausted:
            return True
        lim = self.limits
        if lim.stop_event.is_set():
            self.exhausted = True
        elif lim.nodes is not None and self.nodes >= lim.nodes:
            self.exhausted = True
        elif lim.movetime_ms is not None and self.elapsed_ms() >= lim.movetime_ms:
            self.exhausted = True
        else:
            self.nodes += 1
        return self.exhausted
