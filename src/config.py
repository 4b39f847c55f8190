"""Engine configuration.

Defaults live on the dataclass; any field may be overridden through an
``ENGINE_*`` environment variable. Malformed values fail loudly at load time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Mapping, Optional


ENV_PREFIX = "ENGINE_"


def _parse_bool(raw: str) -> bool:
    val = raw.strip().lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"invalid boolean: {raw!r}")


def _parse_int(raw: str) -> int:
    # Accept hex seeds such as 0xC0FFEE
    return int(raw.strip(), 0)


@dataclass(frozen=True)
class EngineConfig:
    # Search
    depth: int = 4  # default ply limit when `go` carries no limit
    max_depth: int = 64  # hard recursion cap
    alpha_beta: bool = True  # False selects the reference no-pruning negamax
    # Attack tables
    magic_seed: Optional[int] = None  # None uses the embedded magic constants
    # Logging
    log_level: str = "INFO"
    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8000

    def __post_init__(self) -> None:
        if self.depth < 1:
            raise ValueError("depth must be >= 1")
        if self.max_depth < self.depth:
            raise ValueError("max_depth must be >= depth")
        if not (0 < self.port < 65536):
            raise ValueError("port out of range")


_PARSERS: Dict[str, Callable[[str], Any]] = {
    "depth": _parse_int,
    "max_depth": _parse_int,
    "alpha_beta": _parse_bool,
    "magic_seed": _parse_int,
    "log_level": lambda s: s.strip().upper(),
    "host": str.strip,
    "port": _parse_int,
}


def load_config(env: Optional[Mapping[str, str]] = None) -> EngineConfig:
    """Build an EngineConfig from defaults plus ``ENGINE_*`` overrides.

    Args:
        env (Optional[Mapping[str, str]]): Environment to read; defaults to
            ``os.environ``.

    Raises:
        ValueError: If an override cannot be parsed or fails validation.
    """
    if env is None:
        env = os.environ
    overrides: Dict[str, Any] = {}
    for f in fields(EngineConfig):
        key = ENV_PREFIX + f.name.upper()
        raw = env.get(key)
        if raw is None:
            continue
        try:
            overrides[f.name] = _PARSERS[f.name](raw)
        except ValueError as e:
            raise ValueError(f"invalid value for {key}: {raw!r}") from e
    return replace(EngineConfig(), **overrides)
