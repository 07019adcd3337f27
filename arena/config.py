# arena/config.py
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional
import logging
import os
import tomllib

import chess

log = logging.getLogger(__name__)

# Material in pawns; the evaluator multiplies by 100.
PIECE_VALUES = {
    "PAWN": 1,
    "KNIGHT": 3,
    "BISHOP": 3,
    "ROOK": 5,
    "QUEEN": 9,
    "KING": 0,
}

# Square tables are written rank 8 first, a-file first, from White's side.
# Entries are divided by 10 when applied.
PST_PAWN = [
      0,   0,   0,   0,   0,   0,   0,   0,
     50,  50,  50,  50,  50,  50,  50,  50,
     10,  10,  20,  30,  30,  20,  10,  10,
      5,   5,  10,  25,  25,  10,   5,   5,
      0,   0,   0,  20,  20,   0,   0,   0,
      5,  -5, -10,   0,   0, -10,  -5,   5,
      5,  10,  10, -20, -20,  10,  10,   5,
      0,   0,   0,   0,   0,   0,   0,   0,
]

PST_KNIGHT = [
    -50, -40, -30, -30, -30, -30, -40, -50,
    -40, -20,   0,   0,   0,   0, -20, -40,
    -30,   0,  10,  15,  15,  10,   0, -30,
    -30,   5,  15,  20,  20,  15,   5, -30,
    -30,   0,  15,  20,  20,  15,   0, -30,
    -30,   5,  10,  15,  15,  10,   5, -30,
    -40, -20,   0,   5,   5,   0, -20, -40,
    -50, -40, -30, -30, -30, -30, -40, -50,
]

INNER_CENTER = [chess.D4, chess.E4, chess.D5, chess.E5]
OUTER_CENTER = [
    chess.D6, chess.E6,
    chess.C5, chess.F5,
    chess.C4, chess.F4,
    chess.D3, chess.E3,
]

COMMON_POSITIONS: Dict[str, str] = {
    "Starting Position": chess.STARTING_FEN,
    "Sicilian Defense": "rnbqkbnr/pp1ppppp/8/2p5/4P3/8/PPPP1PPP/RNBQKBNR w KQkq c6 0 2",
    "French Defense": "rnbqkbnr/pppp1ppp/4p3/8/4P3/8/PPPP1PPP/RNBQKBNR w KQkq - 0 2",
    "Queen's Gambit": "rnbqkbnr/ppp1pppp/8/3p4/2PP4/8/PP2PPPP/RNBQKBNR b KQkq c3 0 2",
    "Endgame Practice (K+Q vs K)": "4k3/8/8/8/8/8/8/4K2Q w - - 0 1",
}


@dataclass
class EvalConfig:
    piece_values: Dict[str, int] = field(default_factory=lambda: PIECE_VALUES.copy())
    pst_pawn: List[int] = field(default_factory=lambda: list(PST_PAWN))
    pst_knight: List[int] = field(default_factory=lambda: list(PST_KNIGHT))
    pst_divisor: int = 10
    mobility_weight: int = 2
    inner_center: List[int] = field(default_factory=lambda: list(INNER_CENTER))
    outer_center: List[int] = field(default_factory=lambda: list(OUTER_CENTER))
    inner_center_bonus: int = 10
    outer_center_bonus: int = 5
    # aggression / aggression_base scales the center term
    aggression_base: int = 50
    mate_score: int = 100000


@dataclass
class MatchConfig:
    autoplay_interval_ms: int = 1000
    min_autoplay_interval_ms: int = 300
    max_autoplay_interval_ms: int = 3000
    replay_speed_ms: int = 800
    min_replay_speed_ms: int = 200
    max_replay_speed_ms: int = 2000
    finish_grace_ms: int = 1000
    white_agent: str = "stockfish"
    black_agent: str = "leela"
    start_fen: str = chess.STARTING_FEN


@dataclass
class AnalyzerConfig:
    # thresholds in pawns, positive = White better
    TH_WINNING: float = 2.0
    TH_BETTER: float = 0.5
    GRAPH_BOUND: float = 5.0


@dataclass
class UIConfig:
    app_name: str = "Engine Arena"
    api_port: int = 8000


@dataclass
class Config:
    eval: EvalConfig = field(default_factory=EvalConfig)
    match: MatchConfig = field(default_factory=MatchConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    log_level: str = "INFO"

    @staticmethod
    def load_from_toml(path: str = "arena.toml") -> "Config":
        cfg = Config()
        if not os.path.exists(path):
            return cfg
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        for section in ("eval", "match", "analyzer", "ui"):
            target = getattr(cfg, section)
            for k, v in raw.get(section, {}).items():
                if hasattr(target, k):
                    setattr(target, k, v)
                else:
                    log.warning("Ignoring unknown config key %s.%s", section, k)
        if "log_level" in raw:
            cfg.log_level = str(raw["log_level"])
        return cfg

    def as_dict(self) -> Dict[str, object]:
        out: Dict[str, object] = {"log_level": self.log_level}
        for f in fields(self):
            if f.name != "log_level":
                section = getattr(self, f.name)
                out[f.name] = {s.name: getattr(section, s.name) for s in fields(section)}
        return out


def configure_logging(level: Optional[str] = None):
    """Set up root logging for entry points (CLI, API)."""
    logging.basicConfig(
        level=(level or CONFIG.log_level).upper(),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


# single globally importable config instance
CONFIG = Config.load_from_toml(os.environ.get("ARENA_CONFIG_TOML", "arena.toml"))
if os.environ.get("ARENA_LOG_LEVEL"):
    CONFIG.log_level = os.environ["ARENA_LOG_LEVEL"]
# allow env override of autoplay speed for quick debugging
override_interval = os.environ.get("ARENA_AUTOPLAY_MS")
if override_interval:
    try:
        CONFIG.match.autoplay_interval_ms = int(override_interval)
    except ValueError:
        log.warning("Ignoring ARENA_AUTOPLAY_MS=%r (not an integer)", override_interval)
