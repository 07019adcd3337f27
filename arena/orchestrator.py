"""MatchOrchestrator: runs an agent-vs-agent match and its post-game replay.

The orchestrator owns the move history, the evaluation history, the match
state and the replay state. Play is driven by one cancellable timer (the
"driver"): either the autoplay driver while Playing or the replay driver
while replaying a finished game, never both.

All intents and timer callbacks run under the scheduler's lock.
"""

import logging
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

import chess

from arena.agents import Agent, resolve_agent
from arena.config import CONFIG, MatchConfig
from arena.core.board import ChessBoard, outcome_label, replay_moves
from arena.core.evaluator import Evaluator
from arena.core.search import SearchEngine
from arena.errors import MoveApplicationFailure
from arena.scheduler import TaskHandle, ThreadingScheduler

log = logging.getLogger(__name__)

AUTOPLAY = "autoplay"
REPLAY = "replay"


class MatchState(str, Enum):
    SETUP = "setup"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


@dataclass
class ReplayState:
    active: bool = False
    cursor: int = 0
    playing: bool = False


@dataclass(frozen=True)
class MatchSnapshot:
    fen: str
    state: MatchState
    replay: ReplayState
    moves: Tuple[str, ...]
    evaluations: Tuple[float, ...]
    last_move: Optional[Tuple[str, str]]
    replay_available: bool
    turn: str
    status: str
    move_number: int
    white_agent: str
    black_agent: str
    autoplay_interval_ms: int
    replay_speed_ms: int


SnapshotCallback = Callable[[MatchSnapshot], None]

_STATUS_LABELS = {
    MatchState.SETUP: "Setup",
    MatchState.PLAYING: "In Progress",
    MatchState.PAUSED: "Paused",
    MatchState.FINISHED: "Finished",
}


def _clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, value))


class MatchOrchestrator:
    def __init__(
        self,
        white: Union[str, Agent, None] = None,
        black: Union[str, Agent, None] = None,
        scheduler=None,
        config: Optional[MatchConfig] = None,
        evaluator: Optional[Evaluator] = None,
        rng: Optional[random.Random] = None,
    ):
        self.cfg = config or CONFIG.match
        self.scheduler = scheduler or ThreadingScheduler()
        self._lock = self.scheduler.lock
        self._evaluator = evaluator or Evaluator()
        self._rng = rng or random.Random()

        self._agents: Dict[chess.Color, Agent] = {}
        self._engines: Dict[chess.Color, SearchEngine] = {}
        self._bind_agents(white or self.cfg.white_agent, black or self.cfg.black_agent)

        self._initial_fen = ChessBoard(self.cfg.start_fen).fen
        self._board = ChessBoard(self._initial_fen)
        self._moves: List[str] = []
        self._evaluations: List[float] = []
        self._last_move: Optional[chess.Move] = None
        self._state = MatchState.SETUP

        self._replay = ReplayState()
        self._replay_available = False
        self._view: Optional[ChessBoard] = None
        self._view_last_move: Optional[chess.Move] = None

        self.autoplay_interval_ms = _clamp(
            self.cfg.autoplay_interval_ms, self.cfg.min_autoplay_interval_ms, self.cfg.max_autoplay_interval_ms
        )
        self.replay_speed_ms = _clamp(
            self.cfg.replay_speed_ms, self.cfg.min_replay_speed_ms, self.cfg.max_replay_speed_ms
        )

        self._driver: Optional[TaskHandle] = None
        self._driver_kind: Optional[str] = None
        self._grace: Optional[TaskHandle] = None

        self._listeners: List[SnapshotCallback] = []

    # ── Read-only views ─────────────────────────────────────

    @property
    def state(self) -> MatchState:
        return self._state

    @property
    def moves(self) -> Tuple[str, ...]:
        return tuple(self._moves)

    @property
    def evaluations(self) -> Tuple[float, ...]:
        return tuple(self._evaluations)

    @property
    def replay(self) -> ReplayState:
        return replace(self._replay)

    @property
    def replay_available(self) -> bool:
        return self._replay_available

    @property
    def initial_fen(self) -> str:
        return self._initial_fen

    @property
    def fen(self) -> str:
        return self._display_board().fen

    @property
    def board(self) -> chess.Board:
        """A copy of the displayed position."""
        return self._display_board().board.copy()

    @property
    def driver_kind(self) -> Optional[str]:
        """Which driver is live: "autoplay", "replay" or None."""
        if self._driver is not None and self._driver.pending:
            return self._driver_kind
        return None

    def agent(self, color: chess.Color) -> Agent:
        return self._agents[color]

    def snapshot(self) -> MatchSnapshot:
        with self._lock:
            view = self._display_board()
            last = self._view_last_move if self._replay.active else self._last_move
            plies = self._replay.cursor if self._replay.active else len(self._moves)
            return MatchSnapshot(
                fen=view.fen,
                state=self._state,
                replay=replace(self._replay),
                moves=tuple(self._moves),
                evaluations=tuple(self._evaluations),
                last_move=(
                    (chess.square_name(last.from_square), chess.square_name(last.to_square))
                    if last is not None
                    else None
                ),
                replay_available=self._replay_available,
                turn="white" if view.turn == chess.WHITE else "black",
                status=outcome_label(view.board) or _STATUS_LABELS[self._state],
                move_number=plies // 2 + 1,
                white_agent=self._agents[chess.WHITE].id,
                black_agent=self._agents[chess.BLACK].id,
                autoplay_interval_ms=self.autoplay_interval_ms,
                replay_speed_ms=self.replay_speed_ms,
            )

    # ── Observers ───────────────────────────────────────────

    def subscribe(self, callback: SnapshotCallback):
        self._listeners.append(callback)

    def unsubscribe(self, callback: SnapshotCallback):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self):
        if not self._listeners:
            return
        snap = self.snapshot()
        for cb in list(self._listeners):
            try:
                cb(snap)
            except Exception:
                log.exception("Match listener %r failed", cb)

    # ── Match intents ───────────────────────────────────────

    def start(self) -> bool:
        """Start from Setup or resume from Paused."""
        with self._lock:
            if self._state not in (MatchState.SETUP, MatchState.PAUSED):
                return self._reject("start")
            self._set_state(MatchState.PLAYING)
            self._start_driver(AUTOPLAY)
            self._notify()
            return True

    resume = start

    def pause(self) -> bool:
        with self._lock:
            if self._state is not MatchState.PLAYING:
                return self._reject("pause")
            self._stop_driver()
            self._set_state(MatchState.PAUSED)
            self._notify()
            return True

    def reset(self) -> bool:
        """Back to Setup at the configured start position with empty histories."""
        with self._lock:
            self._stop_driver()
            self._cancel_grace()
            self._initial_fen = ChessBoard(self.cfg.start_fen).fen
            self._clear_match()
            self._set_state(MatchState.SETUP)
            self._notify()
            return True

    def step_forward(self) -> bool:
        """Play exactly one move synchronously."""
        with self._lock:
            if self._state not in (MatchState.PLAYING, MatchState.PAUSED):
                return self._reject("step_forward")
            self._advance()
            self._notify()
            return True

    def step_backward(self) -> bool:
        """Drop the last move and rebuild the position from the start."""
        with self._lock:
            if self._state not in (MatchState.PAUSED, MatchState.FINISHED) or not self._moves:
                return self._reject("step_backward")
            self._moves.pop()
            self._evaluations.pop()
            self._board, self._last_move = replay_moves(self._initial_fen, self._moves)
            if self._state is MatchState.FINISHED:
                self._cancel_grace()
                self._leave_replay()
                self._replay_available = False
                self._set_state(MatchState.PAUSED)
            self._notify()
            return True

    def load_position(self, fen: str) -> bool:
        """Replace the board with `fen` and return to Setup.

        Raises InvalidPositionFormat before anything changes.
        """
        with self._lock:
            if self._state is MatchState.PLAYING:
                return self._reject("load_position")
            board = ChessBoard(fen)
            self._stop_driver()
            self._cancel_grace()
            self._initial_fen = board.fen
            self._clear_match()
            self._set_state(MatchState.SETUP)
            log.info("Loaded position %s", self._initial_fen)
            self._notify()
            return True

    def set_agents(self, white: Union[str, Agent, None] = None, black: Union[str, Agent, None] = None) -> bool:
        with self._lock:
            if self._state is MatchState.PLAYING:
                return self._reject("set_agents")
            self._bind_agents(white or self._agents[chess.WHITE], black or self._agents[chess.BLACK])
            self._notify()
            return True

    def set_autoplay_interval(self, ms: int) -> int:
        with self._lock:
            self.autoplay_interval_ms = _clamp(
                int(ms), self.cfg.min_autoplay_interval_ms, self.cfg.max_autoplay_interval_ms
            )
            if self.driver_kind == AUTOPLAY:
                self._start_driver(AUTOPLAY)
            self._notify()
            return self.autoplay_interval_ms

    def set_replay_speed(self, ms: int) -> int:
        with self._lock:
            self.replay_speed_ms = _clamp(int(ms), self.cfg.min_replay_speed_ms, self.cfg.max_replay_speed_ms)
            if self.driver_kind == REPLAY:
                self._start_driver(REPLAY)
            self._notify()
            return self.replay_speed_ms

    # ── Replay intents ──────────────────────────────────────

    def enter_replay(self) -> bool:
        with self._lock:
            if self._state is not MatchState.FINISHED or not self._replay_available:
                return self._reject("enter_replay")
            if not self._replay.active:
                self._replay = ReplayState(active=True, cursor=len(self._moves), playing=False)
                self._rebuild_view()
            self._notify()
            return True

    def exit_replay(self) -> bool:
        with self._lock:
            if not self._replay.active:
                return self._reject("exit_replay")
            self._leave_replay()
            self._notify()
            return True

    def replay_play(self) -> bool:
        with self._lock:
            if not self._replay.active:
                return self._reject("replay_play")
            if self._replay.cursor >= len(self._moves):
                self._seek(0)
            if self._replay.cursor >= len(self._moves):
                # nothing to play
                return self._reject("replay_play")
            self._replay.playing = True
            self._start_driver(REPLAY)
            self._notify()
            return True

    def replay_pause(self) -> bool:
        with self._lock:
            if not self._replay.active:
                return self._reject("replay_pause")
            self._stop_replay_driver()
            self._notify()
            return True

    def replay_next(self) -> bool:
        with self._lock:
            if not self._replay.active:
                return self._reject("replay_next")
            self._seek(self._replay.cursor + 1)
            self._notify()
            return True

    def replay_previous(self) -> bool:
        with self._lock:
            if not self._replay.active:
                return self._reject("replay_previous")
            self._seek(self._replay.cursor - 1)
            self._notify()
            return True

    def replay_seek(self, index: int) -> bool:
        with self._lock:
            if not self._replay.active:
                return self._reject("replay_seek")
            self._seek(index)
            self._notify()
            return True

    def replay_reset(self) -> bool:
        with self._lock:
            if not self._replay.active:
                return self._reject("replay_reset")
            self._stop_replay_driver()
            self._seek(0)
            self._notify()
            return True

    # ── Per-tick logic ──────────────────────────────────────

    def _advance(self):
        """One autoplay tick: finish, or search and apply the next move."""
        board = self._board.board
        if self._board.is_game_over():
            self._finish()
            return

        color = board.turn
        engine = self._engines[color]
        move = engine.search_best_move(board, self._agents[color].config)
        if move is None:
            self._finish()
            return

        try:
            san = self._board.push(move)
        except MoveApplicationFailure as exc:
            log.warning("Tick skipped: %s", exc)
            return

        self._moves.append(san)
        self._evaluations.append(engine.get_evaluation(board))
        self._last_move = move
        log.debug(
            "%s %s (%s) eval %+.2f",
            len(self._moves),
            san,
            self._agents[color].id,
            self._evaluations[-1],
        )

    def _on_autoplay_tick(self):
        self._driver = None
        self._driver_kind = None
        if self._state is not MatchState.PLAYING:
            return
        self._advance()
        if self._state is MatchState.PLAYING:
            self._start_driver(AUTOPLAY)
        self._notify()

    def _on_replay_tick(self):
        self._driver = None
        self._driver_kind = None
        if not (self._replay.active and self._replay.playing):
            return
        self._seek(self._replay.cursor + 1)
        if self._replay.cursor >= len(self._moves):
            self._replay.playing = False
        else:
            self._start_driver(REPLAY)
        self._notify()

    def _on_grace_elapsed(self):
        self._grace = None
        if self._state is MatchState.FINISHED:
            self._replay_available = True
            log.info("Replay available (%d moves)", len(self._moves))
            self._notify()

    def _finish(self):
        self._stop_driver()
        self._set_state(MatchState.FINISHED)
        self._cancel_grace()
        self._grace = self.scheduler.call_later(self.cfg.finish_grace_ms, self._on_grace_elapsed)

    # ── Helpers ─────────────────────────────────────────────

    def _bind_agents(self, white: Union[str, Agent], black: Union[str, Agent]):
        agents = {chess.WHITE: resolve_agent(white), chess.BLACK: resolve_agent(black)}
        self._agents = agents
        self._engines = {
            color: SearchEngine(agent.config, self._evaluator, self._rng) for color, agent in agents.items()
        }
        log.info("Agents: white=%s black=%s", agents[chess.WHITE].id, agents[chess.BLACK].id)

    def _clear_match(self):
        self._board = ChessBoard(self._initial_fen)
        self._moves.clear()
        self._evaluations.clear()
        self._last_move = None
        self._replay = ReplayState()
        self._replay_available = False
        self._view = None
        self._view_last_move = None

    def _display_board(self) -> ChessBoard:
        if self._replay.active and self._view is not None:
            return self._view
        return self._board

    def _seek(self, index: int):
        self._replay.cursor = _clamp(index, 0, len(self._moves))
        self._rebuild_view()

    def _rebuild_view(self):
        self._view, self._view_last_move = replay_moves(self._initial_fen, self._moves, self._replay.cursor)

    def _leave_replay(self):
        if self._driver_kind == REPLAY:
            self._stop_driver()
        self._replay = ReplayState()
        self._view = None
        self._view_last_move = None

    def _stop_replay_driver(self):
        self._replay.playing = False
        if self._driver_kind == REPLAY:
            self._stop_driver()

    def _start_driver(self, kind: str):
        """Install a driver, cancelling whichever one was live."""
        self._stop_driver()
        if kind == AUTOPLAY:
            if self._replay.active:
                self._leave_replay()
            handle = self.scheduler.call_later(self.autoplay_interval_ms, self._on_autoplay_tick)
        else:
            handle = self.scheduler.call_later(self.replay_speed_ms, self._on_replay_tick)
        self._driver = handle
        self._driver_kind = kind

    def _stop_driver(self):
        if self._driver is not None:
            self._driver.cancel()
        self._driver = None
        self._driver_kind = None

    def _cancel_grace(self):
        if self._grace is not None:
            self._grace.cancel()
            self._grace = None

    def _set_state(self, new: MatchState):
        if new is not self._state:
            log.info("Match %s -> %s", self._state.value, new.value)
        self._state = new

    def _reject(self, intent: str) -> bool:
        log.debug("Rejected %s in state %s", intent, self._state.value)
        return False
