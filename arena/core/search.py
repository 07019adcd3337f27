import logging
import random
import time
from typing import List, Optional, Tuple

import chess

from arena.agents import AgentConfig
from arena.core.board import is_terminal
from arena.core.evaluator import Evaluator
from arena.core.utils import format_info

log = logging.getLogger(__name__)

INF = float("inf")


class SearchEngine:
    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        evaluator: Optional[Evaluator] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Depth-limited minimax with alpha-beta pruning.
        Scores are always from White's point of view: White maximizes,
        Black minimizes.
        """
        self.config = config or AgentConfig()
        self.evaluator = evaluator or Evaluator()
        self.rng = rng or random.Random()
        self.nodes = 0
        self.last_candidates: List[Tuple[chess.Move, float]] = []

    # Public API
    def search_best_move(
        self, board: chess.Board, config: Optional[AgentConfig] = None
    ) -> Optional[chess.Move]:
        """
        Return the chosen move, or None when there are no legal moves.
        The board is pushed/popped during the search and restored before returning.
        """
        cfg = config or self.config
        moves = list(board.legal_moves)
        if not moves:
            return None

        self.nodes = 0
        start_time = time.time()
        is_white = board.turn == chess.WHITE
        best_move = moves[0]
        best_eval = -INF if is_white else INF

        candidates: List[Tuple[chess.Move, float]] = []
        for move in moves:
            board.push(move)
            try:
                eval_ = self._minimax(board, cfg.depth - 1, -INF, INF, not is_white, cfg.aggression)
            finally:
                board.pop()
            candidates.append((move, eval_))

            # strict comparison: the first move wins ties
            if (is_white and eval_ > best_eval) or (not is_white and eval_ < best_eval):
                best_eval = eval_
                best_move = move

        self.last_candidates = candidates

        if cfg.randomness > 0 and self.rng.random() * 100 < cfg.randomness:
            ranked = sorted(candidates, key=lambda c: c[1], reverse=is_white)
            top = ranked[: max(3, len(moves) // 3)]
            best_move = self.rng.choice(top)[0]

        if log.isEnabledFor(logging.DEBUG):
            log.debug(
                format_info(cfg.depth, best_eval, self.nodes, time.time() - start_time, best_move, self.evaluator.cfg.mate_score)
            )
        return best_move

    def get_evaluation(self, board: chess.Board) -> float:
        """Static eval of `board` in pawns, using this engine's aggression."""
        return self.evaluator.evaluate_pawns(board, self.config.aggression)

    # -------------------------
    # Core minimax (alpha-beta)
    # -------------------------
    def _minimax(
        self,
        board: chess.Board,
        depth: int,
        alpha: float,
        beta: float,
        maximizing: bool,
        aggression: int,
    ) -> float:
        self.nodes += 1
        if depth <= 0 or is_terminal(board):
            return self.evaluator.evaluate(board, aggression)

        if maximizing:
            max_eval = -INF
            for move in list(board.legal_moves):
                board.push(move)
                try:
                    eval_ = self._minimax(board, depth - 1, alpha, beta, False, aggression)
                finally:
                    board.pop()
                max_eval = max(max_eval, eval_)
                alpha = max(alpha, eval_)
                if beta <= alpha:
                    break
            return max_eval

        min_eval = INF
        for move in list(board.legal_moves):
            board.push(move)
            try:
                eval_ = self._minimax(board, depth - 1, alpha, beta, True, aggression)
            finally:
                board.pop()
            min_eval = min(min_eval, eval_)
            beta = min(beta, eval_)
            if beta <= alpha:
                break
        return min_eval
