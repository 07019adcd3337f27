"""Static evaluator: material, pawn/knight tables, mobility and center control."""

import chess
from arena.config import CONFIG, EvalConfig
from arena.core.board import is_draw


class Evaluator:
    def __init__(self, cfg: EvalConfig = None):
        self.cfg = cfg or CONFIG.eval

    def evaluate(self, board: chess.Board, aggression: int = 50) -> float:
        """Return static eval in centipawns, positive favors White.

        `aggression` is the evaluating side's setting; it only scales the
        center-control term.
        """
        if board.is_checkmate():
            # The side to move is the one that is mated.
            return -self.cfg.mate_score if board.turn == chess.WHITE else self.cfg.mate_score
        if is_draw(board):
            return 0

        score = 0.0

        # Material + PST.
        for sq, piece in board.piece_map().items():
            p_name = chess.piece_name(piece.piece_type).upper()
            value = self.cfg.piece_values.get(p_name, 0) * 100 + self._positional_bonus(
                piece.piece_type, sq, piece.color
            )
            if piece.color == chess.WHITE:
                score += value
            else:
                score -= value

        # Mobility of the side to move only.
        mobility = board.legal_moves.count() * self.cfg.mobility_weight
        score += mobility if board.turn == chess.WHITE else -mobility

        # Center control, scaled by aggression.
        score += self._eval_center(board) * (aggression / self.cfg.aggression_base)

        return score

    def evaluate_pawns(self, board: chess.Board, aggression: int = 50) -> float:
        """Same score on the pawn scale used for display (1.0 == one pawn)."""
        return self.evaluate(board, aggression) / 100

    def _positional_bonus(self, pt: chess.PieceType, sq: chess.Square, color: chess.Color) -> float:
        if pt == chess.PAWN:
            table = self.cfg.pst_pawn
        elif pt == chess.KNIGHT:
            table = self.cfg.pst_knight
        else:
            return 0
        # Tables are stored rank 8 first; White reads them flipped.
        idx = chess.square_mirror(sq) if color == chess.WHITE else sq
        return table[idx] / self.cfg.pst_divisor

    def _eval_center(self, board: chess.Board) -> int:
        """Occupancy of the 12 central squares, White minus Black."""
        score = 0
        for squares, bonus in (
            (self.cfg.inner_center, self.cfg.inner_center_bonus),
            (self.cfg.outer_center, self.cfg.outer_center_bonus),
        ):
            for sq in squares:
                piece = board.piece_at(sq)
                if piece is None:
                    continue
                score += bonus if piece.color == chess.WHITE else -bonus
        return score
