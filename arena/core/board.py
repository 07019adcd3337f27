"""Board wrapper over python-chess: FEN validation, SAN history, replay from start."""

import logging
from typing import Optional, Sequence, Tuple

import chess

from arena.errors import InvalidPositionFormat, MoveApplicationFailure

log = logging.getLogger(__name__)


def validate_fen(fen: str) -> chess.Board:
    """Parse a FEN, raising InvalidPositionFormat for anything unusable."""
    if not isinstance(fen, str) or len(fen.split()) < 4:
        raise InvalidPositionFormat(fen, "expected at least 4 fields")
    try:
        board = chess.Board(fen.strip())
    except ValueError as exc:
        raise InvalidPositionFormat(fen, str(exc)) from exc
    status = board.status()
    if status != chess.STATUS_VALID:
        raise InvalidPositionFormat(fen, f"illegal position (status {int(status)})")
    return board


def is_draw(board: chess.Board) -> bool:
    """Stalemate, insufficient material, 50-move rule or threefold repetition."""
    return (
        board.is_stalemate()
        or board.is_insufficient_material()
        or board.halfmove_clock >= 100
        or board.is_repetition(3)
    )


def is_terminal(board: chess.Board) -> bool:
    return board.is_checkmate() or is_draw(board)


def outcome_label(board: chess.Board) -> Optional[str]:
    if board.is_checkmate():
        return "Checkmate"
    if is_draw(board):
        return "Draw"
    return None


class ChessBoard:
    def __init__(self, fen: str = None):
        """Initialize from FEN or the standard starting position."""
        self.board = validate_fen(fen) if fen else chess.Board()

    @property
    def fen(self) -> str:
        return self.board.fen()

    @property
    def turn(self) -> chess.Color:
        return self.board.turn

    def push(self, move: chess.Move) -> str:
        """Apply a move and return its SAN. Raises MoveApplicationFailure if illegal."""
        if move is None or move not in self.board.legal_moves:
            raise MoveApplicationFailure(str(move), self.fen)
        san = self.board.san(move)
        self.board.push(move)
        return san

    def push_san(self, san: str) -> chess.Move:
        """Apply a SAN move and return the parsed Move."""
        try:
            return self.board.push_san(san)
        except ValueError as exc:
            raise MoveApplicationFailure(san, self.fen) from exc

    def copy(self) -> "ChessBoard":
        clone = ChessBoard.__new__(ChessBoard)
        clone.board = self.board.copy()
        return clone

    def is_game_over(self) -> bool:
        return is_terminal(self.board)


def replay_moves(
    start_fen: str, sans: Sequence[str], count: Optional[int] = None
) -> Tuple[ChessBoard, Optional[chess.Move]]:
    """Rebuild the position after the first `count` SAN moves from `start_fen`.

    Returns the board and the last move applied (None when count is 0).
    A move that fails to apply is logged and skipped; the board keeps whatever
    partial position resulted.
    """
    if count is None:
        count = len(sans)
    result = ChessBoard(start_fen)
    last_move = None
    for i, san in enumerate(sans[:count]):
        try:
            move = result.push_san(san)
        except MoveApplicationFailure as exc:
            log.warning("History replay skipped move %d: %s", i + 1, exc)
            move = None
        if i == count - 1:
            last_move = move
    return result, last_move
