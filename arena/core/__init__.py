"""Core engine components: board wrapper, evaluator and search."""

from .board import ChessBoard, is_draw, is_terminal, replay_moves, validate_fen
from .evaluator import Evaluator
from .search import SearchEngine
