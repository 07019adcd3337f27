"""Exceptions raised by the arena core."""


class ArenaError(Exception):
    """Base class for arena errors."""


class InvalidPositionFormat(ArenaError, ValueError):
    """A position string (FEN) could not be parsed into a legal position."""

    def __init__(self, fen: str, reason: str):
        super().__init__(f"Invalid FEN {fen!r}: {reason}")
        self.fen = fen
        self.reason = reason


class MoveApplicationFailure(ArenaError):
    """The rules engine refused a move."""

    def __init__(self, move: str, fen: str):
        super().__init__(f"Cannot apply {move} in {fen}")
        self.move = move
        self.fen = fen


class UnknownAgent(ArenaError, KeyError):
    def __init__(self, agent_id: str):
        super().__init__(agent_id)
        self.agent_id = agent_id

    def __str__(self):
        return f"Unknown agent: {self.agent_id}"
