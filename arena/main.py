from typing import Optional

from arena.orchestrator import MatchOrchestrator, MatchSnapshot, MatchState
from arena.scheduler import ManualScheduler


def run_headless_match(
    white="stockfish",
    black="leela",
    fen: Optional[str] = None,
    max_moves: Optional[int] = None,
    rng=None,
    listener=None,
) -> MatchSnapshot:
    """Play a whole match on a virtual clock and return the final snapshot.

    Stops early (paused) once `max_moves` plies have been played.
    """
    scheduler = ManualScheduler()
    match = MatchOrchestrator(white, black, scheduler=scheduler, rng=rng)
    if listener is not None:
        match.subscribe(listener)
    if fen:
        match.load_position(fen)
    match.start()
    while match.state is MatchState.PLAYING:
        scheduler.advance(match.autoplay_interval_ms)
        if max_moves is not None and len(match.moves) >= max_moves:
            match.pause()
    # let the post-game grace timer run
    scheduler.run_all()
    return match.snapshot()
