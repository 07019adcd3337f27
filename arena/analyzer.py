# arena/analyzer.py
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from arena.config import CONFIG, AnalyzerConfig


@dataclass(frozen=True)
class EvaluationSummary:
    current: float
    best_white: float
    best_black: float
    lead_changes: int
    label: str
    text: str


def format_evaluation(score: float) -> str:
    """'+0.3' for White ahead, '-1.2' for Black ahead, '0.0' when level."""
    return f"+{score:.1f}" if score > 0 else f"{score:.1f}"


def advantage_label(score: float, cfg: AnalyzerConfig = None) -> str:
    cfg = cfg or CONFIG.analyzer
    if score > cfg.TH_WINNING:
        return "White winning"
    if score > cfg.TH_BETTER:
        return "White better"
    if score < -cfg.TH_WINNING:
        return "Black winning"
    if score < -cfg.TH_BETTER:
        return "Black better"
    return "Equal"


def _sign(score: float) -> int:
    return (score > 0) - (score < 0)


def summarize(evaluations: Sequence[float], cfg: AnalyzerConfig = None) -> EvaluationSummary:
    """
    Summarize an evaluation history (pawn units, positive = White better).
    - best_white: the largest score reached (0 if White was never ahead)
    - best_black: the smallest score reached (0 if Black was never ahead)
    - lead_changes: how often the side in front switched, ignoring level scores
    """
    if not evaluations:
        return EvaluationSummary(0.0, 0.0, 0.0, 0, advantage_label(0.0, cfg), format_evaluation(0.0))

    current = evaluations[-1]
    lead_changes = 0
    leader = 0
    for score in evaluations:
        s = _sign(score)
        if s == 0:
            continue
        if leader and s != leader:
            lead_changes += 1
        leader = s

    return EvaluationSummary(
        current=current,
        best_white=max(0.0, max(evaluations)),
        best_black=min(0.0, min(evaluations)),
        lead_changes=lead_changes,
        label=advantage_label(current, cfg),
        text=format_evaluation(current),
    )


def graph_points(evaluations: Sequence[float], bound: float = None) -> List[Tuple[int, float]]:
    """(move number, score) pairs clamped to the chart's +/- bound."""
    if bound is None:
        bound = CONFIG.analyzer.GRAPH_BOUND
    return [(i + 1, max(-bound, min(bound, score))) for i, score in enumerate(evaluations)]
