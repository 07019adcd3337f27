"""Named move-selection agents and their search parameters."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Union

from arena.errors import UnknownAgent


@dataclass(frozen=True)
class AgentConfig:
    depth: int = 2
    randomness: int = 30  # 0-100, chance of picking among the top moves
    aggression: int = 50  # 0-100, scales the center-control term

    def __post_init__(self):
        if self.depth < 1:
            raise ValueError(f"depth must be positive, got {self.depth}")
        if not 0 <= self.randomness <= 100:
            raise ValueError(f"randomness must be in 0..100, got {self.randomness}")
        if not 0 <= self.aggression <= 100:
            raise ValueError(f"aggression must be in 0..100, got {self.aggression}")


@dataclass(frozen=True)
class Agent:
    id: str
    name: str
    config: AgentConfig
    # Display-only slider value. It is not passed to the search.
    strength: int = 50


_PRESETS = {
    "stockfish": Agent("stockfish", "Stockfish 16", AgentConfig(depth=3, randomness=5, aggression=60)),
    "leela": Agent("leela", "Leela Chess Zero", AgentConfig(depth=2, randomness=15, aggression=55)),
    "komodo": Agent("komodo", "Komodo Dragon", AgentConfig(depth=3, randomness=10, aggression=50)),
    "fire": Agent("fire", "Fire 8", AgentConfig(depth=2, randomness=20, aggression=70)),
}

AGENT_PRESETS: Mapping[str, Agent] = MappingProxyType(_PRESETS)


def available_agents() -> List[Agent]:
    return list(AGENT_PRESETS.values())


def get_agent(agent_id: str) -> Agent:
    try:
        return AGENT_PRESETS[agent_id]
    except KeyError:
        raise UnknownAgent(agent_id) from None


def resolve_agent(agent: Union[str, Agent]) -> Agent:
    """Accept either a preset id or a ready-made Agent."""
    if isinstance(agent, Agent):
        return agent
    return get_agent(agent)
