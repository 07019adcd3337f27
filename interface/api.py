"""FastAPI REST interface for watching and steering an engine match."""

from dataclasses import asdict
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from arena.agents import available_agents
from arena.analyzer import graph_points, summarize
from arena.config import CONFIG, COMMON_POSITIONS
from arena.errors import InvalidPositionFormat, UnknownAgent
from arena.orchestrator import MatchOrchestrator, MatchSnapshot

app = FastAPI(title=CONFIG.ui.app_name, version="1.0.0")

# Shared match; its ThreadingScheduler serializes ticks and requests.
match = MatchOrchestrator()


class PositionRequest(BaseModel):
    fen: Optional[str] = None
    name: Optional[str] = None  # key of COMMON_POSITIONS


class AgentsRequest(BaseModel):
    white: Optional[str] = None
    black: Optional[str] = None


class SpeedRequest(BaseModel):
    autoplay_ms: Optional[int] = Field(
        None, ge=CONFIG.match.min_autoplay_interval_ms, le=CONFIG.match.max_autoplay_interval_ms
    )
    replay_ms: Optional[int] = Field(
        None, ge=CONFIG.match.min_replay_speed_ms, le=CONFIG.match.max_replay_speed_ms
    )


class SeekRequest(BaseModel):
    index: int


def _serialize(snap: MatchSnapshot) -> dict:
    data = asdict(snap)
    data["state"] = snap.state.value
    data["moves"] = list(snap.moves)
    data["evaluations"] = list(snap.evaluations)
    data["last_move"] = (
        {"from": snap.last_move[0], "to": snap.last_move[1]} if snap.last_move else None
    )
    return data


def _apply(accepted: bool, intent: str) -> dict:
    snap = _serialize(match.snapshot())
    if not accepted:
        raise HTTPException(
            status_code=409,
            detail={"error": f"{intent} not allowed in state {snap['state']}", "match": snap},
        )
    return snap


@app.get("/match")
def get_match():
    return _serialize(match.snapshot())


@app.get("/agents")
def get_agents():
    return [
        {"id": a.id, "name": a.name, "strength": a.strength, **asdict(a.config)}
        for a in available_agents()
    ]


@app.get("/positions")
def get_positions():
    return [{"name": name, "fen": fen} for name, fen in COMMON_POSITIONS.items()]


@app.get("/config")
def get_config():
    return CONFIG.as_dict()


@app.get("/evaluation")
def get_evaluation():
    evals = match.evaluations
    summary = summarize(evals)
    return {**asdict(summary), "points": graph_points(evals)}


@app.post("/start")
def start():
    return _apply(match.start(), "start")


@app.post("/pause")
def pause():
    return _apply(match.pause(), "pause")


@app.post("/reset")
def reset():
    return _apply(match.reset(), "reset")


@app.post("/step/forward")
def step_forward():
    return _apply(match.step_forward(), "step forward")


@app.post("/step/backward")
def step_backward():
    return _apply(match.step_backward(), "step backward")


@app.post("/position")
def set_position(req: PositionRequest):
    fen = req.fen
    if fen is None:
        if req.name not in COMMON_POSITIONS:
            raise HTTPException(status_code=400, detail=f"Unknown position: {req.name}")
        fen = COMMON_POSITIONS[req.name]
    try:
        accepted = match.load_position(fen)
    except InvalidPositionFormat as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _apply(accepted, "load position")


@app.post("/agents")
def set_agents(req: AgentsRequest):
    try:
        accepted = match.set_agents(req.white, req.black)
    except UnknownAgent as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _apply(accepted, "change agents")


@app.post("/speed")
def set_speed(req: SpeedRequest):
    if req.autoplay_ms is not None:
        match.set_autoplay_interval(req.autoplay_ms)
    if req.replay_ms is not None:
        match.set_replay_speed(req.replay_ms)
    return _serialize(match.snapshot())


@app.post("/replay/enter")
def replay_enter():
    return _apply(match.enter_replay(), "enter replay")


@app.post("/replay/exit")
def replay_exit():
    return _apply(match.exit_replay(), "exit replay")


@app.post("/replay/play")
def replay_play():
    return _apply(match.replay_play(), "replay play")


@app.post("/replay/pause")
def replay_pause():
    return _apply(match.replay_pause(), "replay pause")


@app.post("/replay/next")
def replay_next():
    return _apply(match.replay_next(), "replay next")


@app.post("/replay/previous")
def replay_previous():
    return _apply(match.replay_previous(), "replay previous")


@app.post("/replay/reset")
def replay_reset():
    return _apply(match.replay_reset(), "replay reset")


@app.post("/replay/seek")
def replay_seek(req: SeekRequest):
    return _apply(match.replay_seek(req.index), "replay seek")
