"""Terminal runner: watch two agents play, optionally replaying the game afterwards."""

import argparse
import logging
import threading
from typing import List, Optional

import chess

from arena.agents import AGENT_PRESETS
from arena.analyzer import summarize
from arena.config import CONFIG, configure_logging
from arena.errors import InvalidPositionFormat
from arena.main import run_headless_match
from arena.orchestrator import MatchOrchestrator, MatchSnapshot, MatchState
from arena.scheduler import ThreadingScheduler

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Automated engine-vs-engine chess match")
    parser.add_argument("--white", default=CONFIG.match.white_agent, choices=sorted(AGENT_PRESETS))
    parser.add_argument("--black", default=CONFIG.match.black_agent, choices=sorted(AGENT_PRESETS))
    parser.add_argument("--fen", default=None, help="start from this position")
    parser.add_argument("--interval", type=int, default=CONFIG.match.autoplay_interval_ms, help="ms per move")
    parser.add_argument("--max-moves", type=int, default=None, help="stop after this many plies")
    parser.add_argument("--instant", action="store_true", help="use a virtual clock (no waiting)")
    parser.add_argument("--replay", action="store_true", help="replay the finished game")
    parser.add_argument("--log-level", default=None)
    return parser


def print_snapshot(snap: MatchSnapshot):
    if snap.replay.active:
        header = f"Replay {snap.replay.cursor}/{len(snap.moves)}"
    elif snap.moves:
        header = f"{len(snap.moves)}. {snap.moves[-1]}  eval {snap.evaluations[-1]:+.2f}"
    else:
        header = snap.status
    print(header)
    print(chess.Board(snap.fen))
    print("----------------------------")


def _run_live(args) -> MatchSnapshot:
    done = threading.Event()
    scheduler = ThreadingScheduler()
    match = MatchOrchestrator(args.white, args.black, scheduler=scheduler)
    last = {"plies": -1, "cursor": -1, "replaying": False}

    def on_change(snap: MatchSnapshot):
        if snap.replay.active:
            if snap.replay.cursor != last["cursor"]:
                last["cursor"] = snap.replay.cursor
                print_snapshot(snap)
            if snap.replay.playing:
                last["replaying"] = True
            elif last["replaying"]:
                # the replay driver has run and stopped at the end
                done.set()
            return
        if len(snap.moves) != last["plies"]:
            last["plies"] = len(snap.moves)
            print_snapshot(snap)
        if snap.state is MatchState.FINISHED and snap.replay_available:
            done.set()
        if args.max_moves is not None and len(snap.moves) >= args.max_moves:
            match.pause()
            done.set()

    match.subscribe(on_change)
    if args.fen:
        match.load_position(args.fen)
    match.set_autoplay_interval(args.interval)
    match.start()
    done.wait()

    if args.replay and match.state is MatchState.FINISHED:
        done.clear()
        match.enter_replay()
        if match.replay_play():
            done.wait()
    return match.snapshot()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        if args.instant:
            snap = run_headless_match(args.white, args.black, fen=args.fen, max_moves=args.max_moves)
        else:
            snap = _run_live(args)
    except InvalidPositionFormat as exc:
        log.error("%s", exc)
        return 2

    if args.instant:
        for i, (san, ev) in enumerate(zip(snap.moves, snap.evaluations), start=1):
            print(f"{i:>3}. {san:<8} {ev:+.2f}")
        print(chess.Board(snap.fen))

    summary = summarize(snap.evaluations)
    print(f"Status: {snap.status} after {len(snap.moves)} plies")
    print(f"Evaluation: {summary.text} ({summary.label}), lead changes: {summary.lead_changes}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
