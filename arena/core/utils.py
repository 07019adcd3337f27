def format_info(d, score, nodes, elapsed, best, mate_score):
    nps = int(nodes / elapsed) if elapsed > 0 else 0

    if abs(score) >= mate_score:
        score_str = "mate +" if score > 0 else "mate -"
    else:
        score_str = f"cp {score:.0f}"

    best_str = best.uci() if best else "-"
    return f"info depth {d} score {score_str} nodes {nodes} nps {nps} time {int(elapsed * 1000)} bestmove {best_str}"
