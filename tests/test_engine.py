"""
Test suite for the arena engine core.

Covers:
- Board wrapper (FEN validation, SAN moves, history replay)
- Evaluator (material, square tables, mobility, center/aggression, terminal scores, symmetry)
- Search (legality, determinism, position restoration, mates, randomized choice)
- Agent presets and config validation
- Config loader
- Evaluation summary helpers
"""

import logging
import random

import chess
import pytest

from arena.agents import AGENT_PRESETS, Agent, AgentConfig, get_agent, resolve_agent
from arena.analyzer import advantage_label, format_evaluation, graph_points, summarize
from arena.config import COMMON_POSITIONS, Config, EvalConfig
from arena.core.board import ChessBoard, is_draw, is_terminal, outcome_label, replay_moves, validate_fen
from arena.core.evaluator import Evaluator
from arena.core.search import SearchEngine
from arena.errors import InvalidPositionFormat, MoveApplicationFailure, UnknownAgent

FOOLS_MATE = "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"
STALEMATE = "7k/5Q2/6K1/8/8/8/8/8 b - - 0 1"
MIDDLEGAME = "r1bqkb1r/pppp1ppp/2n2n2/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R w KQkq - 4 4"


def _state(board: chess.Board):
    return board.fen(), list(board.move_stack)


# ════════════════════════════════════════════════════════════════════════════
#  BOARD TESTS
# ════════════════════════════════════════════════════════════════════════════

class TestChessBoard:
    def test_initial_position(self):
        b = ChessBoard()
        assert b.fen == chess.STARTING_FEN

    def test_from_fen(self):
        fen = "4k3/8/8/8/8/8/8/4K2Q w - - 0 1"
        assert ChessBoard(fen).fen == fen

    def test_rank_with_nine_squares_rejected(self):
        with pytest.raises(InvalidPositionFormat):
            ChessBoard("rnbqkbnrp/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1")

    def test_too_few_fields_rejected(self):
        with pytest.raises(InvalidPositionFormat):
            validate_fen("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w")

    def test_garbage_rejected(self):
        for fen in ("", "invalid", "x/y/z w - - 0 1"):
            with pytest.raises(InvalidPositionFormat):
                validate_fen(fen)

    def test_missing_king_rejected(self):
        with pytest.raises(InvalidPositionFormat):
            validate_fen("8/8/8/8/8/8/8/4K3 w - - 0 1")

    def test_invalid_fen_is_value_error(self):
        with pytest.raises(ValueError):
            validate_fen("8/8/8 w - - 0 1")

    def test_common_positions_are_valid(self):
        for fen in COMMON_POSITIONS.values():
            validate_fen(fen)

    def test_push_returns_san(self):
        b = ChessBoard()
        assert b.push(chess.Move.from_uci("g1f3")) == "Nf3"
        assert b.turn == chess.BLACK

    def test_push_illegal_raises(self):
        b = ChessBoard()
        with pytest.raises(MoveApplicationFailure):
            b.push(chess.Move.from_uci("e2e5"))
        assert b.fen == chess.STARTING_FEN

    def test_push_san_bad_input_raises(self):
        b = ChessBoard()
        with pytest.raises(MoveApplicationFailure):
            b.push_san("Qxh7")
        with pytest.raises(MoveApplicationFailure):
            b.push_san("zzz")

    def test_copy_is_independent(self):
        b = ChessBoard()
        c = b.copy()
        c.push_san("e4")
        assert b.fen == chess.STARTING_FEN

    def test_checkmate_is_terminal(self):
        board = chess.Board(FOOLS_MATE)
        assert is_terminal(board)
        assert outcome_label(board) == "Checkmate"

    def test_stalemate_is_draw(self):
        board = chess.Board(STALEMATE)
        assert is_draw(board)
        assert outcome_label(board) == "Draw"

    def test_insufficient_material_is_draw(self):
        assert is_draw(chess.Board("4k3/8/8/8/8/8/8/4K3 w - - 0 1"))

    def test_fifty_move_rule_is_draw(self):
        assert is_draw(chess.Board("4k3/8/8/8/8/8/8/R3K3 w - - 100 80"))

    def test_threefold_repetition_is_draw(self):
        board = chess.Board()
        for san in ["Nf3", "Nf6", "Ng1", "Ng8", "Nf3", "Nf6", "Ng1", "Ng8"]:
            board.push_san(san)
        assert is_draw(board)

    def test_open_position_not_terminal(self):
        assert outcome_label(chess.Board()) is None
        assert not ChessBoard().is_game_over()


class TestReplayMoves:
    def test_replay_full(self):
        board, last = replay_moves(chess.STARTING_FEN, ["e4", "e5", "Nf3"])
        expected = chess.Board()
        for san in ["e4", "e5", "Nf3"]:
            expected.push_san(san)
        assert board.fen == expected.fen()
        assert last == chess.Move.from_uci("g1f3")

    def test_replay_prefix(self):
        board, last = replay_moves(chess.STARTING_FEN, ["e4", "e5", "Nf3"], 2)
        assert board.board.piece_at(chess.F3) is None
        assert last == chess.Move.from_uci("e7e5")

    def test_replay_zero(self):
        board, last = replay_moves(chess.STARTING_FEN, ["e4"], 0)
        assert board.fen == chess.STARTING_FEN
        assert last is None

    def test_replay_skips_broken_move(self):
        board, last = replay_moves(chess.STARTING_FEN, ["e4", "Ke3", "d4"])
        # both later moves are illegal for Black and are skipped
        assert board.board.piece_at(chess.E4) == chess.Piece(chess.PAWN, chess.WHITE)
        assert board.turn == chess.BLACK
        assert last is None

    def test_replay_from_custom_start(self):
        fen = "4k3/8/8/8/8/8/8/4K2Q w - - 0 1"
        board, last = replay_moves(fen, ["Qh8+"])
        assert board.board.piece_at(chess.H8) == chess.Piece(chess.QUEEN, chess.WHITE)
        assert chess.square_name(last.to_square) == "h8"


# ════════════════════════════════════════════════════════════════════════════
#  EVALUATOR TESTS
# ════════════════════════════════════════════════════════════════════════════

class TestEvaluator:
    def setup_method(self):
        self.ev = Evaluator()

    def test_starting_position_value(self):
        # material and tables cancel; white to move has 20 moves
        assert self.ev.evaluate(chess.Board()) == pytest.approx(40)

    def test_black_to_move_mobility_sign(self):
        board = chess.Board()
        board.push_san("Nf3")
        # knight g1 (-4.0) -> f3 (+1.0), Black has 20 replies counted against White
        assert self.ev.evaluate(board) == pytest.approx(5 - 40)

    def test_white_up_queen(self):
        board = chess.Board("4k3/8/8/8/8/8/8/4KQ2 w - - 0 1")
        assert self.ev.evaluate(board) > 800

    def test_black_up_queen(self):
        board = chess.Board("4kq2/8/8/8/8/8/8/4K3 w - - 0 1")
        assert self.ev.evaluate(board) < -800

    def test_checkmate_white_mated(self):
        assert self.ev.evaluate(chess.Board(FOOLS_MATE)) == -EvalConfig().mate_score

    def test_checkmate_black_mated(self):
        board = chess.Board("rnbqkbnr/ppppp2p/5p2/6pQ/4P3/8/PPPP1PPP/RNB1KBNR b KQkq - 1 3")
        assert board.is_checkmate()
        assert self.ev.evaluate(board) == EvalConfig().mate_score

    def test_mate_outweighs_material(self):
        # Black mated despite a huge material edge
        board = chess.Board("q6k/q5QQ/q7/q7/8/8/8/1K6 b - - 0 1")
        assert board.is_checkmate()
        assert self.ev.evaluate(board) > 0

    def test_draws_score_zero(self):
        assert self.ev.evaluate(chess.Board(STALEMATE)) == 0
        assert self.ev.evaluate(chess.Board("4k3/8/8/8/8/8/8/4K3 w - - 0 1")) == 0

    def test_pawn_table_lookup(self):
        # lone white pawn on e2 vs e4: e4 is worth more (+2.0 vs -2.0 from the table)
        ev = Evaluator()
        e2 = chess.Board("4k3/8/8/8/8/8/4P3/K7 b - - 0 1")
        e4 = chess.Board("4k3/8/8/8/4P3/8/8/K7 b - - 0 1")
        assert ev._positional_bonus(chess.PAWN, chess.E2, chess.WHITE) == -2.0
        assert ev._positional_bonus(chess.PAWN, chess.E4, chess.WHITE) == 2.0
        assert ev.evaluate(e4) > ev.evaluate(e2)

    def test_pawn_table_mirrored_for_black(self):
        assert self.ev._positional_bonus(chess.PAWN, chess.E7, chess.BLACK) == -2.0
        assert self.ev._positional_bonus(chess.PAWN, chess.E2, chess.BLACK) == 5.0

    def test_knight_table(self):
        assert self.ev._positional_bonus(chess.KNIGHT, chess.A1, chess.WHITE) == -5.0
        assert self.ev._positional_bonus(chess.KNIGHT, chess.E4, chess.WHITE) == 2.0
        assert self.ev._positional_bonus(chess.KNIGHT, chess.E5, chess.BLACK) == 2.0

    def test_other_pieces_have_no_bonus(self):
        for pt in (chess.BISHOP, chess.ROOK, chess.QUEEN, chess.KING):
            assert self.ev._positional_bonus(pt, chess.E4, chess.WHITE) == 0

    def test_center_control(self):
        board = chess.Board("4k3/8/8/8/3N4/8/8/4K3 w - - 0 1")  # knight on d4
        assert self.ev._eval_center(board) == 10
        board = chess.Board("4k3/8/3n4/8/8/8/8/4K3 w - - 0 1")  # knight on d6
        assert self.ev._eval_center(board) == -5

    def test_aggression_scales_center(self):
        board = chess.Board("4k3/8/8/8/3N4/8/P7/4K3 w - - 0 1")
        calm = self.ev.evaluate(board, aggression=0)
        normal = self.ev.evaluate(board, aggression=50)
        wild = self.ev.evaluate(board, aggression=100)
        assert normal - calm == pytest.approx(10)
        assert wild - calm == pytest.approx(20)

    def test_aggression_irrelevant_without_center_pieces(self):
        board = chess.Board("4k3/8/8/8/8/8/8/R3K3 w - - 0 1")
        assert self.ev.evaluate(board, 0) == self.ev.evaluate(board, 100)

    @pytest.mark.parametrize("fen", [chess.STARTING_FEN, MIDDLEGAME, FOOLS_MATE, "4k3/8/8/8/3N4/8/8/4K2R b - - 0 1"])
    @pytest.mark.parametrize("aggression", [0, 50, 70])
    def test_mirror_symmetry(self, fen, aggression):
        board = chess.Board(fen)
        assert self.ev.evaluate(board.mirror(), aggression) == pytest.approx(-self.ev.evaluate(board, aggression))

    def test_deterministic(self):
        board = chess.Board(MIDDLEGAME)
        assert self.ev.evaluate(board, 60) == self.ev.evaluate(board, 60)

    def test_does_not_modify_board(self):
        board = chess.Board(MIDDLEGAME)
        before = _state(board)
        self.ev.evaluate(board)
        assert _state(board) == before

    def test_evaluate_pawns_scale(self):
        board = chess.Board(MIDDLEGAME)
        assert self.ev.evaluate_pawns(board) == pytest.approx(self.ev.evaluate(board) / 100)


# ════════════════════════════════════════════════════════════════════════════
#  SEARCH TESTS
# ════════════════════════════════════════════════════════════════════════════

class TestSearchEngine:
    def setup_method(self):
        self.cfg = AgentConfig(depth=2, randomness=0, aggression=50)
        self.engine = SearchEngine(self.cfg)

    def test_search_returns_legal_move(self):
        board = chess.Board()
        move = self.engine.search_best_move(board)
        assert move in board.legal_moves

    def test_checkmate_returns_none(self):
        assert self.engine.search_best_move(chess.Board(FOOLS_MATE)) is None

    def test_stalemate_returns_none(self):
        assert self.engine.search_best_move(chess.Board(STALEMATE)) is None

    @pytest.mark.parametrize("fen", [chess.STARTING_FEN, MIDDLEGAME, "6k1/5ppp/8/8/8/8/5PPP/R5K1 w - - 0 1"])
    def test_deterministic_without_randomness(self, fen):
        results = {SearchEngine(self.cfg).search_best_move(chess.Board(fen)) for _ in range(3)}
        assert len(results) == 1

    @pytest.mark.parametrize("depth", [1, 2])
    def test_position_restored(self, depth):
        board = chess.Board(MIDDLEGAME)
        board.push_san("O-O")
        before = _state(board)
        SearchEngine(AgentConfig(depth=depth, randomness=0)).search_best_move(board)
        assert _state(board) == before

    def test_position_restored_with_randomness(self):
        board = chess.Board(MIDDLEGAME)
        before = _state(board)
        SearchEngine(AgentConfig(depth=2, randomness=100), rng=random.Random(3)).search_best_move(board)
        assert _state(board) == before

    def test_position_restored_when_evaluator_raises(self):
        class Boom(Evaluator):
            calls = 0

            def evaluate(self, board, aggression=50):
                Boom.calls += 1
                if Boom.calls > 5:
                    raise RuntimeError("boom")
                return super().evaluate(board, aggression)

        board = chess.Board()
        before = _state(board)
        with pytest.raises(RuntimeError):
            SearchEngine(AgentConfig(depth=3, randomness=0), evaluator=Boom()).search_best_move(board)
        assert _state(board) == before

    def test_finds_back_rank_mate(self):
        board = chess.Board("6k1/5ppp/8/8/8/8/5PPP/R5K1 w - - 0 1")
        assert self.engine.search_best_move(board) == chess.Move.from_uci("a1a8")

    def test_black_finds_mate(self):
        board = chess.Board("r5k1/8/8/8/8/8/5PPP/6K1 b - - 0 1")
        move = SearchEngine(AgentConfig(depth=2, randomness=0)).search_best_move(board)
        assert move == chess.Move.from_uci("a8a1")

    def test_captures_hanging_queen(self):
        board = chess.Board("4k3/8/8/3q4/4P3/8/8/4K3 w - - 0 1")
        move = SearchEngine(AgentConfig(depth=1, randomness=0)).search_best_move(board)
        assert move == chess.Move.from_uci("e4d5")

    def test_depth_one_picks_best_static_eval(self):
        board = chess.Board(MIDDLEGAME)
        engine = SearchEngine(AgentConfig(depth=1, randomness=0))
        move = engine.search_best_move(board)
        scores = {m: s for m, s in engine.last_candidates}
        assert scores[move] == max(scores.values())

    def test_first_move_wins_ties(self):
        # Kings only: every king move has the same material; ties go to the first generated
        board = chess.Board("8/8/8/8/8/8/8/K6k w - - 0 1")
        engine = SearchEngine(AgentConfig(depth=1, randomness=0))
        move = engine.search_best_move(board)
        scores = [s for _, s in engine.last_candidates]
        first_best = next(m for m, s in engine.last_candidates if s == max(scores))
        assert move == first_best

    def test_candidates_cover_all_root_moves(self):
        board = chess.Board()
        self.engine.search_best_move(board)
        assert {m for m, _ in self.engine.last_candidates} == set(board.legal_moves)

    def test_randomness_picks_from_top_moves(self):
        board = chess.Board()
        rng = random.Random(1234)
        engine = SearchEngine(AgentConfig(depth=1, randomness=100), rng=rng)
        picks = set()
        for _ in range(40):
            picks.add(engine.search_best_move(board))
        ranked = sorted(engine.last_candidates, key=lambda c: c[1], reverse=True)
        top = {m for m, _ in ranked[: max(3, len(ranked) // 3)]}
        assert picks <= top
        assert len(picks) > 1

    def test_randomness_for_black_uses_lowest_scores(self):
        board = chess.Board()
        board.push_san("e4")
        engine = SearchEngine(AgentConfig(depth=1, randomness=100), rng=random.Random(7))
        picks = {engine.search_best_move(board) for _ in range(30)}
        ranked = sorted(engine.last_candidates, key=lambda c: c[1])
        top = {m for m, _ in ranked[: max(3, len(ranked) // 3)]}
        assert picks <= top

    def test_seeded_rng_reproducible(self):
        cfg = AgentConfig(depth=1, randomness=50)
        a = [SearchEngine(cfg, rng=random.Random(99)).search_best_move(chess.Board()) for _ in range(1)]
        b = [SearchEngine(cfg, rng=random.Random(99)).search_best_move(chess.Board()) for _ in range(1)]
        assert a == b

    def test_config_argument_overrides(self):
        board = chess.Board("6k1/5ppp/8/8/8/8/5PPP/R5K1 w - - 0 1")
        engine = SearchEngine(AgentConfig(depth=1, randomness=100))
        assert engine.search_best_move(board, AgentConfig(depth=2, randomness=0)) == chess.Move.from_uci("a1a8")

    def test_nodes_counted(self):
        self.engine.search_best_move(chess.Board())
        assert self.engine.nodes > 20

    def test_get_evaluation_uses_aggression(self):
        board = chess.Board("4k3/8/8/8/3N4/8/P7/4K3 w - - 0 1")
        calm = SearchEngine(AgentConfig(aggression=0)).get_evaluation(board)
        wild = SearchEngine(AgentConfig(aggression=100)).get_evaluation(board)
        assert wild - calm == pytest.approx(0.2)

    def test_info_line_skipped_unless_debug(self, monkeypatch, caplog):
        from arena.core import search

        built = []
        monkeypatch.setattr(search, "format_info", lambda *a: built.append(a) or "info")
        engine = SearchEngine(AgentConfig(depth=1, randomness=0))

        caplog.set_level(logging.INFO, logger="arena.core.search")
        engine.search_best_move(chess.Board())
        assert built == []

        caplog.set_level(logging.DEBUG, logger="arena.core.search")
        engine.search_best_move(chess.Board())
        assert len(built) == 1
        assert "info" in caplog.text


# ════════════════════════════════════════════════════════════════════════════
#  AGENTS / CONFIG
# ════════════════════════════════════════════════════════════════════════════

class TestAgents:
    def test_presets(self):
        assert set(AGENT_PRESETS) == {"stockfish", "leela", "komodo", "fire"}
        assert get_agent("stockfish").config == AgentConfig(depth=3, randomness=5, aggression=60)
        assert get_agent("fire").config == AgentConfig(depth=2, randomness=20, aggression=70)

    def test_presets_immutable(self):
        with pytest.raises(TypeError):
            AGENT_PRESETS["new"] = get_agent("fire")
        with pytest.raises(Exception):
            get_agent("leela").config.depth = 9

    def test_unknown_agent(self):
        with pytest.raises(UnknownAgent):
            get_agent("deep-blue")
        with pytest.raises(KeyError):
            get_agent("deep-blue")

    def test_resolve_agent(self):
        custom = Agent("t", "Test", AgentConfig(1, 0, 50))
        assert resolve_agent(custom) is custom
        assert resolve_agent("komodo").name == "Komodo Dragon"

    @pytest.mark.parametrize("kwargs", [{"depth": 0}, {"randomness": 101}, {"randomness": -1}, {"aggression": 150}])
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValueError):
            AgentConfig(**kwargs)


class TestConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = Config.load_from_toml(str(tmp_path / "nope.toml"))
        assert cfg.match.autoplay_interval_ms == 1000
        assert cfg.match.finish_grace_ms == 1000
        assert cfg.eval.piece_values["QUEEN"] == 9

    def test_toml_merge(self, tmp_path):
        path = tmp_path / "arena.toml"
        path.write_text(
            'log_level = "DEBUG"\n'
            "[match]\nautoplay_interval_ms = 500\nwhite_agent = \"fire\"\nbogus = 1\n"
            "[eval]\nmobility_weight = 3\n"
        )
        cfg = Config.load_from_toml(str(path))
        assert cfg.log_level == "DEBUG"
        assert cfg.match.autoplay_interval_ms == 500
        assert cfg.match.white_agent == "fire"
        assert cfg.eval.mobility_weight == 3
        assert not hasattr(cfg.match, "bogus")

    def test_as_dict(self):
        data = Config().as_dict()
        assert data["match"]["replay_speed_ms"] == 800
        assert data["log_level"] == "INFO"


# ════════════════════════════════════════════════════════════════════════════
#  EVALUATION SUMMARY
# ════════════════════════════════════════════════════════════════════════════

class TestAnalyzer:
    def test_format(self):
        assert format_evaluation(0.34) == "+0.3"
        assert format_evaluation(-1.25) == "-1.2" or format_evaluation(-1.25) == "-1.3"
        assert format_evaluation(0) == "0.0"

    @pytest.mark.parametrize(
        "score,label",
        [(3.0, "White winning"), (1.0, "White better"), (0.2, "Equal"), (-0.7, "Black better"), (-2.5, "Black winning")],
    )
    def test_advantage_label(self, score, label):
        assert advantage_label(score) == label

    def test_summarize_empty(self):
        s = summarize([])
        assert s.current == 0.0 and s.lead_changes == 0 and s.label == "Equal"

    def test_summarize(self):
        s = summarize([0.4, -0.3, 0.0, -1.0, 2.5])
        assert s.current == 2.5
        assert s.best_white == 2.5
        assert s.best_black == -1.0
        assert s.lead_changes == 2
        assert s.label == "White winning"
        assert s.text == "+2.5"

    def test_graph_points_clamped(self):
        assert graph_points([1.0, 12.0, -1000.0]) == [(1, 1.0), (2, 5.0), (3, -5.0)]
