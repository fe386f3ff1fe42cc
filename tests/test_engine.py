"""Tests for the transition engine: step semantics, event order and the
epsilon-closure fixed point.
"""

import logging

import pytest

from epsnfa.automaton.engine import MachineRecord, TransitionEngine
from epsnfa.automaton.events import EventDispatcher
from epsnfa.automaton.state import EMPTY_SYMBOL, NULL_STATE
from epsnfa.automaton.table import StateTable
from epsnfa.config import Config, DanglingPolicy
from epsnfa.exceptions import UnknownStateReference


def build_engine(transitions, config: Config = None) -> TransitionEngine:
    """Build an engine over states defined as {id: {symbol: target}}."""
    config = config or Config.lenient()
    table = StateTable(config)
    for state_id in transitions:
        table.add_state(state_id)
    for state_id, moves in transitions.items():
        for symbol, to in moves.items():
            table.add_transition(state_id, symbol, to)
    record = MachineRecord(table=table, events=EventDispatcher(), config=config)
    return TransitionEngine(record)


def trace(engine: TransitionEngine):
    """Bind recording handlers to every event and return the log."""
    log = []
    events = engine.events
    events.bind_machine("changing", lambda: log.append("changing"))
    events.bind_machine("change", lambda: log.append("change"))
    for state_id in engine.table:
        for kind in ("leaving", "leave", "arriving", "arrive"):
            events.bind_state(
                state_id, kind, lambda s=state_id, k=kind: log.append(f"{k}:{s}")
            )
    return log


class TestStep:
    """A single step without epsilon moves."""

    def test_deterministic(self):
        engine = build_engine({"A": {"a": "B"}, "B": {}})
        assert engine.run("a", sources=["A"]).active == ("B",)
        assert engine.record.active == ["B"]

    def test_unknown_symbol_kills_branch(self):
        engine = build_engine({"A": {"a": "B"}, "B": {}})
        assert engine.run("z", sources=["A"]).active == ()

    def test_empty_symbol_stays(self):
        engine = build_engine({"A": {"a": "B"}, "B": {}})
        assert engine.run(EMPTY_SYMBOL, sources=["A", "B"]).active == ("A", "B")

    def test_branching_keeps_discovery_order(self):
        engine = build_engine({"A": {"a": ["C", "B"]}, "B": {}, "C": {}})
        assert engine.run("a", sources=["A"]).active == ("C", "B")

    def test_duplicates_collapse(self):
        engine = build_engine(
            {"A": {"a": ["C", "B"]}, "B": {"a": "C"}, "C": {"a": "A"}}
        )
        assert engine.run("a", sources=["A", "B", "C"]).active == ("C", "B", "A")

    def test_explicit_null_destination(self):
        engine = build_engine({"A": {"a": [NULL_STATE, "B"]}, "B": {}})
        assert engine.run("a", sources=["A"]).active == ("B",)

    def test_empty_set_stays_empty(self):
        engine = build_engine({"A": {"a": "A"}})
        assert engine.run("a", sources=[]).active == ()
        assert engine.run(EMPTY_SYMBOL).active == ()


class TestEventOrder:
    def test_single_step(self):
        engine = build_engine({"S": {"a": ["T", "U"]}, "T": {}, "U": {}})
        engine.record.active = ["S"]
        log = trace(engine)

        engine.run("a")

        assert log == [
            "changing",
            "leaving:S",
            "leave:S",
            "arriving:T",
            "arrive:T",
            "leave:S",
            "arriving:U",
            "arrive:U",
            "change",
        ]

    def test_leave_skipped_for_known_destination(self):
        engine = build_engine({"P": {"a": "Q"}, "R": {"a": "Q"}, "Q": {}})
        engine.record.active = ["P", "R"]
        log = trace(engine)

        engine.run("a")

        assert log.count("leaving:R") == 1
        assert "leave:R" not in log
        assert log.count("arriving:Q") == 1

    def test_leave_skipped_for_dead_branch(self):
        engine = build_engine({"P": {}})
        engine.record.active = ["P"]
        log = trace(engine)

        engine.run("a")

        assert log == ["changing", "leaving:P", "change"]

    def test_change_sees_new_set(self):
        engine = build_engine({"A": {"a": "B"}, "B": {}})
        engine.record.active = ["A"]
        seen = []

        def snapshot():
            seen.append(list(engine.record.active))

        engine.events.bind_machine("changing", snapshot)
        engine.events.bind_machine("change", snapshot)

        engine.run("a")

        assert seen == [["A"], ["B"]]

    def test_one_pair_per_epsilon_pass(self):
        engine = build_engine({"A": {"": "B"}, "B": {"": "C"}, "C": {}})
        log = trace(engine)

        result = engine.run(EMPTY_SYMBOL, sources=["A"])

        assert result.active == ("C",)
        assert result.steps == 2
        assert log.count("changing") == 2
        assert log.count("change") == 2


class TestEpsilonClosure:
    def test_follows_after_symbol(self):
        engine = build_engine(
            {"A": {"a": "B"}, "B": {"": ["C", "D"]}, "C": {}, "D": {}}
        )
        assert engine.run("a", sources=["A"]).active == ("C", "D")

    def test_explicit_move_replaces_state(self):
        engine = build_engine({"A": {"": "E"}, "E": {}})
        assert engine.run(EMPTY_SYMBOL, sources=["A"]).active == ("E",)

    def test_states_without_moves_stay(self):
        engine = build_engine({"A": {"": "B"}, "B": {"": "C"}, "C": {}, "K": {}})
        assert engine.run(EMPTY_SYMBOL, sources=["A", "K"]).active == ("C", "K")

    def test_idempotent(self):
        engine = build_engine({"A": {"": ["B", "C"]}, "B": {}, "C": {}})
        closed = engine.run(EMPTY_SYMBOL, sources=["A"]).active
        assert engine.run(EMPTY_SYMBOL).active == closed

    def test_epsilon_closure_helper(self):
        engine = build_engine(
            {"A": {"": ["B", "C"]}, "B": {"": "D"}, "C": {"": "A"}, "D": {}}
        )
        assert engine.epsilon_closure(["A"]) == ["A", "B", "C", "D"]
        assert engine.epsilon_closure(["D", "D"]) == ["D"]


class TestEpsilonCycles:
    """Epsilon cycles must terminate and settle on the cycle's states."""

    def test_two_cycle(self):
        engine = build_engine({"X": {"": "Y"}, "Y": {"": "X"}})
        result = engine.run(EMPTY_SYMBOL, sources=["X"])
        assert result.active == ("X", "Y")
        assert result.collapsed
        assert result.steps == 3

    @pytest.mark.parametrize("size", [2, 3, 5])
    def test_ring_is_idempotent(self, size):
        ids = [f"S{i}" for i in range(size)]
        engine = build_engine({s: {"": ids[(i + 1) % size]} for i, s in enumerate(ids)})
        first = engine.run(EMPTY_SYMBOL, sources=[ids[0]]).active

        again = engine.run(EMPTY_SYMBOL).active

        assert first == tuple(ids)
        assert again == first, "order must survive another empty input"

    def test_self_loop(self):
        engine = build_engine({"S": {"": "S"}})
        result = engine.run(EMPTY_SYMBOL, sources=["S"])
        assert result.active == ("S",)
        assert result.steps == 1
        assert not result.collapsed

    def test_chain_into_cycle(self):
        engine = build_engine(
            {"A": {"": "B"}, "B": {"": "X"}, "X": {"": "Y"}, "Y": {"": "X"}}
        )
        assert engine.run(EMPTY_SYMBOL, sources=["A"]).active == ("X", "Y")

    def test_cycle_reached_by_symbol(self):
        engine = build_engine({"A": {"a": "X"}, "X": {"": "Y"}, "Y": {"": "X"}})
        assert engine.run("a", sources=["A"]).active == ("X", "Y")

    def test_cycle_next_to_stable_state(self):
        engine = build_engine(
            {"A": {"": ["X", "Z"]}, "X": {"": "Y"}, "Y": {"": "X"}, "Z": {}}
        )
        assert engine.run(EMPTY_SYMBOL, sources=["A"]).active == ("X", "Y", "Z")

    @pytest.mark.parametrize("size", [3, 5, 12])
    def test_ring_is_bounded(self, size):
        ids = [f"S{i}" for i in range(size)]
        engine = build_engine({s: {"": ids[(i + 1) % size]} for i, s in enumerate(ids)})
        log = trace(engine)

        result = engine.run(EMPTY_SYMBOL, sources=[ids[0]])

        assert result.active == tuple(ids)
        assert result.steps == size + 1
        assert log.count("changing") == size + 1

    def test_converging_paths_are_not_a_cycle(self):
        # Two epsilon paths of different length meet at W; nothing loops.
        engine = build_engine(
            {
                "A": {"": ["W", "X"]},
                "X": {"": "Y"},
                "Y": {"": "W"},
                "W": {"": "V"},
                "V": {},
            }
        )

        result = engine.run(EMPTY_SYMBOL, sources=["A"])

        assert result.active == ("V",)
        assert result.steps == 4
        assert not result.collapsed
        assert engine.run(EMPTY_SYMBOL).active == ("V",)

    def test_collapse_fires_events(self):
        engine = build_engine({"X": {"": "Y"}, "Y": {"": "X"}})
        engine.record.active = ["X"]
        log = trace(engine)

        engine.run(EMPTY_SYMBOL)

        assert log == [
            # X -> Y
            "changing",
            "leaving:X",
            "leave:X",
            "arriving:Y",
            "arrive:Y",
            "change",
            # Y -> X, back to the starting set
            "changing",
            "leaving:Y",
            "leave:Y",
            "arriving:X",
            "arrive:X",
            "change",
            # collapse
            "changing",
            "leaving:X",
            "leave:X",
            "arriving:X",
            "arrive:X",
            "leave:X",
            "arriving:Y",
            "arrive:Y",
            "change",
        ]


class TestDanglingReferences:
    def test_treated_as_null(self, caplog):
        engine = build_engine({"A": {"a": ["B", "Gone"]}, "B": {}})
        with caplog.at_level(logging.WARNING, logger="epsnfa.automaton.engine"):
            result = engine.run("a", sources=["A"])
        assert result.active == ("B",)
        assert "dangling reference to state 'Gone'" in caplog.text

    def test_raise_policy(self):
        config = Config(strict_targets=False, dangling=DanglingPolicy.RAISE)
        engine = build_engine({"A": {"a": "Gone"}}, config=config)
        with pytest.raises(UnknownStateReference) as exc_info:
            engine.run("a", sources=["A"])
        assert exc_info.value.state_id == "Gone"

    def test_dangling_epsilon_move(self):
        engine = build_engine({"A": {"": "Gone"}})
        assert engine.run(EMPTY_SYMBOL, sources=["A"]).active == ()

    def test_discard(self):
        engine = build_engine({"A": {}, "B": {}})
        engine.record.active = ["A", "B"]
        assert engine.discard("A")
        assert engine.record.active == ["B"]
        assert not engine.discard("A")
