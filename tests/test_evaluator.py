"""Tests for reachability evaluation."""

from pathlib import Path

import pytest

from seedroute.config import LogicOptions
from seedroute.errors import GameDataError
from seedroute.evaluator import Evaluator, evaluate
from seedroute.game_data import GameData, load_game
from seedroute.graph import LogicGraph, build_graph
from seedroute.logic import And, AndSlot, Hard, NodeDef, Or, Root

DATA_DIR = Path(__file__).parent.parent / "data"


def make_graph(
    nodes: dict[str, NodeDef],
    items: list[str] | None = None,
    hard: bool = False,
    instance: int = 0,
) -> LogicGraph:
    """Helper to build a graph from a node table."""
    game = GameData(name="test", nodes=nodes, items=items or [])
    return build_graph(game, LogicOptions(hard=hard), instance)


class TestStart:
    """Tests for the initial propagation."""

    def test_vacuous_and_or(self):
        """AND with no terms is reachable, OR with no terms is not."""
        graph = make_graph({"yes": And(), "no": Or()})
        assert evaluate(graph) == {"yes"}

    def test_root_is_reached(self):
        graph = make_graph({"root": Root("locked"), "locked": Or()})
        assert evaluate(graph) == {"root"}

    def test_propagates_from_start(self):
        graph = make_graph(
            {
                "start": And(),
                "a": And("start"),
                "b": Or("a", "sword"),
                "c": And("b", "sword"),
            },
            items=["sword"],
        )
        assert evaluate(graph) == {"start", "a", "b"}

    def test_cycle_without_entry_stays_unreached(self):
        graph = make_graph({"a": Or("b"), "b": Or("a")})
        assert evaluate(graph) == set()

    def test_and_cycle_stays_unreached_with_held_items(self):
        """An AND cycle with no outside path is unreached whatever is held."""
        graph = make_graph({"a": And("b"), "b": And("a")}, items=["k"])
        assert evaluate(graph, ["k"]) == {"k"}

    def test_cycle_with_entry(self):
        graph = make_graph({"start": And(), "a": Or("b", "start"), "b": Or("a")})
        assert evaluate(graph) == {"start", "a", "b"}

    def test_hard_truth(self):
        """An OR holding only a hard vacuous truth depends on hard logic."""
        nodes = {"trick": Or(Hard())}
        assert evaluate(make_graph(nodes, hard=True)) == {"trick"}
        assert evaluate(make_graph(nodes, hard=False)) == set()

    def test_start_returns_sorted_keys(self):
        graph = make_graph({"b": And(), "a": And("b")})
        evaluator = Evaluator([graph])
        assert evaluator.start() == [(0, "a"), (0, "b")]


class TestHold:
    """Tests for holding items."""

    def make(self) -> LogicGraph:
        return make_graph(
            {
                "start": And(),
                "cave": AndSlot("start", "sword"),
                "ledge": AndSlot("cave", "feather"),
            },
            items=["sword", "feather"],
        )

    def test_hold_propagates(self):
        graph = self.make()
        evaluator = Evaluator([graph])
        evaluator.start()
        assert evaluator.hold(0, "sword") == [(0, "cave"), (0, "sword")]
        assert evaluator.is_reached(0, "cave")
        assert evaluator.reached_slots() == [(0, "cave")]

    def test_hold_is_idempotent(self):
        graph = self.make()
        evaluator = Evaluator([graph])
        evaluator.start()
        evaluator.hold(0, "sword")
        assert evaluator.hold(0, "sword") == []

    def test_hold_unknown_item(self):
        graph = self.make()
        evaluator = Evaluator([graph])
        evaluator.start()
        assert evaluator.hold(0, "rupees") == []

    def test_hold_all(self):
        graph = self.make()
        evaluator = Evaluator([graph])
        evaluator.start()
        reached = evaluator.hold_all([(0, "feather"), (0, "sword")])
        assert (0, "ledge") in reached
        assert evaluator.reached_slots() == [(0, "cave"), (0, "ledge")]

    def test_preview_does_not_mark(self):
        graph = self.make()
        evaluator = Evaluator([graph])
        evaluator.start()
        assert evaluator.preview(0, "sword") == [(0, "cave")]
        assert not graph["cave"].reached
        assert not graph["sword"].reached

    def test_evaluate_with_held(self):
        graph = self.make()
        assert evaluate(graph, ["sword", "feather"]) == {
            "start",
            "cave",
            "ledge",
            "sword",
            "feather",
        }
        # marks are recomputed from scratch
        assert evaluate(graph) == {"start"}


class TestMultipleGraphs:
    """Tests for evaluation across several instance graphs."""

    def test_keys_are_per_graph(self):
        nodes = {"start": And(), "cave": AndSlot("sword")}
        first = make_graph(nodes, items=["sword"], instance=0)
        second = make_graph(nodes, items=["sword"], instance=1)
        evaluator = Evaluator([first, second])
        evaluator.start()
        evaluator.hold(1, "sword")
        assert evaluator.reached_slots() == [(1, "cave")]
        assert evaluator.reachable() == {
            (0, "start"),
            (1, "start"),
            (1, "sword"),
            (1, "cave"),
        }


class TestHardLogicMonotonic:
    """Enabling hard logic never shrinks the reachable set."""

    @pytest.mark.parametrize("name", ["ages", "seasons"])
    @pytest.mark.parametrize("held_all", [False, True])
    def test_shipped_tables(self, name, held_all):
        game = load_game(DATA_DIR, name)
        held = list(game.pool) if held_all else []
        off = evaluate(build_graph(game, LogicOptions(hard=False)), held)
        on = evaluate(build_graph(game, LogicOptions(hard=True)), held)
        assert off <= on

    def test_hard_alternative(self):
        nodes = {"start": And(), "ledge": Or(And("start", "never"), Hard("start"))}
        off = evaluate(make_graph(nodes, items=["never"], hard=False))
        on = evaluate(make_graph(nodes, items=["never"], hard=True))
        assert off == {"start"}
        assert on == {"start", "ledge"}

    def test_hard_term_under_and_rejected(self):
        """A hard requirement of an AND would be dropped without hard logic."""
        with pytest.raises(GameDataError, match="hard-only term under an AND"):
            make_graph({"start": And(), "x": And("start", Hard("never"))})
