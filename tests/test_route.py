"""Tests for the route finder."""

import random
import re

import pytest

from seedroute.config import LogicOptions
from seedroute.errors import (
    AttemptError,
    ConfigurationError,
    GraphError,
    SearchExhaustedError,
)
from seedroute.game_data import GameData, Restriction, RingTable
from seedroute.graph import build_graph
from seedroute.logic import And, AndSlot, NodeDef, Or, PlacedItem, Root
from seedroute.route import (
    Instance,
    check_instances,
    draw_side_channels,
    find_routes,
    run_attempt,
)


def make_game(
    nodes: dict[str, NodeDef],
    items: list[str],
    pool: dict[str, int],
    goal: list[str] | None = None,
    **extra,
) -> GameData:
    """Helper to create GameData from a node table."""
    return GameData(
        name=extra.pop("name", "test"),
        nodes={"start": And(), **nodes},
        items=items,
        pool=pool,
        goal=goal or [],
        **extra,
    )


def sword_game() -> GameData:
    """Two slots; the cave needs the sword item from the first slot.

    The slot is named "sword" and the item "sword item": the cave requires
    the item, not a visit to the slot.
    """
    return make_game(
        {"sword": AndSlot("start"), "cave": AndSlot("sword item")},
        items=["sword item"],
        pool={"sword item": 1, "heart piece": 1},
        goal=["cave"],
    )


def pair_game() -> GameData:
    """The cave needs two items, so a junk-first fill is a dead end."""
    return make_game(
        {
            "s1": AndSlot("start"),
            "s2": AndSlot("start"),
            "cave": AndSlot("a", "b"),
        },
        items=["a", "b"],
        pool={"a": 1, "b": 1, "junk": 1},
    )


class TestFindRoutes:
    """Tests for find_routes()."""

    @pytest.mark.parametrize("seed", range(10))
    def test_forced_placement(self, seed):
        """The only open slot receives the only item that opens the next one."""
        result = find_routes([Instance(sword_game())], seed, log=None)
        route = result.routes[0]
        assert route.checks() == {
            "cave": PlacedItem(0, "heart piece"),
            "sword": PlacedItem(0, "sword item"),
        }
        assert route.used_slots == ["sword", "cave"]
        assert result.attempts == 1
        assert result.seed == seed
        assert result.validation.is_valid

    def test_same_seed_same_result(self):
        game = pair_game()
        first = find_routes([Instance(game)], 1234, log=None)
        second = find_routes([Instance(pair_game())], 1234, log=None)
        assert first.routes[0].checks() == second.routes[0].checks()
        assert first.attempts == second.attempts
        assert first.routes[0].seed == second.routes[0].seed

    def test_workers_do_not_change_result(self):
        """The lowest successful attempt wins whatever the thread count."""
        for seed in range(5):
            single = find_routes([Instance(pair_game())], seed, log=None)
            threaded = find_routes(
                [Instance(pair_game())], seed, workers=4, log=None
            )
            assert single.attempts == threaded.attempts
            assert single.routes[0].checks() == threaded.routes[0].checks()

    def test_failed_attempts_are_logged(self):
        lines: list[str] = []
        results = [
            find_routes([Instance(pair_game())], seed, log=lines.append)
            for seed in range(30)
        ]
        retried = [r for r in results if r.attempts > 1]
        assert retried
        assert len(lines) == sum(r.attempts - 1 for r in results)
        assert lines[0].startswith("Attempt 1: seed ")

    def test_budget_exhausted(self):
        """With a single attempt, some seeds run out of budget."""
        errors = []
        for seed in range(30):
            try:
                find_routes([Instance(pair_game())], seed, max_attempts=1, log=None)
            except SearchExhaustedError as e:
                errors.append(e)
        assert errors
        assert all(e.attempts == 1 for e in errors)
        assert "after 1 attempts" in str(errors[0])

    def test_restricted_items_stay_in_allowed_slots(self):
        game = make_game(
            {
                "field chest": AndSlot("start"),
                "dungeon chest": AndSlot("start"),
                "dungeon boss": AndSlot("dungeon key"),
            },
            items=["dungeon key"],
            pool={"dungeon key": 1, "junk": 2},
            restrictions=[
                Restriction(items=re.compile("dungeon key"), slots="dungeon .*")
            ],
        )
        for seed in range(10):
            result = find_routes([Instance(game)], seed, log=None)
            checks = result.routes[0].checks()
            assert checks["dungeon chest"] == PlacedItem(0, "dungeon key")

    def test_ring_appearances_in_patch_items(self):
        game = make_game(
            {"chest": AndSlot("start")},
            items=[],
            pool={"ring 1": 1},
            rings=RingTable(names=["ring 1"], appearances=["red ring"]),
        )
        result = find_routes([Instance(game)], 7, log=None)
        assert result.routes[0].checks() == {"chest": PlacedItem(0, "ring 1")}
        assert result.patch_items(0) == {"chest": "red ring"}


class TestMultiworld:
    """Tests for searches over several instances."""

    def test_all_pools_placed(self):
        games = [sword_game(), pair_game()]
        result = find_routes([Instance(g) for g in games], 99, log=None)
        placed = sorted(
            item for route in result.routes for item in route.checks().values()
        )
        expected = sorted(
            PlacedItem(index, name)
            for index, game in enumerate(games)
            for name in game.pool_items()
        )
        assert placed == expected
        assert result.validation.is_valid
        assert [route.instance for route in result.routes] == [0, 1]

    def test_items_cross_instances(self):
        """Over several seeds, some item lands in another instance's slots."""
        crossed = False
        for seed in range(20):
            result = find_routes(
                [Instance(pair_game()), Instance(pair_game())], seed, log=None
            )
            for route in result.routes:
                for item in route.checks().values():
                    crossed = crossed or item.instance != route.instance
        assert crossed


class TestSideChannelDraws:
    """Tests for draw_side_channels()."""

    def make(self) -> GameData:
        return make_game(
            {
                "ricky root": Root(),
                "moosh root": Root(),
                "enter d1": And("start"),
                "enter d2": And("start"),
                "d1 inside": Or(),
                "d2 inside": Or(),
                "chest": AndSlot("start"),
            },
            items=[],
            pool={"ring 1": 1},
            companions={"ricky": "ricky root", "moosh": "moosh root"},
            seasons={"field": ["spring", "summer", "autumn", "winter"]},
            entrances={"enter d1": "d1 inside", "enter d2": "d2 inside"},
            rings=RingTable(names=["ring 1"], appearances=["a", "b", "c"]),
        )

    def test_rng_consumption_independent_of_options(self):
        game = self.make()
        plain = random.Random(5)
        shuffled = random.Random(5)
        draw_side_channels(game, LogicOptions(), plain)
        draw_side_channels(game, LogicOptions(dungeons=True, portals=True), shuffled)
        assert plain.random() == shuffled.random()

    def test_vanilla_connections_without_shuffle(self):
        channels = draw_side_channels(self.make(), LogicOptions(), random.Random(1))
        assert channels.entrances == {"enter d1": "d1 inside", "enter d2": "d2 inside"}

    def test_shuffled_connections_are_a_permutation(self):
        for seed in range(10):
            channels = draw_side_channels(
                self.make(), LogicOptions(dungeons=True), random.Random(seed)
            )
            assert sorted(channels.entrances) == ["enter d1", "enter d2"]
            assert sorted(channels.entrances.values()) == ["d1 inside", "d2 inside"]

    def test_choices_come_from_the_game(self):
        channels = draw_side_channels(self.make(), LogicOptions(), random.Random(3))
        assert channels.companion in ("ricky", "moosh")
        assert channels.seasons["field"] in ("spring", "summer", "autumn", "winter")
        assert list(channels.ring_map) == ["ring 1"]
        assert channels.ring_map["ring 1"] in ("a", "b", "c")

    def test_no_companions(self):
        channels = draw_side_channels(sword_game(), LogicOptions(), random.Random(3))
        assert channels.companion is None
        assert channels.seasons == {}
        assert len(channels.ring_map) == 0


class TestCheckInstances:
    """Tests for the static check before any search."""

    def test_valid(self):
        check_instances([Instance(sword_game()), Instance(pair_game())])

    def test_no_instances(self):
        with pytest.raises(ConfigurationError, match="No instances"):
            check_instances([])

    def test_pool_size_mismatch(self):
        game = make_game({"chest": AndSlot("start")}, items=[], pool={"junk": 2})
        with pytest.raises(ConfigurationError, match="pool has 2 items"):
            check_instances([Instance(game)])

    def test_unreachable_slot(self):
        game = make_game(
            {"chest": AndSlot("start"), "vault": AndSlot("missing key")},
            items=["missing key"],
            pool={"junk": 2},
        )
        with pytest.raises(ConfigurationError, match="vault"):
            check_instances([Instance(game)])

    def test_unreachable_goal(self):
        game = make_game(
            {"chest": AndSlot("start"), "win": Or()},
            items=[],
            pool={"junk": 1},
            goal=["win"],
        )
        with pytest.raises(ConfigurationError, match="goal unreachable"):
            check_instances([Instance(game)])

    def test_undefined_reference(self):
        game = make_game({"chest": AndSlot("nowhere")}, items=[], pool={"junk": 1})
        with pytest.raises(GraphError):
            check_instances([Instance(game)])

    def test_restricted_item_without_slot(self):
        game = make_game(
            {"chest": AndSlot("start")},
            items=[],
            pool={"d1 key": 1},
            restrictions=[Restriction(items=re.compile("d1 key"), slots="d1 .*")],
        )
        with pytest.raises(ConfigurationError, match="no slot accepts"):
            check_instances([Instance(game)])

    def test_find_routes_checks_first(self):
        game = make_game({"chest": AndSlot("start")}, items=[], pool={"junk": 2})
        with pytest.raises(ConfigurationError):
            find_routes([Instance(game)], 0, log=None)


class TestRunAttempt:
    """Tests for a single attempt."""

    def test_pristine_graphs_untouched(self):
        game = sword_game()
        pristine = [build_graph(game, LogicOptions())]
        run_attempt([Instance(game)], pristine, 42)
        assert all(node.item is None for node in pristine[0].nodes.values())
        assert not any(node.reached for node in pristine[0].nodes.values())

    def test_dead_end_raises(self):
        game = pair_game()
        pristine = [build_graph(game, LogicOptions())]
        failures = 0
        for seed in range(30):
            try:
                run_attempt([Instance(game)], pristine, seed)
            except AttemptError:
                failures += 1
        assert 0 < failures < 30
