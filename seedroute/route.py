"""Randomized item placement for seedroute.

Items are placed by assumed fill: an item only ever goes into a slot that
is already reachable given the items placed before it, and progression
items immediately expand reachability. A dead end abandons the attempt;
the driver retries from a pristine clone of the graphs with the next
attempt seed.

Selection policy (seed-deterministic):
- Candidates are always kept in sorted order before a draw.
- Restricted items (e.g. dungeon keys) are placed as soon as one of their
  allowed slots is open: item drawn uniformly, then slot.
- Otherwise a reachable empty slot is drawn uniformly, then an allowed item
  weighted by its remaining count.
- When that slot is the last open one, only items that open a new slot on
  their own are eligible.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from seedroute.bimap import BiMap
from seedroute.config import LogicOptions
from seedroute.errors import AttemptError, ConfigurationError, SearchExhaustedError
from seedroute.evaluator import Evaluator, Key, evaluate
from seedroute.game_data import GameData
from seedroute.graph import (
    CompositeRoot,
    LogicGraph,
    apply_side_channels,
    build_graph,
    wire_all_connections,
    wire_connections,
)
from seedroute.logic import PlacedItem, SideChannels
from seedroute.validator import ValidationResult, validate_routes


@dataclass
class Instance:
    """One game taking part in a search, with its options."""

    game: GameData
    options: LogicOptions = field(default_factory=LogicOptions)


@dataclass
class RouteInfo:
    """Result of the search for one instance.

    Attributes:
        instance: Index of the instance.
        game: Game name.
        graph: Filled graph, kept for sphere computation.
        seed: Seed of the attempt that produced the route.
        side_channels: Companion, seasons, connections and ring remapping.
        used_slots: Slots in placement order.
        used_items: Items placed in used_slots, same order.
    """

    instance: int
    game: str
    graph: LogicGraph
    seed: int
    side_channels: SideChannels
    used_slots: list[str] = field(default_factory=list)
    used_items: list[PlacedItem] = field(default_factory=list)

    def checks(self) -> dict[str, PlacedItem]:
        """Slot -> item, sorted by slot."""
        return dict(sorted(zip(self.used_slots, self.used_items, strict=True)))


@dataclass
class RouteResult:
    """Result of a full search.

    Attributes:
        routes: One RouteInfo per instance, in instance order.
        seed: The run seed.
        validation: Validation of the accepted placement.
        attempts: Number of attempts made (0 for fixed plans).
    """

    routes: list[RouteInfo]
    seed: int
    validation: ValidationResult
    attempts: int

    @property
    def graphs(self) -> list[LogicGraph]:
        return [route.graph for route in self.routes]

    def patch_items(self, instance: int) -> dict[str, str]:
        """Slot -> item name as the patcher should write it.

        Rings are replaced by the appearance drawn by their owner instance.
        """
        items: dict[str, str] = {}
        for slot, item in self.routes[instance].checks().items():
            ring_map = self.routes[item.instance].side_channels.ring_map
            items[slot] = ring_map.get(item.name, item.name)
        return items


def draw_side_channels(
    game: GameData, options: LogicOptions, rng: random.Random
) -> SideChannels:
    """Draw companion, seasons, connections and ring appearances.

    The random source is consumed in the same order whatever the options:
    shuffles are drawn even when their option is off, then discarded.
    """
    companions = sorted(game.companions)
    companion = rng.choice(companions) if companions else None
    seasons = {area: rng.choice(game.seasons[area]) for area in sorted(game.seasons)}
    entrances = _draw_connections(game.entrances, options.dungeons, rng)
    portals = _draw_connections(game.portals, options.portals, rng)

    appearances = list(game.rings.appearances)
    rng.shuffle(appearances)
    ring_map = BiMap(zip(sorted(game.rings.names), appearances))

    return SideChannels(
        companion=companion,
        seasons=seasons,
        entrances=entrances,
        portals=portals,
        ring_map=ring_map,
    )


def _draw_connections(
    connections: dict[str, str], shuffle: bool, rng: random.Random
) -> dict[str, str]:
    outers = sorted(connections)
    inners = [connections[outer] for outer in outers]
    shuffled = list(inners)
    rng.shuffle(shuffled)
    return dict(zip(outers, shuffled if shuffle else inners, strict=True))


def check_instances(instances: Sequence[Instance]) -> None:
    """Reject configurations that no placement could satisfy.

    For each instance, the pool must match the slot count, and every slot
    and goal must be reachable with every pool item held under the most
    permissive side channels.

    Raises:
        GraphError: If a table refers to an undefined node.
        ConfigurationError: For any other unsatisfiable configuration.
    """
    if not instances:
        raise ConfigurationError("No instances to randomize")

    errors: list[str] = []
    for index, instance in enumerate(instances):
        game = instance.game
        prefix = f"{game.name}[{index}]" if len(instances) > 1 else game.name
        graph = build_graph(game, instance.options, index)
        slots = graph.slot_names()

        pool_size = sum(game.pool.values())
        if pool_size != len(slots):
            errors.append(
                f"{prefix}: pool has {pool_size} items but there are "
                f"{len(slots)} slots"
            )

        for connections, shuffled in (
            (game.entrances, instance.options.dungeons),
            (game.portals, instance.options.portals),
        ):
            if shuffled:
                wire_all_connections(graph, connections)
            else:
                wire_connections(graph, sorted(connections.items()))

        reached = evaluate(graph, game.pool)
        unreachable = [slot for slot in slots if slot not in reached]
        if unreachable:
            errors.append(
                f"{prefix}: slots unreachable with every item held: "
                f"{', '.join(unreachable)}"
            )
        goals = [name for name in game.goal if name not in reached]
        if goals:
            errors.append(
                f"{prefix}: goal unreachable with every item held: {', '.join(goals)}"
            )
        for item in sorted(game.pool):
            if game.is_restricted(item) and not any(
                game.allows(item, slot) for slot in slots
            ):
                errors.append(f"{prefix}: no slot accepts restricted item '{item}'")

    if errors:
        raise ConfigurationError("; ".join(errors))


def run_attempt(
    instances: Sequence[Instance], pristine: Sequence[LogicGraph], seed: int
) -> tuple[list[RouteInfo], ValidationResult]:
    """Run one attempt on clones of the pristine graphs.

    This is a pure function of (pristine graphs, seed): the pristine graphs
    are never mutated.

    Raises:
        AttemptError: On a dead end or a failed post-fill verification.
    """
    rng = random.Random(seed)
    channels = [
        draw_side_channels(instance.game, instance.options, rng)
        for instance in instances
    ]
    graphs: list[LogicGraph] = []
    for instance, base, choice in zip(instances, pristine, channels, strict=True):
        graph = base.clone()
        apply_side_channels(graph, instance.game, choice)
        graphs.append(graph)

    games = [instance.game for instance in instances]
    placements = _fill(games, graphs, rng)

    validation = validate_routes(graphs, games)
    if not validation.is_valid:
        raise AttemptError(f"verification failed: {validation.errors[0]}")

    routes = [
        RouteInfo(
            instance=index,
            game=games[index].name,
            graph=graph,
            seed=seed,
            side_channels=channels[index],
        )
        for index, graph in enumerate(graphs)
    ]
    for (position, slot), item in placements:
        routes[position].used_slots.append(slot)
        routes[position].used_items.append(item)
    return routes, validation


class _Rules:
    """Placement restrictions of every instance, cached per item."""

    def __init__(self, games: Sequence[GameData]) -> None:
        self.games = games
        self._restricted: dict[PlacedItem, bool] = {}

    def is_restricted(self, item: PlacedItem) -> bool:
        if item not in self._restricted:
            game = self.games[item.instance]
            self._restricted[item] = game.is_restricted(item.name)
        return self._restricted[item]

    def allows(self, item: PlacedItem, slot: Key) -> bool:
        if not self.is_restricted(item):
            return True
        position, name = slot
        return position == item.instance and self.games[position].allows(
            item.name, name
        )


def _fill(
    games: Sequence[GameData], graphs: Sequence[LogicGraph], rng: random.Random
) -> list[tuple[Key, PlacedItem]]:
    """Place the whole pool by assumed fill.

    Returns:
        (slot key, item) pairs in placement order.

    Raises:
        AttemptError: When no reachable empty slot is left for the remaining
            items, or no item can go where it must.
    """
    rules = _Rules(games)
    pool = sorted(
        PlacedItem(index, name)
        for index, game in enumerate(games)
        for name in game.pool_items()
    )
    placements: list[tuple[Key, PlacedItem]] = []

    root = CompositeRoot()
    with root.spliced(graphs) as composite:
        evaluator = Evaluator(composite.graphs)
        evaluator.start()

        while pool:
            open_slots = [
                key
                for key in evaluator.reached_slots()
                if graphs[key[0]].nodes[key[1]].item is None
            ]
            if not open_slots:
                raise AttemptError(
                    f"dead end with {len(pool)} items left, "
                    f"including '{pool[0].name}'"
                )

            slot, item = _choose(graphs, evaluator, rules, open_slots, pool, rng)
            pool.remove(item)
            graphs[slot[0]].nodes[slot[1]].item = item
            placements.append((slot, item))
            if graphs[item.instance].is_progression(item.name):
                evaluator.hold(item.instance, item.name)

    return placements


def _choose(
    graphs: Sequence[LogicGraph],
    evaluator: Evaluator,
    rules: _Rules,
    open_slots: list[Key],
    pool: list[PlacedItem],
    rng: random.Random,
) -> tuple[Key, PlacedItem]:
    """Pick the next (slot, item) pair following the module's policy."""
    urgent = [
        item
        for item in pool
        if rules.is_restricted(item) and any(rules.allows(item, s) for s in open_slots)
    ]
    if urgent:
        item = rng.choice(urgent)
        slot = rng.choice([s for s in open_slots if rules.allows(item, s)])
        return slot, item

    slot = rng.choice(open_slots)
    candidates = [item for item in pool if rules.allows(item, slot)]
    if not candidates:
        raise AttemptError(f"no remaining item may be placed in '{slot[1]}'")

    if len(open_slots) == 1 and len(pool) > 1:
        openers = {
            item for item in set(candidates) if _opens_slot(graphs, evaluator, item)
        }
        if not openers:
            raise AttemptError(f"no single item opens a new slot after '{slot[1]}'")
        candidates = [item for item in candidates if item in openers]

    return slot, rng.choice(candidates)


def _opens_slot(
    graphs: Sequence[LogicGraph], evaluator: Evaluator, item: PlacedItem
) -> bool:
    """True if holding the item would reach an empty slot."""
    if not graphs[item.instance].is_progression(item.name):
        return False
    for position, name in evaluator.preview(item.instance, item.name):
        node = graphs[position].nodes[name]
        if node.is_slot and node.item is None:
            return True
    return False


def _try(
    instances: Sequence[Instance], pristine: Sequence[LogicGraph], seed: int
) -> tuple[list[RouteInfo], ValidationResult] | str:
    """Run an attempt, returning its failure message instead of raising."""
    try:
        return run_attempt(instances, pristine, seed)
    except AttemptError as e:
        return str(e)


def _run_attempts(
    instances: Sequence[Instance],
    pristine: Sequence[LogicGraph],
    seeds: list[int],
    workers: int,
) -> Iterator[tuple[int, tuple[list[RouteInfo], ValidationResult] | str]]:
    """Yield (attempt seed, outcome) in attempt order.

    With several workers, attempts run in batches on a thread pool; outcomes
    are still yielded in order, so the accepted attempt does not depend on
    the number of workers.
    """
    if workers <= 1:
        for seed in seeds:
            yield seed, _try(instances, pristine, seed)
        return

    with ThreadPoolExecutor(max_workers=workers) as executor:
        for start in range(0, len(seeds), workers):
            batch = seeds[start : start + workers]
            futures = [
                executor.submit(_try, instances, pristine, seed) for seed in batch
            ]
            for seed, future in zip(batch, futures, strict=True):
                yield seed, future.result()


def find_routes(
    instances: Sequence[Instance],
    seed: int,
    max_attempts: int = 100,
    workers: int = 1,
    log: Callable[[str], None] | None = print,
) -> RouteResult:
    """Place every instance's pool, retrying on dead ends.

    Attempt seeds are derived from the run seed up front, so the result
    depends only on the seed, the game data and the options.

    Args:
        instances: Games to randomize; several instances share one search.
        seed: 32-bit run seed.
        max_attempts: Retry budget.
        workers: Number of threads running attempts.
        log: Called with one line per failed attempt, or None for silence.

    Returns:
        RouteResult with one RouteInfo per instance.

    Raises:
        ConfigurationError: If the configuration is unsatisfiable.
        SearchExhaustedError: If every attempt failed.
    """
    check_instances(instances)
    pristine = [
        build_graph(instance.game, instance.options, index)
        for index, instance in enumerate(instances)
    ]

    seed_rng = random.Random(seed)
    seeds = [seed_rng.getrandbits(32) for _ in range(max_attempts)]

    last_failure = ""
    outcomes = _run_attempts(instances, pristine, seeds, workers)
    for attempt, (attempt_seed, outcome) in enumerate(outcomes, start=1):
        if isinstance(outcome, str):
            last_failure = outcome
            if log is not None:
                log(f"Attempt {attempt}: seed {attempt_seed:08x} failed - {outcome}")
            continue
        outcomes.close()
        routes, validation = outcome
        return RouteResult(
            routes=routes, seed=seed, validation=validation, attempts=attempt
        )

    raise SearchExhaustedError(max_attempts, last_failure)
