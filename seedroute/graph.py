"""Logic graph data structures for seedroute.

A `LogicGraph` is built fresh from a `GameData` table and the option set of
one game instance. Nodes keep symmetric parent back-references so that
reachability can be pushed forward incrementally by the evaluator.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterable, Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from itertools import product
from typing import TYPE_CHECKING

from seedroute.errors import GraphError
from seedroute.game_data import GameData, season_node
from seedroute.logic import (
    NodeKind,
    PlacedItem,
    Ref,
    SideChannels,
    Term,
    filter_hard,
    is_satisfied,
    iter_refs,
)

if TYPE_CHECKING:
    from seedroute.config import LogicOptions


@dataclass
class Node:
    """A vertex of the logic graph: an item, event or location.

    Nodes are identified by their `name` field. Two nodes with the same name
    are considered equal regardless of other fields.
    """

    name: str
    kind: NodeKind
    terms: list[Term] = field(default_factory=list)
    is_slot: bool = False
    parents: set[str] = field(default_factory=set)
    reached: bool = False
    item: PlacedItem | None = None  # slots only

    def __hash__(self) -> int:
        """Hash by name only."""
        return hash(self.name)

    def __eq__(self, other: object) -> bool:
        """Equality by name only."""
        if not isinstance(other, Node):
            return NotImplemented
        return self.name == other.name

    def children(self) -> list[str]:
        """Sorted names of all nodes referenced by this node's terms."""
        return sorted(set(iter_refs(self.terms)))


@dataclass
class LogicGraph:
    """All nodes of one game instance.

    Attributes:
        game: Game name.
        instance: Index of the instance in a multiworld run (0 otherwise).
        hard: Whether hard-only terms were kept.
        nodes: Name -> node.
        goal: Win-condition node names.
        lock: Held while the graph is spliced under a composite root.
    """

    game: str
    instance: int = 0
    hard: bool = False
    nodes: dict[str, Node] = field(default_factory=dict)
    goal: list[str] = field(default_factory=list)
    lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def __deepcopy__(self, memo: dict[int, object]) -> LogicGraph:
        # Locks cannot be copied; the copy gets its own.
        return LogicGraph(
            game=self.game,
            instance=self.instance,
            hard=self.hard,
            nodes=copy.deepcopy(self.nodes, memo),
            goal=list(self.goal),
        )

    def __getitem__(self, name: str) -> Node:
        return self.nodes[name]

    def __contains__(self, name: object) -> bool:
        return name in self.nodes

    def add_node(self, node: Node) -> None:
        """Add a node to the graph. Call link() once all nodes are added."""
        self.nodes[node.name] = node

    def link(self) -> list[tuple[str, str]]:
        """Rebuild every parent set from the terms.

        Returns:
            Sorted (node, reference) pairs for references that do not resolve.
        """
        missing: list[tuple[str, str]] = []
        for node in self.nodes.values():
            node.parents.clear()
        for node in self.nodes.values():
            for ref in iter_refs(node.terms):
                target = self.nodes.get(ref)
                if target is None:
                    missing.append((node.name, ref))
                else:
                    target.parents.add(node.name)
        return sorted(set(missing))

    def add_term(self, name: str, term: Term) -> None:
        """Append a term to a node, keeping parent references symmetric."""
        missing = [(name, ref) for ref in iter_refs([term]) if ref not in self.nodes]
        if missing:
            raise GraphError(missing)
        self.nodes[name].terms.append(term)
        for ref in iter_refs([term]):
            self.nodes[ref].parents.add(name)

    def demote(self, name: str) -> None:
        """Turn a node into a leaf that can never be reached by logic."""
        node = self.nodes[name]
        for ref in iter_refs(node.terms):
            self.nodes[ref].parents.discard(name)
        node.kind = NodeKind.OR
        node.terms = []

    def slot_names(self) -> list[str]:
        """Sorted names of all slot nodes."""
        return sorted(name for name, node in self.nodes.items() if node.is_slot)

    def root_names(self) -> list[str]:
        """Sorted names of all ROOT nodes."""
        return sorted(
            name for name, node in self.nodes.items() if node.kind is NodeKind.ROOT
        )

    def is_progression(self, item: str) -> bool:
        """True if holding the item can change reachability."""
        node = self.nodes.get(item)
        return node is not None and bool(node.parents)

    def is_satisfied(self, name: str) -> bool:
        """Evaluate a node's formula against the current marks."""
        node = self.nodes[name]
        return is_satisfied(node.kind, node.terms, lambda n: self.nodes[n].reached)

    def goal_reached(self) -> bool:
        """True if every win-condition node is marked reached."""
        return all(self.nodes[name].reached for name in self.goal)

    def reached_names(self) -> set[str]:
        """Names of all nodes currently marked reached."""
        return {name for name, node in self.nodes.items() if node.reached}

    def placements(self) -> dict[str, PlacedItem]:
        """Slot name -> placed item, sorted by slot."""
        return {
            name: node.item
            for name, node in sorted(self.nodes.items())
            if node.is_slot and node.item is not None
        }

    def clear_marks(self) -> None:
        """Clear every reached mark, keeping placed items."""
        for node in self.nodes.values():
            node.reached = False

    def reset(self) -> None:
        """Return the graph to its pristine unreached, unfilled state."""
        for node in self.nodes.values():
            node.reached = False
            node.item = None

    def clone(self) -> LogicGraph:
        """Return a pristine deep copy of the graph."""
        graph = copy.deepcopy(self)
        graph.reset()
        return graph


def build_graph(
    game: GameData, options: LogicOptions, instance: int = 0
) -> LogicGraph:
    """Build the logic graph of one game instance.

    Hard-only terms are dropped unless hard logic is enabled, and hard-only
    nodes become unreachable leaves. Item names become OR leaves and every
    season of every area becomes a root; side channels are applied later
    with apply_side_channels().

    Raises:
        GraphError: If any term or goal refers to an undefined node.
    """
    graph = LogicGraph(
        game=game.name, instance=instance, hard=options.hard, goal=list(game.goal)
    )

    for name in sorted(game.nodes):
        definition = game.nodes[name]
        if definition.hard and not options.hard:
            graph.add_node(Node(name, NodeKind.OR, is_slot=definition.is_slot))
            continue
        kept = (filter_hard(term, options.hard) for term in definition.terms)
        terms = [term for term in kept if term is not None]
        graph.add_node(Node(name, definition.kind, terms, definition.is_slot))

    for item in game.items:
        graph.add_node(Node(item, NodeKind.OR))

    for area in sorted(game.seasons):
        for season in game.seasons[area]:
            graph.add_node(Node(season_node(area, season), NodeKind.ROOT))

    missing = graph.link()
    missing.extend(("goal", name) for name in game.goal if name not in graph)
    if missing:
        raise GraphError(missing)
    return graph


def apply_side_channels(
    graph: LogicGraph, game: GameData, channels: SideChannels
) -> None:
    """Apply companion, season and connection choices to a graph in place."""
    if channels.companion is not None:
        for companion, root in sorted(game.companions.items()):
            if companion != channels.companion:
                graph.demote(root)

    for area, chosen in sorted(channels.seasons.items()):
        for season in game.seasons[area]:
            if season != chosen:
                graph.demote(season_node(area, season))

    for connections in (channels.entrances, channels.portals):
        wire_connections(graph, sorted(connections.items()))


def wire_connections(graph: LogicGraph, pairs: Iterable[tuple[str, str]]) -> None:
    """Make each inner node reachable through its outer node."""
    for outer, inner in pairs:
        graph.add_term(inner, Ref(outer))


def wire_all_connections(graph: LogicGraph, connections: dict[str, str]) -> None:
    """Connect every outer node to every inner node.

    Used to check satisfiability before any shuffle is drawn.
    """
    wire_connections(graph, product(sorted(connections), sorted(connections.values())))


class CompositeRoot:
    """Synthetic root holding several instance graphs for joint evaluation.

    The composite root does not own the graphs; each graph stays with its
    instance. Attaching and detaching are guarded by the root's lock, and
    spliced() also holds the lock of every graph it attaches, so two callers
    evaluating the same graphs run one after the other. Attempts working on
    private clones never contend.
    """

    def __init__(self) -> None:
        self._graphs: list[LogicGraph] = []
        self._lock = threading.Lock()

    @property
    def graphs(self) -> list[LogicGraph]:
        """Attached graphs, in attach order."""
        return list(self._graphs)

    def attach(self, graph: LogicGraph) -> None:
        """Add an instance graph under the composite root."""
        with self._lock:
            if any(g is graph for g in self._graphs):
                raise ValueError(
                    f"Graph of instance {graph.instance} already attached"
                )
            self._graphs.append(graph)

    def detach(self, graph: LogicGraph) -> None:
        """Remove an instance graph from the composite root."""
        with self._lock:
            self._graphs = [g for g in self._graphs if g is not graph]

    @contextmanager
    def spliced(self, graphs: Iterable[LogicGraph]) -> Iterator[CompositeRoot]:
        """Attach graphs for the duration of a with block.

        Graph locks are taken in a fixed order so that overlapping graph sets
        cannot deadlock.
        """
        attached = list(graphs)
        if len({id(g) for g in attached}) != len(attached):
            raise ValueError("A graph cannot be spliced twice")
        with ExitStack() as stack:
            for graph in sorted(attached, key=lambda g: (g.instance, id(g))):
                stack.enter_context(graph.lock)
            for graph in attached:
                self.attach(graph)
            try:
                yield self
            finally:
                for graph in attached:
                    self.detach(graph)
