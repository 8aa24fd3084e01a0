"""Incremental reachability evaluation.

Reachability is a monotone fixpoint: nodes are only ever marked reached,
never unmarked, so a work-set propagation over parent back-references
settles in O(E) per pass. Cycles without an independent path into them
simply never get marked.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Sequence

from seedroute.graph import LogicGraph
from seedroute.logic import NodeKind, is_satisfied

# (position of the graph in the evaluator, node name)
Key = tuple[int, str]


class Evaluator:
    """Propagates reachability across one or more instance graphs.

    Marks are stored on the nodes themselves; the graphs must start with
    cleared marks (see LogicGraph.clear_marks()).
    """

    def __init__(self, graphs: Sequence[LogicGraph]) -> None:
        self.graphs = list(graphs)

    def start(self) -> list[Key]:
        """Mark ROOT nodes and nodes that hold without any reference.

        A node without references (an empty AND, or one whose only terms
        are empty sub-expressions) is never revisited by propagation, so it
        is settled here once.

        Returns:
            Sorted keys of every newly reached node.
        """
        seeds: list[Key] = []
        for position, graph in enumerate(self.graphs):
            for name, node in sorted(graph.nodes.items()):
                if node.reached:
                    continue
                if node.kind is NodeKind.ROOT or (
                    not node.children() and graph.is_satisfied(name)
                ):
                    node.reached = True
                    seeds.append((position, name))
        return self._propagate(seeds)

    def hold(self, position: int, name: str) -> list[Key]:
        """Mark an item or event held and propagate.

        Names without a node (items no logic refers to) are ignored.

        Returns:
            Sorted keys of every newly reached node.
        """
        node = self.graphs[position].nodes.get(name)
        if node is None or node.reached:
            return []
        node.reached = True
        return self._propagate([(position, name)])

    def hold_all(self, keys: Iterable[Key]) -> list[Key]:
        """Hold several items at once."""
        reached: list[Key] = []
        for position, name in sorted(keys):
            reached.extend(self.hold(position, name))
        return sorted(reached)

    def preview(self, position: int, name: str) -> list[Key]:
        """Keys that holding an item would newly reach, without marking them."""
        node = self.graphs[position].nodes.get(name)
        if node is None or node.reached:
            return []
        overlay: set[Key] = {(position, name)}
        return self._propagate([(position, name)], overlay)

    def is_reached(self, position: int, name: str) -> bool:
        return self.graphs[position].nodes[name].reached

    def reachable(self) -> set[Key]:
        """Keys of every reached node."""
        return {
            (position, name)
            for position, graph in enumerate(self.graphs)
            for name, node in graph.nodes.items()
            if node.reached
        }

    def reached_slots(self) -> list[Key]:
        """Sorted keys of every reached slot."""
        return sorted(
            (position, name)
            for position, graph in enumerate(self.graphs)
            for name, node in graph.nodes.items()
            if node.is_slot and node.reached
        )

    def _propagate(
        self, seeds: list[Key], overlay: set[Key] | None = None
    ) -> list[Key]:
        """Push reachability from seeds to a fixpoint.

        With an overlay, new marks are collected there instead of on nodes.
        """
        reached: list[Key] = []
        work: deque[Key] = deque(seeds)
        if overlay is None:
            reached.extend(seeds)

        while work:
            position, name = work.popleft()
            graph = self.graphs[position]

            def is_reached(ref: str) -> bool:
                return graph.nodes[ref].reached or (
                    overlay is not None and (position, ref) in overlay
                )

            for parent_name in sorted(graph.nodes[name].parents):
                if is_reached(parent_name):
                    continue
                parent = graph.nodes[parent_name]
                if not is_satisfied(parent.kind, parent.terms, is_reached):
                    continue
                key = (position, parent_name)
                if overlay is None:
                    parent.reached = True
                else:
                    overlay.add(key)
                reached.append(key)
                work.append(key)

        return sorted(reached)


def evaluate(graph: LogicGraph, held: Iterable[str] = ()) -> set[str]:
    """Compute the reachable node names of a single graph from scratch.

    Existing marks are cleared first; placed items are not consulted.
    """
    graph.clear_marks()
    evaluator = Evaluator([graph])
    evaluator.start()
    evaluator.hold_all((0, name) for name in held)
    return graph.reached_names()
