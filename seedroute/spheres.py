"""Sphere layering of a finished placement.

Sphere 0 holds every slot reachable with nothing held. Sphere k holds every
slot that becomes reachable once the items of spheres 0..k-1 are held.
Slots never reached are reported as extra.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from seedroute.evaluator import Evaluator, Key
from seedroute.graph import CompositeRoot, LogicGraph
from seedroute.logic import PlacedItem


@dataclass(frozen=True)
class Check:
    """A slot and the item placed in it."""

    instance: int
    slot: str
    item: PlacedItem | None


@dataclass
class SphereResult:
    """Ordered spheres plus the slots no sphere reached.

    Attributes:
        spheres: Checks per sphere, each sorted by (instance, slot).
        extra: Sorted (instance, slot) keys of logically inert slots.
    """

    spheres: list[list[Check]] = field(default_factory=list)
    extra: list[Key] = field(default_factory=list)

    def required_slots(self) -> list[Key]:
        """Keys of every slot that appears in a sphere, in sphere order."""
        return [
            (check.instance, check.slot) for sphere in self.spheres for check in sphere
        ]

    def sphere_of(self, instance: int, slot: str) -> int | None:
        """Index of the sphere containing a slot, or None if it is extra."""
        for index, sphere in enumerate(self.spheres):
            if any(c.instance == instance and c.slot == slot for c in sphere):
                return index
        return None


def build_spheres(graphs: Sequence[LogicGraph]) -> SphereResult:
    """Partition every slot of every graph into spheres.

    Graphs must be passed in instance order, since placed items name their
    owner by instance index. Reached marks are left on the graphs afterwards
    so callers can inspect goal reachability.

    Raises:
        ValueError: If graphs are not in instance order.
    """
    for position, graph in enumerate(graphs):
        if graph.instance != position:
            raise ValueError(
                f"Graph at position {position} belongs to instance {graph.instance}"
            )

    result = SphereResult()
    seen: set[Key] = set()
    root = CompositeRoot()
    with root.spliced(graphs) as composite:
        for graph in graphs:
            graph.clear_marks()
        evaluator = Evaluator(composite.graphs)
        evaluator.start()

        while True:
            new_slots = [key for key in evaluator.reached_slots() if key not in seen]
            if not new_slots:
                break
            seen.update(new_slots)
            sphere = [
                Check(position, name, graphs[position].nodes[name].item)
                for position, name in new_slots
            ]
            result.spheres.append(sphere)
            evaluator.hold_all(
                (check.item.instance, check.item.name)
                for check in sphere
                if check.item is not None and 0 <= check.item.instance < len(graphs)
            )

    result.extra = [
        (position, name)
        for position, graph in enumerate(graphs)
        for name in graph.slot_names()
        if (position, name) not in seen
    ]
    return result
