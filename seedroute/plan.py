"""Fixed plans: hand-written placements that bypass the search.

A plan file is YAML:

    items:
      starting chest: feather
      d1 east chest: d1 small key
    companion: ricky
    seasons: {north horon: winter}
    entrances: {enter d1: d2 entrance}
    portals: {}
    rings: {ring 1: toss ring}

Items may be written by ring appearance; they are mapped back to the
logical ring name. Omitted connection tables keep the vanilla layout.
Unreachable slots are reported as warnings, not errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from seedroute.bimap import BiMap
from seedroute.errors import PlanError
from seedroute.graph import apply_side_channels, build_graph
from seedroute.logic import PlacedItem, SideChannels
from seedroute.route import Instance, RouteInfo, RouteResult
from seedroute.validator import validate_routes


@dataclass
class Plan:
    """A parsed plan file."""

    items: dict[str, str] = field(default_factory=dict)
    companion: str | None = None
    seasons: dict[str, str] = field(default_factory=dict)
    entrances: dict[str, str] | None = None
    portals: dict[str, str] | None = None
    rings: dict[str, str] = field(default_factory=dict)
    source: str = ""  # raw text, hashed into output file names

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str = "") -> Plan:
        """Create a Plan from a dictionary (e.g., parsed YAML)."""

        def table(key: str) -> dict[str, str]:
            section = data.get(key) or {}
            if not isinstance(section, dict):
                raise PlanError(f"Plan section '{key}' must be a mapping")
            return {str(k): str(v) for k, v in section.items()}

        companion = data.get("companion")
        return cls(
            items=table("items"),
            companion=str(companion) if companion is not None else None,
            seasons=table("seasons"),
            entrances=table("entrances") if "entrances" in data else None,
            portals=table("portals") if "portals" in data else None,
            rings=table("rings"),
            source=source,
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> Plan:
        """Load a plan from a YAML file."""
        path = Path(path)
        source = path.read_text(encoding="utf-8")
        try:
            data = yaml.safe_load(source)
        except yaml.YAMLError as e:
            raise PlanError(f"Cannot parse {path}: {e}") from e
        if not isinstance(data, dict):
            raise PlanError(f"{path} does not contain a mapping")
        return cls.from_dict(data, source)


def load_plan(path: str | Path) -> Plan:
    """Load a plan from a YAML file.

    This is a convenience function that wraps Plan.from_yaml().
    """
    return Plan.from_yaml(path)


def _plan_channels(plan: Plan, instance: Instance, errors: list[str]) -> SideChannels:
    """Check the plan's side channels against the game and build them."""
    game = instance.game

    if plan.companion is not None and plan.companion not in game.companions:
        errors.append(f"Unknown companion '{plan.companion}'")
    for area, season in sorted(plan.seasons.items()):
        if area not in game.seasons:
            errors.append(f"Unknown season area '{area}'")
        elif season not in game.seasons[area]:
            errors.append(f"Area '{area}' has no season '{season}'")

    connections: list[dict[str, str]] = []
    for label, planned, vanilla in (
        ("entrances", plan.entrances, game.entrances),
        ("portals", plan.portals, game.portals),
    ):
        if planned is None:
            connections.append(dict(vanilla))
            continue
        if set(planned) != set(vanilla) or sorted(planned.values()) != sorted(
            vanilla.values()
        ):
            errors.append(f"Plan {label} must map every connection exactly once")
        connections.append(dict(planned))

    for ring, appearance in sorted(plan.rings.items()):
        if ring not in game.rings.names:
            errors.append(f"Unknown ring '{ring}'")
        if appearance not in game.rings.appearances:
            errors.append(f"Unknown ring appearance '{appearance}'")
    try:
        ring_map: BiMap[str, str] = BiMap(plan.rings)
    except ValueError as e:
        errors.append(str(e))
        ring_map = BiMap()

    return SideChannels(
        companion=plan.companion,
        seasons=dict(plan.seasons),
        entrances=connections[0],
        portals=connections[1],
        ring_map=ring_map,
    )


def route_from_plan(instance: Instance, plan: Plan) -> RouteResult:
    """Build a route from a fixed plan instead of searching.

    Raises:
        PlanError: If the plan names unknown slots, items or side channels,
            leaves a slot empty, or does not place exactly the pool.
    """
    game = instance.game
    errors: list[str] = []
    channels = _plan_channels(plan, instance, errors)
    if errors:
        raise PlanError("; ".join(errors))

    graph = build_graph(game, instance.options)
    apply_side_channels(graph, game, channels)
    slots = graph.slot_names()

    for slot in sorted(plan.items):
        if slot not in slots:
            errors.append(f"Unknown slot '{slot}'")
    for slot in slots:
        if slot not in plan.items:
            errors.append(f"Slot '{slot}' has no item")
    if errors:
        raise PlanError("; ".join(errors))

    route = RouteInfo(
        instance=0, game=game.name, graph=graph, seed=0, side_channels=channels
    )
    for slot, name in sorted(plan.items.items()):
        item = PlacedItem(0, channels.ring_map.inverse.get(name, name))
        graph.nodes[slot].item = item
        route.used_slots.append(slot)
        route.used_items.append(item)

    validation = validate_routes([graph], [game], strict=False)
    if not validation.is_valid:
        raise PlanError("; ".join(validation.errors))
    return RouteResult(routes=[route], seed=0, validation=validation, attempts=0)
