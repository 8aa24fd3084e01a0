"""Placement validation for seedroute.

This module verifies finished placements, distinguishing between errors
(blocking) and warnings (informational).
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from seedroute.game_data import GameData
from seedroute.graph import LogicGraph
from seedroute.spheres import SphereResult, build_spheres


@dataclass
class ValidationResult:
    """Result of placement validation.

    Attributes:
        is_valid: True if the placement passes all required checks (no errors).
        errors: List of blocking issues that make the placement invalid.
        warnings: List of informational issues that don't block validation.
        spheres: Sphere layering computed during validation.
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    spheres: SphereResult | None = None


def validate_routes(
    graphs: Sequence[LogicGraph], games: Sequence[GameData], strict: bool = True
) -> ValidationResult:
    """Validate filled graphs against their games.

    Checks:
    - Every slot holds exactly one item
    - Placed items equal each instance's pool exactly
    - Placement restrictions hold (restricted items stay in their instance)
    - Every slot and every goal node is reachable

    Args:
        graphs: Filled graphs, in instance order.
        games: Game data of each instance, same order.
        strict: If False, unreachable slots and goals are warnings instead of
            errors (used for fixed plans).

    Returns:
        ValidationResult with errors, warnings and spheres.
    """
    errors: list[str] = []
    warnings: list[str] = []
    multi = len(graphs) > 1

    _check_filled(graphs, multi, errors)
    _check_pool(graphs, games, multi, errors)
    _check_restrictions(graphs, games, multi, errors)

    spheres = build_spheres(graphs)
    _check_reachability(graphs, spheres, multi, errors if strict else warnings)

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        spheres=spheres,
    )


def _label(instance: int, name: str, multi: bool) -> str:
    return f"[{instance}] {name}" if multi else name


def _check_filled(
    graphs: Sequence[LogicGraph], multi: bool, errors: list[str]
) -> None:
    """Check that no slot is left empty."""
    for graph in graphs:
        for name in graph.slot_names():
            if graph.nodes[name].item is None:
                errors.append(f"Slot '{_label(graph.instance, name, multi)}' is empty")


def _check_pool(
    graphs: Sequence[LogicGraph],
    games: Sequence[GameData],
    multi: bool,
    errors: list[str],
) -> None:
    """Check that placed items match every instance's pool as a multiset."""
    placed: list[Counter[str]] = [Counter() for _ in games]
    for graph in graphs:
        for slot, item in graph.placements().items():
            if not 0 <= item.instance < len(games):
                errors.append(
                    f"Slot '{_label(graph.instance, slot, multi)}' holds item "
                    f"'{item.name}' of unknown instance {item.instance}"
                )
                continue
            placed[item.instance][item.name] += 1

    for instance, game in enumerate(games):
        expected = Counter(game.pool)
        for name in sorted(set(expected) | set(placed[instance])):
            if placed[instance][name] != expected[name]:
                errors.append(
                    f"Item '{_label(instance, name, multi)}' placed "
                    f"{placed[instance][name]} times, pool has {expected[name]}"
                )


def _check_restrictions(
    graphs: Sequence[LogicGraph],
    games: Sequence[GameData],
    multi: bool,
    errors: list[str],
) -> None:
    """Check that restricted items sit in allowed slots of their own instance."""
    for graph in graphs:
        for slot, item in graph.placements().items():
            if not 0 <= item.instance < len(games):
                continue
            game = games[item.instance]
            if not game.is_restricted(item.name):
                continue
            if item.instance != graph.instance or not game.allows(item.name, slot):
                errors.append(
                    f"Item '{_label(item.instance, item.name, multi)}' is not "
                    f"allowed in slot '{_label(graph.instance, slot, multi)}'"
                )


def _check_reachability(
    graphs: Sequence[LogicGraph],
    spheres: SphereResult,
    multi: bool,
    issues: list[str],
) -> None:
    """Report extra slots and unreached goals."""
    for instance, slot in spheres.extra:
        issues.append(f"Slot '{_label(instance, slot, multi)}' is unreachable")
    for graph in graphs:
        for name in graph.goal:
            if not graph.nodes[name].reached:
                issues.append(
                    f"Goal '{_label(graph.instance, name, multi)}' is unreachable"
                )
