"""Output module for route export to JSON and spoiler logs.

This module provides functions to export a finished search to:
- JSON format for consumption by the ROM patcher
- Human-readable spoiler log for players
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from seedroute.route import RouteInfo, RouteResult
from seedroute.spheres import Check, SphereResult


def route_to_dict(
    result: RouteResult,
    options: list[dict[str, bool]] | None = None,
) -> dict[str, Any]:
    """Convert a search result to a JSON-serializable dictionary.

    Args:
        result: The search result to convert
        options: Per-instance option flags to include

    Returns:
        Dictionary with the following structure:
        - seed: run seed as 8 hex digits
        - attempts: number of attempts used
        - instances: list of {game, seed, items, owners, companion, seasons,
          entrances, portals, rings, options}
        - spheres: list of lists of {instance, slot, item, owner}
        - extra: list of {instance, slot} for slots outside every sphere
    """
    instances: list[dict[str, Any]] = []
    for route in result.routes:
        channels = route.side_channels
        entry: dict[str, Any] = {
            "instance": route.instance,
            "game": route.game,
            "seed": f"{route.seed:08x}",
            "items": result.patch_items(route.instance),
            # slots holding items owned by another instance
            "owners": {
                slot: item.instance
                for slot, item in route.checks().items()
                if item.instance != route.instance
            },
            "companion": channels.companion,
            "seasons": dict(channels.seasons),
            "entrances": dict(channels.entrances),
            "portals": dict(channels.portals),
            "rings": channels.ring_map.to_dict(),
        }
        if options is not None:
            entry["options"] = options[route.instance]
        instances.append(entry)

    spheres = result.validation.spheres or SphereResult()
    return {
        "seed": f"{result.seed:08x}",
        "attempts": result.attempts,
        "instances": instances,
        "spheres": [
            [_check_to_dict(result, check) for check in sphere]
            for sphere in spheres.spheres
        ],
        "extra": [
            {"instance": instance, "slot": slot} for instance, slot in spheres.extra
        ],
    }


def _check_to_dict(result: RouteResult, check: Check) -> dict[str, Any]:
    item = check.item
    if item is None:
        name = None
    else:
        ring_map = result.routes[item.instance].side_channels.ring_map
        name = ring_map.get(item.name, item.name)
    return {
        "instance": check.instance,
        "slot": check.slot,
        "item": name,
        "owner": item.instance if item is not None else None,
    }


def export_json(
    result: RouteResult,
    output_path: Path,
    options: list[dict[str, bool]] | None = None,
) -> None:
    """Export a search result to a JSON file.

    Args:
        result: The search result to export
        output_path: Path to write the JSON file
        options: Per-instance option flags to include
    """
    data = route_to_dict(result, options)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _item_label(result: RouteResult, check: Check, multi: bool) -> str:
    item = check.item
    if item is None:
        return "(empty)"
    ring_map = result.routes[item.instance].side_channels.ring_map
    name = ring_map.get(item.name, item.name)
    if item.name in ring_map:
        name = f"{name} ({item.name})"
    if multi and item.instance != check.instance:
        name = f"{name} [player {item.instance + 1}]"
    return name


def _side_channel_lines(route: RouteInfo, prefix: str) -> list[str]:
    channels = route.side_channels
    lines: list[str] = []
    if channels.companion is not None:
        lines.append(f"{prefix}Companion: {channels.companion}")
    if channels.seasons:
        lines.append(f"{prefix}Seasons:")
        for area, season in sorted(channels.seasons.items()):
            lines.append(f"  {area}: {season}")
    for label, connections in (
        ("Entrances", channels.entrances),
        ("Portals", channels.portals),
    ):
        if connections:
            lines.append(f"{prefix}{label}:")
            for outer, inner in sorted(connections.items()):
                lines.append(f"  {outer} -> {inner}")
    return lines


def export_spoiler_log(result: RouteResult, output_path: Path) -> None:
    """Export human-readable spoiler log listing checks by sphere.

    Args:
        result: The search result to export
        output_path: Path to write the spoiler log
    """
    spheres = result.validation.spheres or SphereResult()
    multi = len(result.routes) > 1
    lines: list[str] = []

    # Header
    lines.append("=" * 60)
    lines.append(f"SEEDROUTE SPOILER (seed: {result.seed:08x})")
    lines.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append("=" * 60)
    lines.append(f"Games: {', '.join(route.game for route in result.routes)}")
    lines.append(f"Attempts: {result.attempts}")
    lines.append(f"Spheres: {len(spheres.spheres)}")
    lines.append("")

    for route in result.routes:
        prefix = f"[player {route.instance + 1}] " if multi else ""
        lines.extend(_side_channel_lines(route, prefix))
    lines.append("")

    for index, sphere in enumerate(spheres.spheres):
        lines.append("=" * 60)
        lines.append(f"SPHERE {index}")
        lines.append("=" * 60)
        for check in sphere:
            slot = check.slot
            if multi:
                slot = f"[player {check.instance + 1}] {slot}"
            lines.append(f"  {slot} <- {_item_label(result, check, multi)}")
        lines.append("")

    if spheres.extra:
        lines.append("=" * 60)
        lines.append("EXTRA")
        lines.append("=" * 60)
        for instance, slot in spheres.extra:
            item = result.routes[instance].graph.nodes[slot].item
            check = Check(instance, slot, item)
            label = f"[player {instance + 1}] {slot}" if multi else slot
            lines.append(f"  {label} <- {_item_label(result, check, multi)}")
        lines.append("")

    if result.validation.warnings:
        lines.append("Warnings:")
        for warning in result.validation.warnings:
            lines.append(f"  {warning}")

    # Write to file
    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))
