"""Load per-game predicate tables.

Game data files are YAML:

    game: ages
    goal: [maku seed]
    items: [feather, sword, d1 small key]
    pool: {feather: 1, sword: 1, "rupees, 20": 3}
    companions: {ricky: ricky nuun}
    seasons: {north horon: [spring, winter]}
    entrances: {enter d1: d1 entrance}
    portals: {}
    rings: {names: [ring 1], appearances: [discovery ring, toss ring]}
    restrictions:
      - {items: 'd(\\d) (small|boss) key', slots: 'd\\1 .*'}
    nodes:
      start: {and: []}
      starting chest: {and: [start], slot: true}
      lynna city: {or: [sword, {and: [feather, bracelet]}, {hard: boomerang}]}

A term is a node name, `{hard: name}`, or a nested `{and: [...]}`,
`{or: [...]}`, `{hard_and: [...]}` or `{hard_or: [...]}`. Hard terms
may only appear directly under an OR.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from seedroute.errors import GameDataError
from seedroute.logic import Expr, NodeDef, NodeKind, Ref, Term, hard_under_and

# YAML key -> (kind, hard)
_FORMS: dict[str, tuple[NodeKind, bool]] = {
    "and": (NodeKind.AND, False),
    "or": (NodeKind.OR, False),
    "root": (NodeKind.ROOT, False),
    "hard_and": (NodeKind.AND, True),
    "hard_or": (NodeKind.OR, True),
}


def season_node(area: str, season: str) -> str:
    """Name of the node that is reachable when an area has a given season."""
    return f"{area} {season}"


@dataclass
class RingTable:
    """Logical ring names in the pool and the appearances they can take."""

    names: list[str] = field(default_factory=list)
    appearances: list[str] = field(default_factory=list)


@dataclass
class Restriction:
    """Items matching `items` may only go in slots matching `slots`.

    `slots` is expanded against the item match, so it may use
    back-references such as `\\1`.
    """

    items: re.Pattern[str]
    slots: str

    def slot_pattern(self, item: str) -> str | None:
        """Slot regex for an item, or None if the rule does not apply."""
        match = self.items.fullmatch(item)
        if match is None:
            return None
        return match.expand(self.slots)


@dataclass
class GameData:
    """A game's predicate table plus everything needed to randomize it."""

    name: str
    nodes: dict[str, NodeDef]
    items: list[str] = field(default_factory=list)
    pool: dict[str, int] = field(default_factory=dict)
    goal: list[str] = field(default_factory=list)
    companions: dict[str, str] = field(default_factory=dict)
    seasons: dict[str, list[str]] = field(default_factory=dict)
    entrances: dict[str, str] = field(default_factory=dict)
    portals: dict[str, str] = field(default_factory=dict)
    rings: RingTable = field(default_factory=RingTable)
    restrictions: list[Restriction] = field(default_factory=list)

    def __post_init__(self) -> None:
        errors = self.check()
        if errors:
            raise GameDataError(f"{self.name}: {'; '.join(errors)}")

    def check(self) -> list[str]:
        """Return consistency problems that do not depend on options."""
        errors: list[str] = []
        for name, definition in sorted(self.nodes.items()):
            if definition.kind is not NodeKind.ROOT and hard_under_and(
                definition.kind, definition.terms
            ):
                errors.append(f"Node '{name}' has a hard-only term under an AND")
        for item in self.items:
            if item in self.nodes:
                errors.append(f"'{item}' is declared both as item and node")
        for area, seasons in self.seasons.items():
            for season in seasons:
                name = season_node(area, season)
                if name in self.nodes or name in self.items:
                    errors.append(f"Season node '{name}' is already declared")
            if not seasons:
                errors.append(f"Area '{area}' has no seasons")
        for companion, root in self.companions.items():
            definition = self.nodes.get(root)
            if definition is None or definition.kind is not NodeKind.ROOT:
                errors.append(f"Companion '{companion}' root '{root}' is not a root")
        for table in (self.entrances, self.portals):
            for inner in table.values():
                definition = self.nodes.get(inner)
                if definition is None or definition.kind is not NodeKind.OR:
                    errors.append(f"Connection target '{inner}' must be an OR node")
            if len(set(table.values())) != len(table):
                errors.append("Connection targets must be unique")
        for ring in self.rings.names:
            if ring not in self.pool:
                errors.append(f"Ring '{ring}' is not in the pool")
        if len(self.rings.appearances) < len(self.rings.names):
            errors.append("Fewer ring appearances than ring names")
        for name, count in self.pool.items():
            if count < 1:
                errors.append(f"Pool count for '{name}' must be positive")
        return errors

    def slot_names(self) -> list[str]:
        """Sorted names of all placement locations."""
        return sorted(name for name, node in self.nodes.items() if node.is_slot)

    def pool_items(self) -> list[str]:
        """The pool as a sorted list with repeats."""
        return [name for name in sorted(self.pool) for _ in range(self.pool[name])]

    def is_restricted(self, item: str) -> bool:
        """True if any placement restriction applies to the item."""
        return any(r.items.fullmatch(item) for r in self.restrictions)

    def allows(self, item: str, slot: str) -> bool:
        """Check an item against every restriction that applies to it."""
        for restriction in self.restrictions:
            pattern = restriction.slot_pattern(item)
            if pattern is not None and not re.fullmatch(pattern, slot):
                return False
        return True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameData:
        """Create GameData from a dictionary (e.g., parsed YAML)."""
        name = data.get("game", "")
        if not name:
            raise GameDataError("Missing 'game' name")

        nodes_section = data.get("nodes") or {}
        if not isinstance(nodes_section, dict):
            raise GameDataError(f"{name}: 'nodes' must be a mapping")
        nodes = {
            str(node_name): _parse_node(str(node_name), entry)
            for node_name, entry in nodes_section.items()
        }

        rings_section = data.get("rings") or {}
        restrictions: list[Restriction] = []
        for entry in data.get("restrictions") or []:
            try:
                restrictions.append(
                    Restriction(items=re.compile(entry["items"]), slots=entry["slots"])
                )
            except (KeyError, TypeError, re.error) as e:
                raise GameDataError(f"{name}: invalid restriction {entry!r}") from e

        return cls(
            name=name,
            nodes=nodes,
            items=[str(i) for i in data.get("items") or []],
            pool={str(k): int(v) for k, v in (data.get("pool") or {}).items()},
            goal=[str(g) for g in data.get("goal") or []],
            companions=dict(data.get("companions") or {}),
            seasons={k: list(v) for k, v in (data.get("seasons") or {}).items()},
            entrances=dict(data.get("entrances") or {}),
            portals=dict(data.get("portals") or {}),
            rings=RingTable(
                names=list(rings_section.get("names", [])),
                appearances=list(rings_section.get("appearances", [])),
            ),
            restrictions=restrictions,
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> GameData:
        """Load game data from a YAML file."""
        path = Path(path)
        with path.open(encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise GameDataError(f"Cannot parse {path}: {e}") from e
        if not isinstance(data, dict):
            raise GameDataError(f"{path} does not contain a mapping")
        return cls.from_dict(data)


def _parse_node(name: str, entry: Any) -> NodeDef:
    """Parse one `nodes` entry."""
    if not isinstance(entry, dict):
        raise GameDataError(f"Node '{name}': expected a mapping, got {entry!r}")
    forms = [key for key in entry if key in _FORMS]
    unknown = [key for key in entry if key not in _FORMS and key != "slot"]
    if len(forms) != 1 or unknown:
        raise GameDataError(
            f"Node '{name}': expected exactly one of {', '.join(_FORMS)} "
            f"and optionally 'slot', got {sorted(entry)}"
        )
    kind, hard = _FORMS[forms[0]]
    terms = tuple(_parse_term(name, t) for t in entry[forms[0]] or [])
    return NodeDef(kind, terms, is_slot=bool(entry.get("slot", False)), hard=hard)


def _parse_term(name: str, term: Any) -> Term:
    """Parse a term inside node `name`."""
    if isinstance(term, str):
        return Ref(term)
    if isinstance(term, dict) and len(term) == 1:
        ((key, value),) = term.items()
        if key == "hard" and isinstance(value, str):
            return Ref(value, hard=True)
        if key in _FORMS and key != "root" and isinstance(value, list):
            kind, hard = _FORMS[key]
            return Expr(kind, tuple(_parse_term(name, t) for t in value), hard)
    raise GameDataError(f"Node '{name}': invalid term {term!r}")


def load_game_data(path: str | Path) -> GameData:
    """Load game data from a YAML file.

    This is a convenience function that wraps GameData.from_yaml().
    """
    return GameData.from_yaml(path)


def load_game(data_dir: str | Path, game: str) -> GameData:
    """Load `<data_dir>/<game>.yaml`."""
    return load_game_data(Path(data_dir) / f"{game}.yaml")
