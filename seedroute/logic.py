"""Logic vocabulary for seedroute.

A predicate table is a mapping of names to `NodeDef`s built with the
constructors in this module:

    "start": And(),
    "starting chest": AndSlot("start"),
    "lynna city": Or("break bush", "flute"),
    "ambi's palace chest": AndSlot("lynna village", Or(
        HardAnd("satchel", "scent seeds"),
        And("break bush", "mermaid suit"))),

Plain strings are references to other nodes. A `NodeDef` used as a term
becomes a nested `Expr`. Terms marked hard only count when hard logic is
enabled; otherwise they are removed from their parent entirely.
Hard terms may only sit directly under an OR.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from seedroute.bimap import BiMap


class NodeKind(Enum):
    """How a node combines its terms."""

    AND = "and"
    OR = "or"
    ROOT = "root"  # always reachable, terms are structural only


@dataclass(frozen=True)
class Ref:
    """A term referring to another node by name."""

    name: str
    hard: bool = False


@dataclass(frozen=True)
class Expr:
    """A nested AND/OR sub-expression."""

    kind: NodeKind
    terms: tuple[Term, ...] = ()
    hard: bool = False


Term = Ref | Expr


@dataclass(frozen=True)
class NodeDef:
    """A declarative predicate table entry.

    Attributes:
        kind: AND, OR or ROOT.
        terms: Ordered terms.
        is_slot: True if the node is also a placement location.
        hard: Node-level hard flag; the node is unreachable without hard logic.
    """

    kind: NodeKind
    terms: tuple[Term, ...] = ()
    is_slot: bool = False
    hard: bool = False


@dataclass(frozen=True, order=True)
class PlacedItem:
    """An item from the pool, tagged with the instance that owns it."""

    instance: int
    name: str


@dataclass
class SideChannels:
    """Randomized choices that affect logic without being items.

    Attributes:
        companion: Chosen companion, or None to keep every companion root.
        seasons: Area -> season. Areas absent from the mapping keep every
            season reachable.
        entrances: Outer entrance node -> inner dungeon node it leads to.
        portals: Outer portal node -> inner portal node it leads to.
        ring_map: Logical ring name -> cosmetic appearance.
    """

    companion: str | None = None
    seasons: dict[str, str] = field(default_factory=dict)
    entrances: dict[str, str] = field(default_factory=dict)
    portals: dict[str, str] = field(default_factory=dict)
    ring_map: BiMap[str, str] = field(default_factory=BiMap)


def _coerce(term: str | Term | NodeDef) -> Term:
    if isinstance(term, str):
        return Ref(term)
    if isinstance(term, (Ref, Expr)):
        return term
    if isinstance(term, NodeDef):
        if term.kind is NodeKind.ROOT or term.is_slot:
            raise ValueError("Root and slot definitions cannot be nested")
        return Expr(term.kind, term.terms, term.hard)
    raise TypeError(f"Invalid term: {term!r}")


def _terms(terms: Iterable[str | Term | NodeDef]) -> tuple[Term, ...]:
    return tuple(_coerce(t) for t in terms)


# Constructors follow the capitalized vocabulary of the predicate tables.


def And(*terms: str | Term | NodeDef) -> NodeDef:  # noqa: N802
    return NodeDef(NodeKind.AND, _terms(terms))


def Or(*terms: str | Term | NodeDef) -> NodeDef:  # noqa: N802
    return NodeDef(NodeKind.OR, _terms(terms))


def AndSlot(*terms: str | Term | NodeDef) -> NodeDef:  # noqa: N802
    return NodeDef(NodeKind.AND, _terms(terms), is_slot=True)


def OrSlot(*terms: str | Term | NodeDef) -> NodeDef:  # noqa: N802
    return NodeDef(NodeKind.OR, _terms(terms), is_slot=True)


def Root(*terms: str | Term | NodeDef) -> NodeDef:  # noqa: N802
    return NodeDef(NodeKind.ROOT, _terms(terms))


def HardAnd(*terms: str | Term | NodeDef) -> NodeDef:  # noqa: N802
    """AND that only exists under hard logic. `HardAnd()` is a hard-only truth."""
    return NodeDef(NodeKind.AND, _terms(terms), hard=True)


def HardOr(*terms: str | Term | NodeDef) -> NodeDef:  # noqa: N802
    return NodeDef(NodeKind.OR, _terms(terms), hard=True)


Hard = HardAnd


def iter_refs(terms: Iterable[Term]) -> Iterator[str]:
    """Yield every node name referenced by terms, depth first."""
    for term in terms:
        if isinstance(term, Ref):
            yield term.name
        else:
            yield from iter_refs(term.terms)


def filter_hard(term: Term, hard: bool) -> Term | None:
    """Remove hard-only parts of a term when hard logic is disabled.

    Returns None if the term itself is hard-only.
    """
    if term.hard and not hard:
        return None
    if isinstance(term, Ref):
        return term
    kept = (filter_hard(t, hard) for t in term.terms)
    return Expr(term.kind, tuple(t for t in kept if t is not None), term.hard)


def hard_under_and(kind: NodeKind, terms: Iterable[Term]) -> list[Term]:
    """Hard-only terms sitting directly under an AND, at any depth.

    Removing such a term would make its AND easier to satisfy with hard
    logic off than on.
    """
    found: list[Term] = []
    for term in terms:
        if kind is NodeKind.AND and term.hard:
            found.append(term)
        if isinstance(term, Expr):
            found.extend(hard_under_and(term.kind, term.terms))
    return found


def is_satisfied(
    kind: NodeKind, terms: Iterable[Term], is_reached: Callable[[str], bool]
) -> bool:
    """Evaluate a node's formula given a reachability predicate."""
    if kind is NodeKind.ROOT:
        return True
    if kind is NodeKind.AND:
        return all(_term_satisfied(t, is_reached) for t in terms)
    return any(_term_satisfied(t, is_reached) for t in terms)


def _term_satisfied(term: Term, is_reached: Callable[[str], bool]) -> bool:
    if isinstance(term, Ref):
        return is_reached(term.name)
    return is_satisfied(term.kind, term.terms, is_reached)
