"""Bidirectional mapping with a precomputed inverse."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class BiMap(Mapping[K, V], Generic[K, V]):
    """A mapping whose values are unique, so it can be looked up both ways.

    The inverse is maintained on every write instead of being searched for
    on lookup.
    """

    def __init__(self, items: Mapping[K, V] | Iterable[tuple[K, V]] = ()) -> None:
        self._forward: dict[K, V] = {}
        self._inverse: dict[V, K] = {}
        pairs = items.items() if isinstance(items, Mapping) else items
        for key, value in pairs:
            self[key] = value

    def __setitem__(self, key: K, value: V) -> None:
        owner = self._inverse.get(value, key)
        if owner != key:
            raise ValueError(f"Value {value!r} is already mapped from {owner!r}")
        if key in self._forward:
            del self._inverse[self._forward[key]]
        self._forward[key] = value
        self._inverse[value] = key

    def __getitem__(self, key: K) -> V:
        return self._forward[key]

    def __iter__(self) -> Iterator[K]:
        return iter(self._forward)

    def __len__(self) -> int:
        return len(self._forward)

    def __repr__(self) -> str:
        return f"BiMap({self._forward!r})"

    @property
    def inverse(self) -> Mapping[V, K]:
        """Read-only view of the value -> key mapping."""
        return MappingProxyType(self._inverse)

    def to_dict(self) -> dict[K, V]:
        """Return a plain copy of the forward mapping."""
        return dict(self._forward)
