"""Typed component queries with With/Without/Changed/Added filters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

from .world import World

__all__ = ["With", "Without", "Changed", "Added", "Maybe", "Query"]


@dataclass(frozen=True)
class _Term:
    component: Any


@dataclass(frozen=True)
class _Filter(_Term):
    """A term that constrains matching but supplies no data."""


@dataclass(frozen=True)
class With(_Filter):
    """Require the component without fetching it."""


@dataclass(frozen=True)
class Without(_Filter):
    """Exclude entities that hold the component."""


@dataclass(frozen=True)
class Changed(_Filter):
    """Require the component to have been set during the current tick."""


@dataclass(frozen=True)
class Added(_Filter):
    """Require the component to have been added during the current tick."""


@dataclass(frozen=True)
class Maybe(_Term):
    """Fetch the component if present, otherwise yield None; never excludes."""


def _component_of(term: Any) -> Any:
    return term.component if isinstance(term, _Term) else term


class Query:
    """A view over the entities of a world that match a list of terms.

    Plain component types (or ids) and :class:`Maybe` terms supply data;
    the filter terms only decide which entities match.
    """

    def __init__(self, world: World, *terms: Any) -> None:
        self._world = world
        self._terms = terms
        self._data_terms = [term for term in terms if not isinstance(term, _Filter)]

    @property
    def data_count(self) -> int:
        return len(self._data_terms)

    # ---- matching ----

    def _ensure_registered(self) -> None:
        for term in self._terms:
            component = _component_of(term)
            if isinstance(component, type) and not self._world.component_id(component):
                self._world.register_component(component)

    def _required(self) -> list[Any]:
        return [
            _component_of(term)
            for term in self._terms
            if not isinstance(term, (Without, Maybe))
        ]

    def _excluded(self) -> list[Any]:
        return [term.component for term in self._terms if isinstance(term, Without)]

    def _candidates(self) -> list[int]:
        self._ensure_registered()
        world = self._world
        excluded = self._excluded()
        return [
            entity
            for entity in world.entities_with(*self._required())
            if not any(world.has_component(entity, component) for component in excluded)
        ]

    def _passes_change_filters(self, entity: int) -> bool:
        world = self._world
        tick = world.current_tick
        for term in self._terms:
            if isinstance(term, Changed) and world.change_tick(entity, term.component) != tick:
                return False
            if isinstance(term, Added) and world.add_tick(entity, term.component) != tick:
                return False
        return True

    def _fields(self, entity: int) -> tuple[Any, ...]:
        return tuple(
            self._world.get_component(entity, _component_of(term)) for term in self._data_terms
        )

    @staticmethod
    def _pack(fields: tuple[Any, ...]) -> Any:
        return fields[0] if len(fields) == 1 else fields

    def contains(self, entity: int) -> bool:
        """True if ``entity`` is alive and satisfies every term right now."""
        world = self._world
        if not world.is_alive(entity):
            return False
        for term in self._terms:
            if isinstance(term, Maybe):
                continue
            component = _component_of(term)
            present = world.has_component(entity, component)
            if isinstance(term, Without):
                if present:
                    return False
                continue
            if not present:
                return False
        return self._passes_change_filters(entity)

    # ---- iteration ----

    def iter(self) -> Iterator[Any]:
        """Yield the data of each match: one value, or a tuple for several."""
        for entity in self._candidates():
            if self._passes_change_filters(entity):
                yield self._pack(self._fields(entity))

    def iter_with_entity(self) -> Iterator[tuple[Any, ...]]:
        """Yield ``(entity, *components)`` for each match."""
        for entity in self._candidates():
            if self._passes_change_filters(entity):
                yield (entity, *self._fields(entity))

    def is_empty(self) -> bool:
        """True if no entity matches the component terms (change filters ignored)."""
        return not self._candidates()

    def single(self) -> Any:
        """Return the data of the one matching entity.

        Raises TypeError if the query has no data terms and ValueError unless
        exactly one entity matches.
        """
        if not self._data_terms:
            raise TypeError("single() requires at least one data component")
        matches = self._candidates()
        if len(matches) != 1:
            raise ValueError(f"single() expects exactly one matching entity, found {len(matches)}")
        return self._pack(self._fields(matches[0]))