"""Entity/component storage with change-detection ticks."""

from __future__ import annotations

import threading
from typing import Any, Iterable

from .components import (
    INVALID_ENTITY_ID,
    Camera,
    Children,
    Name,
    Parent,
    Sprite,
    Transform2D,
)

__all__ = ["World"]

ComponentKey = Any  # a component type or a component id


class World:
    """Holds entities, their components, singletons and change ticks.

    Components are addressed either by their registered type or by the
    integer id returned from :meth:`register_component`.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._next_id = 1
        self._alive: dict[int, None] = {}
        self._types_by_id: dict[int, type] = {}
        self._ids_by_type: dict[type, int] = {}
        self._ids_by_name: dict[str, int] = {}
        self._storage: dict[int, dict[int, Any]] = {}
        self._singletons: dict[int, Any] = {}
        self._current_tick = 0
        self._change_ticks: dict[tuple[int, int], int] = {}
        self._add_ticks: dict[tuple[int, int], int] = {}

        for component_type in (Transform2D, Sprite, Camera, Name, Parent, Children):
            self.register_component(component_type)

    def _new_id(self) -> int:
        with self._lock:
            new_id = self._next_id
            self._next_id += 1
            return new_id

    # ---- components ----

    def register_component(self, component_type: type, name: str | None = None) -> int:
        """Register a component type under ``name``; re-registering a name reuses its id."""
        name = name or component_type.__name__
        component = self._ids_by_name.get(name)
        if component is None:
            component = self._new_id()
            self._ids_by_name[name] = component
            self._types_by_id[component] = component_type
            self._storage[component] = {}
        self._ids_by_type[component_type] = component
        return component

    def lookup_component(self, name: str) -> int:
        return self._ids_by_name.get(name, 0)

    def component_id(self, component_type: type) -> int:
        return self._ids_by_type.get(component_type, 0)

    def _resolve(self, component: ComponentKey) -> int:
        if isinstance(component, type):
            return self._ids_by_type.get(component, 0)
        if isinstance(component, int) and not isinstance(component, bool):
            return component if component in self._storage else 0
        raise TypeError(f"not a component key: {component!r}")

    def _require(self, component: ComponentKey) -> int:
        component_id = self._resolve(component)
        if not component_id:
            raise KeyError(f"unknown component: {component!r}")
        return component_id

    def _require_alive(self, entity: int) -> None:
        if entity not in self._alive:
            raise KeyError(f"entity {entity} is not alive")

    # ---- entities ----

    def create_entity(self) -> int:
        entity = self._new_id()
        with self._lock:
            self._alive[entity] = None
        return entity

    def allocate(self) -> int:
        """Reserve a new empty entity; safe to call from several threads."""
        return self.create_entity()

    def destroy_entity(self, entity: int) -> None:
        for ticks in (self._change_ticks, self._add_ticks):
            for key in [key for key in ticks if key[0] == entity]:
                del ticks[key]
        for store in self._storage.values():
            store.pop(entity, None)
        with self._lock:
            self._alive.pop(entity, None)

    def is_alive(self, entity: int) -> bool:
        return entity != INVALID_ENTITY_ID and entity in self._alive

    def add_component(self, entity: int, component: ComponentKey) -> None:
        """Add a default-constructed component if the entity lacks it."""
        component_id = self._require(component)
        self._require_alive(entity)
        store = self._storage[component_id]
        if entity not in store:
            store[entity] = self._types_by_id[component_id]()

    def remove_component(self, entity: int, component: ComponentKey) -> None:
        component_id = self._resolve(component)
        if component_id:
            self._storage[component_id].pop(entity, None)

    def set_component(self, entity: int, component: ComponentKey, value: Any) -> None:
        """Store ``value`` and record the change (and, if new, the add) tick."""
        if value is None:
            return
        component_id = self._require(component)
        self._require_alive(entity)
        store = self._storage[component_id]
        had_before = entity in store
        store[entity] = value
        key = (entity, component_id)
        self._change_ticks[key] = self._current_tick
        if not had_before:
            self._add_ticks[key] = self._current_tick

    def get_component(self, entity: int, component: ComponentKey) -> Any:
        """Return the stored component object (mutable in place), or None."""
        component_id = self._resolve(component)
        if not component_id:
            return None
        return self._storage[component_id].get(entity)

    def has_component(self, entity: int, component: ComponentKey) -> bool:
        component_id = self._resolve(component)
        return bool(component_id) and entity in self._storage[component_id]

    # ---- singletons ----

    def set_singleton(self, component: ComponentKey, value: Any) -> None:
        if value is None:
            return
        self._singletons[self._require(component)] = value

    def get_singleton(self, component: ComponentKey) -> Any:
        component_id = self._resolve(component)
        return self._singletons.get(component_id) if component_id else None

    # ---- iteration ----

    def entities_with(self, *args: ComponentKey) -> list[int]:
        """Entities that hold every given component, in insertion order."""
        if not args:
            return list(self._alive)
        ids = [self._resolve(component) for component in args]
        if not all(ids):
            return []
        first, rest = self._storage[ids[0]], [self._storage[c] for c in ids[1:]]
        return [entity for entity in first if all(entity in store for store in rest)]

    def components(self, entity: int) -> Iterable[int]:
        return [cid for cid, store in self._storage.items() if entity in store]

    # ---- change detection ----

    @property
    def current_tick(self) -> int:
        return self._current_tick

    def set_current_tick(self, tick: int) -> None:
        self._current_tick = tick

    def change_tick(self, entity: int, component: ComponentKey) -> int:
        return self._change_ticks.get((entity, self._resolve(component)), 0)

    def add_tick(self, entity: int, component: ComponentKey) -> int:
        return self._add_ticks.get((entity, self._resolve(component)), 0)