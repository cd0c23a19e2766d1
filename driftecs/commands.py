"""Deferred world mutations, applied in order on flush."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Protocol

from .world import World

__all__ = ["EntityCommands", "Commands"]


class _Allocator(Protocol):
    def allocate(self) -> int: ...


class _Kind(Enum):
    SPAWN = auto()
    DESPAWN = auto()
    INSERT = auto()
    REMOVE = auto()
    CUSTOM = auto()


@dataclass
class _Command:
    kind: _Kind
    entity: int = 0
    component: Any = 0
    value: Any = None
    fn: Callable[[World], None] | None = None


def _component_id(world: World, component: Any) -> int:
    if isinstance(component, type):
        return world.component_id(component)
    return int(component)


class EntityCommands:
    """Chained commands aimed at a single entity."""

    def __init__(self, commands: "Commands", entity: int) -> None:
        self._commands = commands
        self.id = entity

    def insert(self, component: Any, value: Any) -> "EntityCommands":
        self._commands.insert(self.id, component, value)
        return self

    def remove(self, component: Any) -> "EntityCommands":
        self._commands.remove(self.id, component)
        return self

    def despawn(self) -> "EntityCommands":
        self._commands.despawn(self.id)
        return self


class Commands:
    """A queue of spawns, inserts, removals and despawns applied by :meth:`flush`."""

    def __init__(self, allocator: _Allocator) -> None:
        self._allocator = allocator
        self._queue: list[_Command] = []

    def __len__(self) -> int:
        return len(self._queue)

    def spawn(self) -> EntityCommands:
        """Reserve an entity id now; its components arrive on flush."""
        entity = self._allocator.allocate()
        self._queue.append(_Command(_Kind.SPAWN, entity))
        return EntityCommands(self, entity)

    def entity(self, entity: int) -> EntityCommands:
        return EntityCommands(self, entity)

    def insert(self, entity: int, component: Any, value: Any) -> None:
        """Queue setting a component; the value is copied as it is now."""
        self._queue.append(_Command(_Kind.INSERT, entity, component, copy.deepcopy(value)))

    def despawn(self, entity: int) -> None:
        self._queue.append(_Command(_Kind.DESPAWN, entity))

    def remove(self, entity: int, component: Any) -> None:
        self._queue.append(_Command(_Kind.REMOVE, entity, component))

    def push(self, fn: Callable[[World], None]) -> None:
        """Queue an arbitrary callable that receives the world on flush."""
        self._queue.append(_Command(_Kind.CUSTOM, fn=fn))

    def flush(self, world: World) -> None:
        """Apply every queued command in order and empty the queue."""
        queue, self._queue = self._queue, []
        for command in queue:
            if command.kind is _Kind.DESPAWN:
                self._despawn(world, command.entity)
            elif command.kind is _Kind.INSERT:
                component = _component_id(world, command.component)
                if world.is_alive(command.entity) and component:
                    world.set_component(command.entity, component, command.value)
            elif command.kind is _Kind.REMOVE:
                component = _component_id(world, command.component)
                if world.is_alive(command.entity) and component:
                    world.remove_component(command.entity, component)
            elif command.kind is _Kind.CUSTOM and command.fn is not None:
                command.fn(world)

    @staticmethod
    def _despawn(world: World, entity: int) -> None:
        if not world.is_alive(entity):
            return
        children_id = world.lookup_component("Children")
        if children_id:
            children = world.get_component(entity, children_id)
            if children is not None:
                for child in list(children.ids):
                    if world.is_alive(child):
                        world.destroy_entity(child)
        world.destroy_entity(entity)