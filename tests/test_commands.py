from dataclasses import dataclass

import pytest

from driftecs.commands import Commands, EntityCommands
from driftecs.components import Children, Transform2D, Vec2
from driftecs.world import World


@dataclass
class Health:
    value: int = 10


@dataclass
class Unregistered:
    value: int = 0


@pytest.fixture
def world():
    w = World()
    w.register_component(Health)
    return w


@pytest.fixture
def commands(world):
    return Commands(world)


def test_spawn_allocates_and_defers_components(world, commands):
    spawned = commands.spawn().insert(Health, Health(5))
    assert world.is_alive(spawned.id)
    assert world.get_component(spawned.id, Health) is None
    commands.flush(world)
    assert world.get_component(spawned.id, Health) == Health(5)
    assert len(commands) == 0


def test_insert_copies_value(world, commands):
    entity = world.create_entity()
    transform = Transform2D(position=Vec2(1.0, 2.0))
    commands.insert(entity, Transform2D, transform)
    transform.position.x = 9.0
    commands.flush(world)
    assert world.get_component(entity, Transform2D).position == Vec2(1.0, 2.0)


def test_insert_by_component_id(world, commands):
    entity = world.create_entity()
    commands.insert(entity, world.component_id(Health), Health(3))
    commands.flush(world)
    assert world.get_component(entity, Health).value == 3


def test_insert_on_dead_entity_is_ignored(world, commands):
    entity = world.create_entity()
    world.destroy_entity(entity)
    commands.insert(entity, Health, Health())
    commands.flush(world)
    assert not world.has_component(entity, Health)


def test_insert_unregistered_component_is_skipped(world, commands):
    entity = world.create_entity()
    commands.insert(entity, Unregistered, Unregistered(1))
    commands.flush(world)
    assert world.component_id(Unregistered) == 0
    assert world.get_component(entity, Unregistered) is None


def test_remove(world, commands):
    entity = world.create_entity()
    world.set_component(entity, Health, Health())
    commands.entity(entity).remove(Health)
    assert world.has_component(entity, Health)
    commands.flush(world)
    assert not world.has_component(entity, Health)


def test_despawn_removes_children(world, commands):
    parent = world.create_entity()
    child_a = world.create_entity()
    child_b = world.create_entity()
    world.set_component(parent, Children, Children([child_a, child_b]))
    commands.despawn(parent)
    commands.flush(world)
    assert not any(world.is_alive(e) for e in (parent, child_a, child_b))


def test_despawn_via_entity_commands(world, commands):
    entity = world.create_entity()
    handle = commands.entity(entity)
    assert handle.despawn() is handle
    assert world.is_alive(entity)
    commands.flush(world)
    assert not world.is_alive(entity)


def test_commands_apply_in_order(world, commands):
    entity = world.create_entity()
    commands.insert(entity, Health, Health(1))
    commands.insert(entity, Health, Health(2))
    commands.remove(entity, Health)
    commands.insert(entity, Health, Health(4))
    commands.flush(world)
    assert world.get_component(entity, Health).value == 4


def test_push_custom_receives_world(world, commands):
    seen = []
    commands.push(seen.append)
    assert seen == []
    commands.flush(world)
    assert seen == [world]


def test_flush_empties_queue(world, commands):
    seen = []
    commands.push(seen.append)
    commands.flush(world)
    commands.flush(world)
    assert len(seen) == 1


def test_entity_returns_entity_commands(commands):
    handle = commands.entity(42)
    assert isinstance(handle, EntityCommands) and handle.id == 42
    assert len(commands) == 0


def test_queue_length_counts_commands(world, commands):
    commands.spawn().insert(Health, Health()).remove(Health)
    assert len(commands) == 3