from dataclasses import dataclass

import pytest

from driftecs.components import Transform2D, Vec2
from driftecs.query import Added, Changed, Maybe, Query, With, Without
from driftecs.world import World


@dataclass
class Health:
    value: int = 10


@dataclass
class Enemy:
    pass


@dataclass
class Mana:
    value: int = 0


@pytest.fixture
def world():
    w = World()
    w.register_component(Health)
    w.register_component(Enemy)
    return w


def spawn(world, *components):
    entity = world.create_entity()
    for component in components:
        world.set_component(entity, type(component), component)
    return entity


def test_iter_yields_matching_components(world):
    a = spawn(world, Transform2D(), Health(3))
    spawn(world, Transform2D())
    results = list(Query(world, Transform2D, Health).iter())
    assert len(results) == 1
    transform, health = results[0]
    assert health is world.get_component(a, Health)
    assert transform is world.get_component(a, Transform2D)


def test_single_data_component_is_not_wrapped(world):
    spawn(world, Health(7))
    assert [h.value for h in Query(world, Health).iter()] == [7]


def test_without_excludes(world):
    spawn(world, Health(1), Enemy())
    b = spawn(world, Health(2))
    assert [e for e, _ in Query(world, Health, Without(Enemy)).iter_with_entity()] == [b]


def test_with_requires_but_supplies_no_data(world):
    a = spawn(world, Health(1), Enemy())
    spawn(world, Health(2))
    rows = list(Query(world, Health, With(Enemy)).iter_with_entity())
    assert rows == [(a, world.get_component(a, Health))]


def test_maybe_yields_none_when_absent(world):
    a = spawn(world, Health(1), Transform2D())
    b = spawn(world, Health(2))
    rows = dict((e, t) for e, _, t in Query(world, Health, Maybe(Transform2D)).iter_with_entity())
    assert rows[a] is world.get_component(a, Transform2D)
    assert rows[b] is None


def test_changed_filter_uses_current_tick(world):
    world.set_current_tick(5)
    a = spawn(world, Health(1))
    q = Query(world, Health, Changed(Health))
    assert [e for e, _ in q.iter_with_entity()] == [a]
    world.set_current_tick(6)
    assert list(q.iter()) == []
    world.set_component(a, Health, Health(4))
    assert [h.value for h in q.iter()] == [4]


def test_added_filter_ignores_later_sets(world):
    world.set_current_tick(1)
    a = spawn(world, Health(1))
    world.set_current_tick(2)
    world.set_component(a, Health, Health(2))
    assert list(Query(world, Health, Added(Health)).iter()) == []
    assert len(list(Query(world, Health, Changed(Health)).iter())) == 1


def test_mutation_in_place_persists(world):
    a = spawn(world, Transform2D())
    for transform in Query(world, Transform2D).iter():
        transform.position = Vec2(3.0, 4.0)
    assert world.get_component(a, Transform2D).position == Vec2(3.0, 4.0)


def test_contains(world):
    a = spawn(world, Health(1))
    q = Query(world, Health, Without(Enemy))
    assert q.contains(a)
    world.set_component(a, Enemy, Enemy())
    assert not q.contains(a)
    world.destroy_entity(a)
    assert not Query(world, Health).contains(a)


def test_contains_unregistered_component(world):
    a = spawn(world, Health(1))
    assert not Query(world, Mana).contains(a)
    assert Query(world, Health, Without(Mana)).contains(a)
    assert world.component_id(Mana) == 0


def test_iteration_registers_unknown_components(world):
    assert Query(world, Mana).is_empty()
    assert world.component_id(Mana) > 0
    assert world.lookup_component("Mana") == world.component_id(Mana)


def test_is_empty(world):
    q = Query(world, Health)
    assert q.is_empty()
    spawn(world, Health())
    assert not q.is_empty()


def test_single(world):
    a = spawn(world, Health(9), Transform2D())
    assert Query(world, Health).single() is world.get_component(a, Health)
    health, transform = Query(world, Health, Transform2D).single()
    assert health.value == 9
    assert transform is world.get_component(a, Transform2D)


def test_single_errors(world):
    with pytest.raises(ValueError):
        Query(world, Health).single()
    spawn(world, Health())
    spawn(world, Health())
    with pytest.raises(ValueError):
        Query(world, Health).single()
    with pytest.raises(TypeError):
        Query(world, With(Health)).single()


def test_filter_equality():
    assert With(Health) == With(Health)
    assert With(Health) != Without(Health)