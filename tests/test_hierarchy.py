import math

import pytest

from driftecs.app import App, Config
from driftecs.components import Children, Parent, Transform2D, Vec2
from driftecs.hierarchy import GlobalTransform2D, HierarchyPlugin, propagate_transforms
from driftecs.world import World


def build_tree(world):
    root = world.create_entity()
    child = world.create_entity()
    grandchild = world.create_entity()
    world.set_component(root, Transform2D, Transform2D(position=Vec2(10.0, 0.0), rotation=0.5))
    world.set_component(root, GlobalTransform2D, GlobalTransform2D())
    world.set_component(root, Children, Children([child]))
    world.set_component(child, Transform2D, Transform2D(position=Vec2(1.0, 2.0), scale=Vec2(2.0, 2.0)))
    world.set_component(child, Parent, Parent(root))
    world.set_component(child, Children, Children([grandchild]))
    world.set_component(grandchild, Transform2D, Transform2D(position=Vec2(3.0, 0.0)))
    world.set_component(grandchild, Parent, Parent(child))
    return root, child, grandchild


def test_from_transform_copies_fields():
    t = Transform2D(position=Vec2(3.0, 4.0), rotation=1.5, scale=Vec2(2.0, 0.5))
    gt = GlobalTransform2D.from_transform(t)
    assert gt.position == t.position
    assert gt.rotation == t.rotation
    assert gt.scale == t.scale
    gt.position.x = 99.0
    assert t.position.x == 3.0


def test_compose_with_identity_parent_is_local():
    local = Transform2D(position=Vec2(3.0, -2.0), rotation=0.7, scale=Vec2(1.5, 2.5))
    gt = GlobalTransform2D.compose(GlobalTransform2D(), local)
    assert gt == GlobalTransform2D.from_transform(local)


def test_compose_rotates_child_offset():
    parent = GlobalTransform2D(rotation=math.pi / 2)
    gt = GlobalTransform2D.compose(parent, Transform2D(position=Vec2(1.0, 0.0)))
    assert gt.position.x == pytest.approx(0.0, abs=1e-9)
    assert gt.position.y == pytest.approx(1.0)
    assert gt.rotation == pytest.approx(math.pi / 2)


def test_propagate_through_tree():
    world = World()
    world.register_component(GlobalTransform2D, "GlobalTransform2D")
    root, child, grandchild = build_tree(world)
    propagate_transforms(world)

    root_t = world.get_component(root, Transform2D)
    root_gt = world.get_component(root, GlobalTransform2D)
    assert root_gt == GlobalTransform2D.from_transform(root_t)

    child_gt = world.get_component(child, GlobalTransform2D)
    assert child_gt == GlobalTransform2D.compose(root_gt, world.get_component(child, Transform2D))

    grand_gt = world.get_component(grandchild, GlobalTransform2D)
    assert grand_gt == GlobalTransform2D.compose(child_gt, world.get_component(grandchild, Transform2D))


def test_dead_children_are_skipped():
    world = World()
    world.register_component(GlobalTransform2D, "GlobalTransform2D")
    root, child, grandchild = build_tree(world)
    world.destroy_entity(child)
    propagate_transforms(world)
    assert world.get_component(grandchild, GlobalTransform2D) is None


def test_does_nothing_without_global_transform_registered():
    world = World()
    root = world.create_entity()
    world.set_component(root, Transform2D, Transform2D(position=Vec2(5.0, 5.0)))
    propagate_transforms(world)
    assert world.lookup_component("GlobalTransform2D") == 0


def test_plugin_propagates_each_frame():
    app = App(Config(thread_count=1))
    app.add_plugin(HierarchyPlugin())
    app.startup()
    root, child, _ = build_tree(app.world)
    app.run_frame(0.01)
    root_gt = app.world.get_component(root, GlobalTransform2D)
    child_gt = app.world.get_component(child, GlobalTransform2D)
    assert child_gt == GlobalTransform2D.compose(root_gt, app.world.get_component(child, Transform2D))