"""World-space transforms propagated down the parent/child hierarchy."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from .app import App, Plugin
from .components import Children, Parent, Transform2D, Vec2
from .query import Query, Without
from .scheduler import AccessDescriptor, AccessMode, Phase
from .world import World

__all__ = ["GlobalTransform2D", "propagate_transforms", "HierarchyPlugin"]


@dataclass
class GlobalTransform2D:
    """An entity's transform in world space."""

    position: Vec2 = field(default_factory=Vec2)
    rotation: float = 0.0
    scale: Vec2 = field(default_factory=lambda: Vec2(1.0, 1.0))

    @classmethod
    def from_transform(cls, transform: Transform2D) -> "GlobalTransform2D":
        return cls(
            Vec2(transform.position.x, transform.position.y),
            transform.rotation,
            Vec2(transform.scale.x, transform.scale.y),
        )

    @classmethod
    def compose(cls, parent: "GlobalTransform2D", local: Transform2D) -> "GlobalTransform2D":
        """Place ``local`` (relative to ``parent``) in world space."""
        cos_r, sin_r = math.cos(parent.rotation), math.sin(parent.rotation)
        lx = local.position.x * parent.scale.x
        ly = local.position.y * parent.scale.y
        return cls(
            Vec2(parent.position.x + lx * cos_r - ly * sin_r, parent.position.y + lx * sin_r + ly * cos_r),
            parent.rotation + local.rotation,
            Vec2(parent.scale.x * local.scale.x, parent.scale.y * local.scale.y),
        )


def _copy(gt: GlobalTransform2D) -> GlobalTransform2D:
    return GlobalTransform2D(Vec2(gt.position.x, gt.position.y), gt.rotation, Vec2(gt.scale.x, gt.scale.y))


def propagate_transforms(world: World) -> None:
    """Set every root's global transform to its local one, then compose down the tree."""
    children_id = world.lookup_component("Children")
    transform_id = world.lookup_component("Transform2D")
    global_id = world.lookup_component("GlobalTransform2D")
    if not children_id or not global_id:
        return

    roots = Query(world, Transform2D, GlobalTransform2D, Without(Parent))
    stack: list[tuple[int, GlobalTransform2D]] = []

    def push_children(entity: int, gt: GlobalTransform2D) -> None:
        children: Children | None = world.get_component(entity, children_id)
        if children is None:
            return
        for child in children.ids:
            if world.is_alive(child):
                stack.append((child, _copy(gt)))

    for entity, transform, global_t in roots.iter_with_entity():
        fresh = GlobalTransform2D.from_transform(transform)
        global_t.position, global_t.rotation, global_t.scale = fresh.position, fresh.rotation, fresh.scale
        push_children(entity, global_t)

    while stack:
        entity, parent_gt = stack.pop()
        if not world.is_alive(entity):
            continue
        local = world.get_component(entity, transform_id)
        if local is None:
            continue
        gt = GlobalTransform2D.compose(parent_gt, local)
        world.set_component(entity, global_id, gt)
        push_children(entity, gt)


class HierarchyPlugin(Plugin):
    """Registers GlobalTransform2D and propagates transforms after update."""

    def build(self, app: App) -> None:
        app.world.register_component(GlobalTransform2D, "GlobalTransform2D")
        app.add_system(
            "propagate_transforms",
            Phase.POST_UPDATE,
            lambda: propagate_transforms(app.world),
            deps=[AccessDescriptor(World, AccessMode.WRITE)],
        )