"""Fading line trails that follow moving entities."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from itertools import pairwise
from typing import Any

from .app import App, Plugin, Time
from .components import Color, ColorF, Transform2D, Vec2
from .particle_system import RENDERER_KEY
from .query import Query
from .scheduler import AccessDescriptor, AccessMode, Phase
from .world import World

__all__ = [
    "TrailRenderer",
    "TrailPoint",
    "TrailState",
    "TrailSystemResource",
    "trail_update",
    "trail_render",
    "TrailPlugin",
]

_MIN_WIDTH = 0.5


@dataclass
class TrailRenderer:
    """Component: draw a trail behind the entity's position."""

    max_points: int = 32
    lifetime: float = 0.5
    min_distance: float = 2.0
    width: float = 4.0
    color_start: ColorF = field(default_factory=lambda: ColorF(1.0, 1.0, 1.0, 1.0))
    color_end: ColorF = field(default_factory=lambda: ColorF(1.0, 1.0, 1.0, 0.0))


@dataclass
class TrailPoint:
    position: Vec2
    age: float = 0.0


class TrailState:
    """Bounded history of trail points, oldest first."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("trail capacity must be positive")
        self.capacity = capacity
        self.points: deque[TrailPoint] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self.points)

    def add_point(self, pos: Vec2) -> None:
        """Append a fresh point, discarding the oldest when full."""
        self.points.append(TrailPoint(Vec2(pos.x, pos.y)))

    def ordered(self, i: int) -> TrailPoint:
        """The i-th point by age, 0 being the oldest."""
        return self.points[i]

    def drop_oldest(self) -> None:
        self.points.popleft()


@dataclass
class TrailSystemResource:
    trails: dict[int, TrailState] = field(default_factory=dict)


def trail_update(resource: TrailSystemResource, dt: float, world: World) -> None:
    """Age trail points, expire old ones and record new positions."""
    seen: set[int] = set()
    for entity, trail, transform in Query(world, TrailRenderer, Transform2D).iter_with_entity():
        seen.add(entity)
        state = resource.trails.get(entity)
        if state is None:
            state = TrailState(trail.max_points)
            resource.trails[entity] = state

        for point in state.points:
            point.age += dt
        while state.points and state.ordered(0).age >= trail.lifetime:
            state.drop_oldest()

        pos = transform.position
        if state.points:
            newest = state.ordered(-1).position
            dx, dy = pos.x - newest.x, pos.y - newest.y
            if dx * dx + dy * dy < trail.min_distance * trail.min_distance:
                continue
        state.add_point(pos)

    for entity in [e for e in resource.trails if e not in seen]:
        del resource.trails[entity]


def _to_byte(value: float) -> int:
    return min(max(int(value * 255.0), 0), 255)


def trail_render(resource: TrailSystemResource, renderer: Any, world: World) -> None:
    """Draw each trail segment with ``renderer.draw_line(a, b, color, width)``."""
    for entity, trail in Query(world, TrailRenderer).iter_with_entity():
        state = resource.trails.get(entity)
        if state is None or len(state) < 2:
            continue
        cs, ce = trail.color_start, trail.color_end
        for a, b in pairwise(state.points):
            t = (a.age / trail.lifetime + b.age / trail.lifetime) * 0.5
            color = Color(
                _to_byte(cs.r + (ce.r - cs.r) * t),
                _to_byte(cs.g + (ce.g - cs.g) * t),
                _to_byte(cs.b + (ce.b - cs.b) * t),
                _to_byte(cs.a + (ce.a - cs.a) * t),
            )
            width = max(_MIN_WIDTH, trail.width * (1.0 - t))
            renderer.draw_line(a.position, b.position, color, width)


class TrailPlugin(Plugin):
    """Registers TrailRenderer and updates and draws trails each frame."""

    def __init__(self, renderer: Any = None) -> None:
        self._renderer = renderer

    def build(self, app: App) -> None:
        renderer = self._renderer if self._renderer is not None else app.get_resource(RENDERER_KEY)
        if not app.world.component_id(TrailRenderer):
            app.world.register_component(TrailRenderer, "TrailRenderer")
        resource = app.get_resource(TrailSystemResource)
        if resource is None:
            resource = app.add_resource(TrailSystemResource())

        def update() -> None:
            time_res = app.get_resource(Time)
            trail_update(resource, time_res.delta if time_res else 0.0, app.world)

        def render() -> None:
            if renderer is not None:
                trail_render(resource, renderer, app.world)

        app.add_system(
            "trail_update",
            Phase.POST_UPDATE,
            update,
            deps=[
                AccessDescriptor(TrailSystemResource, AccessMode.WRITE),
                AccessDescriptor(Time, AccessMode.READ),
                AccessDescriptor(TrailRenderer, AccessMode.READ),
                AccessDescriptor(Transform2D, AccessMode.READ),
            ],
        )
        app.add_system(
            "trail_render",
            Phase.RENDER,
            render,
            deps=[
                AccessDescriptor(TrailSystemResource, AccessMode.READ),
                AccessDescriptor(RENDERER_KEY, AccessMode.WRITE),
                AccessDescriptor(TrailRenderer, AccessMode.READ),
            ],
        )