"""Camera follow and screen-shake systems."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from .app import App, Plugin, Time
from .components import INVALID_ENTITY_ID, Camera, Transform2D, Vec2
from .query import Query
from .scheduler import AccessDescriptor, AccessMode, Phase
from .world import World

__all__ = [
    "CameraFollow",
    "CameraShake",
    "camera_follow_system",
    "camera_shake_system",
    "CameraPlugin",
]

_SHAKE_EPSILON = 0.001


@dataclass
class CameraFollow:
    """Smoothly moves the camera toward ``target`` plus ``offset``."""

    target: int = INVALID_ENTITY_ID
    offset: Vec2 = field(default_factory=Vec2)
    smoothing: float = 5.0
    dead_zone: Vec2 = field(default_factory=Vec2)


@dataclass
class CameraShake:
    """Decaying positional shake."""

    intensity: float = 0.0
    decay: float = 5.0
    frequency: float = 20.0
    elapsed: float = 0.0


def camera_follow_system(world: World, dt: float) -> None:
    targets = Query(world, Transform2D)
    for cam_transform, follow, _ in Query(world, Transform2D, CameraFollow, Camera).iter():
        if follow.target == INVALID_ENTITY_ID or not targets.contains(follow.target):
            continue
        target_pos = world.get_component(follow.target, Transform2D).position
        dx = target_pos.x + follow.offset.x - cam_transform.position.x
        dy = target_pos.y + follow.offset.y - cam_transform.position.y
        if abs(dx) < follow.dead_zone.x and abs(dy) < follow.dead_zone.y:
            continue
        t = 1.0 - math.exp(-follow.smoothing * dt)
        cam_transform.position = Vec2(
            cam_transform.position.x + dx * t, cam_transform.position.y + dy * t
        )


def camera_shake_system(world: World, dt: float) -> None:
    for transform, shake, _ in Query(world, Transform2D, CameraShake, Camera).iter():
        if shake.intensity <= _SHAKE_EPSILON:
            shake.intensity = 0.0
            continue
        shake.elapsed += dt
        phase = shake.elapsed * shake.frequency
        ox = math.sin(phase * 1.0) * math.cos(phase * 0.7)
        oy = math.cos(phase * 1.3) * math.sin(phase * 0.9)
        transform.position = Vec2(
            transform.position.x + ox * shake.intensity,
            transform.position.y + oy * shake.intensity,
        )
        shake.intensity *= math.exp(-shake.decay * dt)


class CameraPlugin(Plugin):
    def build(self, app: App) -> None:
        app.world.register_component(CameraFollow, "CameraFollow")
        app.world.register_component(CameraShake, "CameraShake")

        def delta() -> float:
            time_res = app.get_resource(Time)
            return time_res.delta if time_res else 0.0

        for name, system, component in (
            ("camera_follow", camera_follow_system, CameraFollow),
            ("camera_shake", camera_shake_system, CameraShake),
        ):
            app.add_system(
                name,
                Phase.POST_UPDATE,
                lambda system=system: system(app.world, delta()),
                deps=[
                    AccessDescriptor(Time, AccessMode.READ),
                    AccessDescriptor(Transform2D, AccessMode.WRITE),
                    AccessDescriptor(component, AccessMode.WRITE),
                    AccessDescriptor(Camera, AccessMode.READ),
                ],
            )