"""Core value types and built-in components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntFlag
from typing import Any

__all__ = [
    "INVALID_ENTITY_ID",
    "Vec2",
    "Color",
    "ColorF",
    "Rect",
    "Flip",
    "Transform2D",
    "Sprite",
    "Camera",
    "Name",
    "Parent",
    "Children",
    "Script",
]

INVALID_ENTITY_ID = 0


@dataclass
class Vec2:
    """Two-dimensional vector."""

    x: float = 0.0
    y: float = 0.0

    @classmethod
    def zero(cls) -> "Vec2":
        return cls(0.0, 0.0)

    def __add__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar: float) -> "Vec2":
        return Vec2(self.x * scalar, self.y * scalar)

    __rmul__ = __mul__

    def __neg__(self) -> "Vec2":
        return Vec2(-self.x, -self.y)


@dataclass
class Color:
    """8-bit RGBA color."""

    r: int = 255
    g: int = 255
    b: int = 255
    a: int = 255


@dataclass
class ColorF:
    """Floating-point RGBA color with channels in 0..1."""

    r: float = 1.0
    g: float = 1.0
    b: float = 1.0
    a: float = 1.0


@dataclass
class Rect:
    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0


class Flip(IntFlag):
    NONE = 0
    HORIZONTAL = 1
    VERTICAL = 2
    BOTH = 3


@dataclass
class Transform2D:
    position: Vec2 = field(default_factory=Vec2)
    rotation: float = 0.0
    scale: Vec2 = field(default_factory=lambda: Vec2(1.0, 1.0))


@dataclass
class Sprite:
    texture: Any = None
    src_rect: Rect = field(default_factory=Rect)
    origin: Vec2 = field(default_factory=Vec2)
    tint: Color = field(default_factory=Color)
    flip: Flip = Flip.NONE
    z_order: float = 0.0
    visible: bool = True


@dataclass
class Camera:
    zoom: float = 1.0
    rotation: float = 0.0
    active: bool = True


@dataclass
class Name:
    value: str = ""


@dataclass
class Parent:
    entity: int = INVALID_ENTITY_ID


@dataclass
class Children:
    ids: list[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.ids)


class Script:
    """Per-entity behaviour with convenience access to its transform and sprite."""

    def __init__(self, world: Any = None, entity: int = INVALID_ENTITY_ID, app: Any = None) -> None:
        self.world = world
        self.entity = entity
        self.app = app

    def _component(self, component_type: type) -> Any:
        if self.world is None or self.entity == INVALID_ENTITY_ID:
            return None
        return self.world.get_component(self.entity, component_type)

    def position(self) -> Vec2:
        transform = self.transform()
        if transform is None:
            return Vec2()
        return Vec2(transform.position.x, transform.position.y)

    def set_position(self, pos: Vec2) -> None:
        transform = self.transform()
        if transform is not None:
            transform.position = Vec2(pos.x, pos.y)

    def transform(self) -> Transform2D | None:
        return self._component(Transform2D)

    def sprite(self) -> Sprite | None:
        return self._component(Sprite)

    def commands(self) -> Any:
        if self.app is None:
            raise RuntimeError("script is not attached to an app")
        return self.app.commands()