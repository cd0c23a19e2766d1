"""Simple pooled particle emitters addressed by handles."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any

from .components import Color, ColorF, Flip, Rect, Vec2
from .handle_pool import Handle, HandlePool

__all__ = ["Lcg", "EmitterDef", "ParticleResource"]

_MASK32 = 0xFFFFFFFF
_MASK24 = 0x00FFFFFF
_DEFAULT_POOL_SIZE = 256
_PARTICLE_Z = 10.0


class Lcg:
    """32-bit linear congruential generator."""

    def __init__(self, state: int = 12345) -> None:
        self.state = state & _MASK32

    def next(self) -> int:
        self.state = (self.state * 1664525 + 1013904223) & _MASK32
        return self.state

    def random(self) -> float:
        """A float in [0, 1] from the low 24 bits of the next value."""
        return (self.next() & _MASK24) / _MASK24

    def uniform(self, lo: float, hi: float) -> float:
        return lo + self.random() * (hi - lo)


@dataclass
class EmitterDef:
    """How an emitter spawns and draws its particles."""

    max_particles: int = _DEFAULT_POOL_SIZE
    spawn_rate: float = 0.0
    angle_min: float = 0.0
    angle_max: float = 2.0 * math.pi
    speed_min: float = 0.0
    speed_max: float = 0.0
    lifetime_min: float = 1.0
    lifetime_max: float = 1.0
    size_start: float = 1.0
    size_end: float = 1.0
    color_start: ColorF = field(default_factory=ColorF)
    color_end: ColorF = field(default_factory=ColorF)
    gravity: float = 0.0
    texture_id: int = 0
    src_rect: Rect = field(default_factory=Rect)


@dataclass
class _Particle:
    position: Vec2 = field(default_factory=Vec2)
    velocity: Vec2 = field(default_factory=Vec2)
    color_start: ColorF = field(default_factory=ColorF)
    color_end: ColorF = field(default_factory=ColorF)
    size_start: float = 0.0
    size_end: float = 0.0
    lifetime: float = 0.0
    age: float = 0.0
    active: bool = False


@dataclass
class _Emitter:
    config: EmitterDef
    pool: list[_Particle]
    position: Vec2 = field(default_factory=Vec2)
    active: bool = False
    spawn_accumulator: float = 0.0
    active_count: int = 0


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _to_byte(value: float) -> int:
    return min(max(int(value * 255.0), 0), 255)


class ParticleResource:
    """Owns emitters and their particle pools and draws them through a renderer.

    The renderer needs a ``draw_sprite(texture, position, src_rect, scale,
    rotation, origin, tint, flip, z_order)`` method.
    """

    def __init__(self, renderer: Any = None) -> None:
        self._renderer = renderer
        self._emitters: HandlePool[_Emitter] = HandlePool()
        self._rng = Lcg()

    def _spawn(self, em: _Emitter) -> None:
        particle = next((p for p in em.pool if not p.active), None)
        if particle is None:
            return
        cfg = em.config
        angle = self._rng.uniform(cfg.angle_min, cfg.angle_max)
        speed = self._rng.uniform(cfg.speed_min, cfg.speed_max)
        particle.position = Vec2(em.position.x, em.position.y)
        particle.velocity = Vec2(speed * math.cos(angle), speed * math.sin(angle))
        particle.color_start = replace(cfg.color_start)
        particle.color_end = replace(cfg.color_end)
        particle.size_start = cfg.size_start
        particle.size_end = cfg.size_end
        particle.lifetime = self._rng.uniform(cfg.lifetime_min, cfg.lifetime_max)
        particle.age = 0.0
        particle.active = True
        em.active_count += 1

    def create_emitter(self, definition: EmitterDef) -> Handle:
        size = definition.max_particles if definition.max_particles > 0 else _DEFAULT_POOL_SIZE
        return self._emitters.create(
            _Emitter(config=replace(definition), pool=[_Particle() for _ in range(size)])
        )

    def destroy_emitter(self, emitter: Handle) -> None:
        self._emitters.destroy(emitter)

    def set_emitter_position(self, emitter: Handle, pos: Vec2) -> None:
        em = self._emitters.get(emitter)
        if em is not None:
            em.position = Vec2(pos.x, pos.y)

    def burst(self, emitter: Handle, count: int) -> None:
        em = self._emitters.get(emitter)
        if em is None:
            return
        for _ in range(count):
            self._spawn(em)

    def start_emitter(self, emitter: Handle) -> None:
        em = self._emitters.get(emitter)
        if em is not None:
            em.active = True
            em.spawn_accumulator = 0.0

    def stop_emitter(self, emitter: Handle) -> None:
        em = self._emitters.get(emitter)
        if em is not None:
            em.active = False

    def is_emitter_active(self, emitter: Handle) -> bool:
        """True while the emitter is running or still has live particles."""
        em = self._emitters.get(emitter)
        return em is not None and (em.active or em.active_count > 0)

    def update(self, dt: float) -> None:
        for _, em in self._emitters.items():
            if em.active and em.config.spawn_rate > 0:
                em.spawn_accumulator += dt * em.config.spawn_rate
                while em.spawn_accumulator >= 1.0:
                    self._spawn(em)
                    em.spawn_accumulator -= 1.0

            gravity = em.config.gravity
            for p in em.pool:
                if not p.active:
                    continue
                p.age += dt
                if p.age >= p.lifetime:
                    p.active = False
                    em.active_count -= 1
                    continue
                p.velocity.y += gravity * dt
                p.position.x += p.velocity.x * dt
                p.position.y += p.velocity.y * dt

    def render(self) -> None:
        if self._renderer is None:
            return
        for _, em in self._emitters.items():
            texture = Handle.make(em.config.texture_id, 1)
            src = em.config.src_rect
            for p in em.pool:
                if not p.active:
                    continue
                t = p.age / p.lifetime if p.lifetime > 0 else 1.0
                size = _lerp(p.size_start, p.size_end, t)
                tint = Color(
                    _to_byte(_lerp(p.color_start.r, p.color_end.r, t)),
                    _to_byte(_lerp(p.color_start.g, p.color_end.g, t)),
                    _to_byte(_lerp(p.color_start.b, p.color_end.b, t)),
                    _to_byte(_lerp(p.color_start.a, p.color_end.a, t)),
                )
                self._renderer.draw_sprite(
                    texture,
                    Vec2(p.position.x, p.position.y),
                    src,
                    Vec2(size, size),
                    0.0,
                    Vec2(size * 0.5, size * 0.5),
                    tint,
                    Flip.NONE,
                    _PARTICLE_Z,
                )

    def particle_count(self) -> int:
        return sum(em.active_count for _, em in self._emitters.items())