"""Entity-driven particle emitters: shapes, bursts, pre-warm, drag and bounds."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterator

from .app import App, Plugin, Time
from .components import Color, ColorF, Flip, Rect, Transform2D, Vec2
from .handle_pool import Handle
from .particles import Lcg, ParticleResource
from .query import Query
from .scheduler import AccessDescriptor, AccessMode, Phase
from .world import World

__all__ = [
    "RENDERER_KEY",
    "EmissionShape",
    "ParticleSpace",
    "ParticleBlendMode",
    "FloatRange",
    "Burst",
    "EmitterConfig",
    "ParticlePool",
    "ParticleEmitter",
    "EmitterState",
    "ParticleSystemResource",
    "spawn_particle",
    "particle_system_update",
    "particle_system_render",
    "ParticlePlugin",
]

RENDERER_KEY = "renderer"
"""Resource key under which plugins look for a renderer when none is given."""

_TAU = 6.2831853
_PREWARM_STEP = 1.0 / 60.0
_NO_INTERVAL = 999999.0
_SEED_MIX = 0xDEADBEEF
_MASK32 = 0xFFFFFFFF


class EmissionShape(Enum):
    POINT = "point"
    CIRCLE = "circle"
    RING = "ring"
    BOX = "box"
    LINE = "line"


class ParticleSpace(Enum):
    WORLD = "world"
    LOCAL = "local"


class ParticleBlendMode(Enum):
    ALPHA = "alpha"
    ADDITIVE = "additive"


@dataclass
class FloatRange:
    """A closed range of floats; ``FloatRange(v)`` is the single value ``v``."""

    lo: float = 0.0
    hi: float | None = None

    def __post_init__(self) -> None:
        if self.hi is None:
            self.hi = self.lo

    def sample(self, rng: Lcg) -> float:
        """Draw a value uniformly from the range using ``rng``."""
        return rng.uniform(self.lo, self.hi)


@dataclass
class Burst:
    """Spawn ``count`` particles at ``time``, repeating every ``interval``.

    ``cycles`` of zero means repeat without limit.
    """

    time: float = 0.0
    count: int = 10
    cycles: int = 1
    interval: float = 0.0


@dataclass
class EmitterConfig:
    shape: EmissionShape = EmissionShape.POINT
    shape_radius: float = 0.0
    shape_extents: Vec2 = field(default_factory=Vec2)
    speed: FloatRange = field(default_factory=lambda: FloatRange(50.0, 100.0))
    angle: FloatRange = field(default_factory=lambda: FloatRange(0.0, _TAU))
    lifetime: FloatRange = field(default_factory=lambda: FloatRange(1.0))
    initial_rotation: FloatRange = field(default_factory=FloatRange)
    angular_velocity: FloatRange = field(default_factory=FloatRange)
    size_start: FloatRange = field(default_factory=lambda: FloatRange(8.0))
    size_end: FloatRange = field(default_factory=lambda: FloatRange(0.0))
    color_start: ColorF = field(default_factory=lambda: ColorF(1.0, 1.0, 1.0, 1.0))
    color_end: ColorF = field(default_factory=lambda: ColorF(1.0, 1.0, 1.0, 0.0))
    spawn_rate: float = 10.0
    max_particles: int = 256
    bursts: list[Burst] = field(default_factory=list)
    pre_warm_time: float = 0.0
    gravity: Vec2 = field(default_factory=Vec2)
    drag: float = 0.0
    bounds_min: Vec2 = field(default_factory=Vec2)
    bounds_max: Vec2 = field(default_factory=Vec2)
    velocity_inheritance: float = 0.0
    space: ParticleSpace = ParticleSpace.WORLD
    duration: float = 0.0
    looping: bool = True
    seed: int = 0
    texture: Handle = field(default_factory=Handle)
    src_rect: Rect = field(default_factory=Rect)
    z_order: float = 0.0
    blend_mode: ParticleBlendMode = ParticleBlendMode.ALPHA

    @property
    def has_bounds(self) -> bool:
        return (
            self.bounds_min.x != self.bounds_max.x or self.bounds_min.y != self.bounds_max.y
        )


@dataclass
class _Particle:
    position: Vec2 = field(default_factory=Vec2)
    velocity: Vec2 = field(default_factory=Vec2)
    lifetime: float = 0.0
    age: float = 0.0
    rotation: float = 0.0
    angular_velocity: float = 0.0
    size: float = 0.0
    size_start: float = 0.0
    size_end: float = 0.0
    color_start: ColorF = field(default_factory=ColorF)
    color_end: ColorF = field(default_factory=ColorF)


class ParticlePool:
    """Fixed-capacity store of live particles kept densely at the front."""

    def __init__(self, capacity: int = 0) -> None:
        self._slots: list[_Particle] = []
        self.count = 0
        self.reserve(capacity)

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def reserve(self, capacity: int) -> None:
        """Grow the pool to hold at least ``capacity`` particles."""
        extra = int(capacity) - len(self._slots)
        self._slots.extend(_Particle() for _ in range(max(0, extra)))

    def spawn(self) -> int:
        """Claim a fresh slot and return its index, or -1 if the pool is full."""
        if self.count >= len(self._slots):
            return -1
        index = self.count
        self._slots[index] = _Particle()
        self.count += 1
        return index

    def kill(self, index: int) -> None:
        """Remove the live particle at ``index`` by swapping in the last one."""
        if not 0 <= index < self.count:
            raise IndexError(f"particle index {index} out of range")
        last = self.count - 1
        self._slots[index], self._slots[last] = self._slots[last], self._slots[index]
        self.count -= 1

    def __len__(self) -> int:
        return self.count

    def __getitem__(self, index: int) -> _Particle:
        if not 0 <= index < self.count:
            raise IndexError(f"particle index {index} out of range")
        return self._slots[index]

    def __iter__(self) -> Iterator[_Particle]:
        return iter(self._slots[: self.count])


@dataclass
class ParticleEmitter:
    """Component that makes an entity with a Transform2D emit particles."""

    config: EmitterConfig = field(default_factory=EmitterConfig)
    playing: bool = True


@dataclass
class EmitterState:
    """Simulation state kept per emitting entity."""

    pool: ParticlePool = field(default_factory=ParticlePool)
    rng: Lcg = field(default_factory=Lcg)
    spawn_accumulator: float = 0.0
    elapsed: float = 0.0
    burst_cycles_done: list[int] = field(default_factory=list)
    burst_timers: list[float] = field(default_factory=list)
    prev_position: Vec2 | None = None
    finished: bool = False


@dataclass
class ParticleSystemResource:
    emitters: dict[int, EmitterState] = field(default_factory=dict)


def _shape_offset(config: EmitterConfig, rng: Lcg) -> tuple[float, float]:
    shape = config.shape
    if shape is EmissionShape.CIRCLE:
        a = rng.uniform(0.0, _TAU)
        r = config.shape_radius * math.sqrt(rng.random())
        return math.cos(a) * r, math.sin(a) * r
    if shape is EmissionShape.RING:
        a = rng.uniform(0.0, _TAU)
        return math.cos(a) * config.shape_radius, math.sin(a) * config.shape_radius
    if shape is EmissionShape.BOX:
        ex, ey = config.shape_extents.x, config.shape_extents.y
        dx = rng.uniform(-ex, ex)
        return dx, rng.uniform(-ey, ey)
    if shape is EmissionShape.LINE:
        ex = config.shape_extents.x
        return rng.uniform(-ex, ex), 0.0
    return 0.0, 0.0


def spawn_particle(
    state: EmitterState,
    config: EmitterConfig,
    emitter_pos: Vec2,
    inherited_vel: Vec2 | None = None,
) -> None:
    """Spawn one particle from the emitter's shape; does nothing when the pool is full."""
    index = state.pool.spawn()
    if index < 0:
        return
    rng = state.rng
    inherited = inherited_vel if inherited_vel is not None else Vec2()
    p = state.pool[index]

    dx, dy = _shape_offset(config, rng)
    p.position = Vec2(emitter_pos.x + dx, emitter_pos.y + dy)

    speed = config.speed.sample(rng)
    angle = config.angle.sample(rng)
    p.velocity = Vec2(speed * math.cos(angle) + inherited.x, speed * math.sin(angle) + inherited.y)

    p.lifetime = config.lifetime.sample(rng)
    p.age = 0.0
    p.rotation = config.initial_rotation.sample(rng)
    p.angular_velocity = config.angular_velocity.sample(rng)
    p.size_start = config.size_start.sample(rng)
    p.size_end = config.size_end.sample(rng)
    p.size = p.size_start
    p.color_start = replace(config.color_start)
    p.color_end = replace(config.color_end)


def _spawn_continuous(
    state: EmitterState, config: EmitterConfig, pos: Vec2, inherited: Vec2, dt: float
) -> None:
    if config.spawn_rate <= 0:
        return
    state.spawn_accumulator += dt * config.spawn_rate
    while state.spawn_accumulator >= 1.0 and state.pool.count < state.pool.capacity:
        spawn_particle(state, config, pos, inherited)
        state.spawn_accumulator -= 1.0


def _process_bursts(
    state: EmitterState, config: EmitterConfig, pos: Vec2, inherited: Vec2, dt: float
) -> None:
    pool = state.pool
    for b, burst in enumerate(config.bursts):
        if burst.cycles > 0 and state.burst_cycles_done[b] >= burst.cycles:
            continue
        if state.elapsed < burst.time:
            continue
        state.burst_timers[b] += dt
        interval = burst.interval if burst.interval > 0 else _NO_INTERVAL
        while state.burst_timers[b] >= interval or state.burst_cycles_done[b] == 0:
            for _ in range(burst.count):
                if pool.count >= pool.capacity:
                    break
                spawn_particle(state, config, pos, inherited)
            state.burst_cycles_done[b] += 1
            if burst.cycles > 0 and state.burst_cycles_done[b] >= burst.cycles:
                break
            state.burst_timers[b] = max(0.0, state.burst_timers[b] - interval)


def _clamp_axis(value: float, velocity: float, lo: float, hi: float) -> tuple[float, float]:
    if value < lo:
        return lo, 0.0
    if value > hi:
        return hi, 0.0
    return value, velocity


def _simulate(pool: ParticlePool, config: EmitterConfig, dt: float, full: bool) -> None:
    """Age, kill and integrate particles; ``full`` adds bounds and size easing."""
    clamp = full and config.has_bounds
    for i in range(pool.count - 1, -1, -1):
        p = pool[i]
        p.age += dt
        if p.age >= p.lifetime:
            pool.kill(i)
            continue
        vx = p.velocity.x + config.gravity.x * dt
        vy = p.velocity.y + config.gravity.y * dt
        if config.drag > 0:
            factor = max(0.0, 1.0 - config.drag * dt)
            vx *= factor
            vy *= factor
        px = p.position.x + vx * dt
        py = p.position.y + vy * dt
        if clamp:
            px, vx = _clamp_axis(px, vx, config.bounds_min.x, config.bounds_max.x)
            py, vy = _clamp_axis(py, vy, config.bounds_min.y, config.bounds_max.y)
        p.position = Vec2(px, py)
        p.velocity = Vec2(vx, vy)
        p.rotation += p.angular_velocity * dt
        if full:
            t = p.age / p.lifetime
            p.size = p.size_start + (p.size_end - p.size_start) * t


def _new_state(entity: int, config: EmitterConfig, position: Vec2) -> EmitterState:
    seed = config.seed if config.seed else (entity ^ _SEED_MIX) & _MASK32
    state = EmitterState(
        pool=ParticlePool(config.max_particles),
        rng=Lcg(seed),
        burst_cycles_done=[0] * len(config.bursts),
        burst_timers=[0.0] * len(config.bursts),
    )
    remaining = config.pre_warm_time
    still = Vec2()
    while remaining > 0:
        step = min(remaining, _PREWARM_STEP)
        _spawn_continuous(state, config, position, still, step)
        _simulate(state.pool, config, step, full=False)
        state.elapsed += step
        remaining -= step
    return state


def particle_system_update(particles: ParticleSystemResource, dt: float, world: World) -> None:
    """Advance every entity emitter by ``dt`` and drop state of vanished emitters."""
    seen: set[int] = set()
    for entity, emitter, transform in Query(world, ParticleEmitter, Transform2D).iter_with_entity():
        seen.add(entity)
        config = emitter.config
        state = particles.emitters.get(entity)
        if state is None:
            state = _new_state(entity, config, transform.position)
            particles.emitters[entity] = state
        if state.finished:
            continue

        pos = Vec2(transform.position.x, transform.position.y)
        vel_x = vel_y = 0.0
        if state.prev_position is not None and dt > 0:
            vel_x = (pos.x - state.prev_position.x) / dt
            vel_y = (pos.y - state.prev_position.y) / dt
        state.prev_position = pos
        inherited = Vec2(vel_x * config.velocity_inheritance, vel_y * config.velocity_inheritance)

        if emitter.playing:
            _spawn_continuous(state, config, pos, inherited, dt)
            _process_bursts(state, config, pos, inherited, dt)

        _simulate(state.pool, config, dt, full=True)
        state.elapsed += dt

        if config.duration > 0 and state.elapsed >= config.duration:
            if config.looping:
                state.elapsed = 0.0
                state.burst_cycles_done = [0] * len(state.burst_cycles_done)
                state.burst_timers = [0.0] * len(state.burst_timers)
            else:
                emitter.playing = False
        if not emitter.playing and state.pool.count == 0:
            state.finished = True

    for entity in [e for e in particles.emitters if e not in seen]:
        del particles.emitters[entity]


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _to_byte(value: float) -> int:
    return min(max(int(value * 255.0), 0), 255)


def particle_system_render(particles: ParticleSystemResource, renderer: Any, world: World) -> None:
    """Draw every live particle through ``renderer.draw_sprite``.

    The call receives texture, position, source rect, scale, rotation, origin,
    tint, flip, z order and whether blending is additive.
    """
    for entity, emitter, transform in Query(world, ParticleEmitter, Transform2D).iter_with_entity():
        state = particles.emitters.get(entity)
        if state is None or state.pool.count <= 0:
            continue
        config = emitter.config
        local = config.space is ParticleSpace.LOCAL
        additive = config.blend_mode is ParticleBlendMode.ADDITIVE
        ox = transform.position.x if local else 0.0
        oy = transform.position.y if local else 0.0
        for p in state.pool:
            t = p.age / p.lifetime if p.lifetime > 0 else 1.0
            tint = Color(
                _to_byte(_lerp(p.color_start.r, p.color_end.r, t)),
                _to_byte(_lerp(p.color_start.g, p.color_end.g, t)),
                _to_byte(_lerp(p.color_start.b, p.color_end.b, t)),
                _to_byte(_lerp(p.color_start.a, p.color_end.a, t)),
            )
            size = p.size
            renderer.draw_sprite(
                config.texture,
                Vec2(p.position.x + ox, p.position.y + oy),
                config.src_rect,
                Vec2(size, size),
                p.rotation,
                Vec2(size * 0.5, size * 0.5),
                tint,
                Flip.NONE,
                config.z_order,
                additive,
            )


class ParticlePlugin(Plugin):
    """Adds the handle-based particle resource and the entity particle system."""

    def __init__(self, renderer: Any = None) -> None:
        self._renderer = renderer

    def build(self, app: App) -> None:
        renderer = self._renderer if self._renderer is not None else app.get_resource(RENDERER_KEY)

        def delta() -> float:
            time_res = app.get_resource(Time)
            return time_res.delta if time_res else 0.0

        legacy = app.add_resource(ParticleResource(renderer))
        app.add_system(
            "particles_update",
            Phase.POST_UPDATE,
            lambda: legacy.update(delta()),
            deps=[
                AccessDescriptor(ParticleResource, AccessMode.WRITE),
                AccessDescriptor(Time, AccessMode.READ),
            ],
        )
        app.add_system(
            "particles_render",
            Phase.RENDER,
            legacy.render,
            deps=[AccessDescriptor(ParticleResource, AccessMode.WRITE)],
        )

        if not app.world.component_id(ParticleEmitter):
            app.world.register_component(ParticleEmitter, "ParticleEmitter")
        system_res = app.get_resource(ParticleSystemResource)
        if system_res is None:
            system_res = app.add_resource(ParticleSystemResource())

        app.add_system(
            "particle_system_update",
            Phase.POST_UPDATE,
            lambda: particle_system_update(system_res, delta(), app.world),
            deps=[
                AccessDescriptor(ParticleSystemResource, AccessMode.WRITE),
                AccessDescriptor(Time, AccessMode.READ),
                AccessDescriptor(ParticleEmitter, AccessMode.WRITE),
                AccessDescriptor(Transform2D, AccessMode.READ),
            ],
        )

        def render() -> None:
            if renderer is not None:
                particle_system_render(system_res, renderer, app.world)

        app.add_system(
            "particle_system_render",
            Phase.RENDER,
            render,
            deps=[
                AccessDescriptor(ParticleSystemResource, AccessMode.READ),
                AccessDescriptor(RENDERER_KEY, AccessMode.WRITE),
                AccessDescriptor(ParticleEmitter, AccessMode.READ),
                AccessDescriptor(Transform2D, AccessMode.READ),
            ],
        )