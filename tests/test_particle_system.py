import math

import pytest

from driftecs.app import App, Config
from driftecs.components import Transform2D, Vec2
from driftecs.particles import Lcg
from driftecs.particle_system import (
    Burst,
    EmissionShape,
    EmitterConfig,
    EmitterState,
    FloatRange,
    ParticleBlendMode,
    ParticleEmitter,
    ParticlePlugin,
    ParticlePool,
    ParticleSpace,
    ParticleSystemResource,
    particle_system_render,
    particle_system_update,
    spawn_particle,
)
from driftecs.world import World


class RecordingRenderer:
    def __init__(self):
        self.sprites = []

    def draw_sprite(self, *args):
        self.sprites.append(args)


def make_emitter(world, config, position=(0.0, 0.0), playing=True):
    entity = world.create_entity()
    world.set_component(
        entity, world.component_id(Transform2D), Transform2D(position=Vec2(*position))
    )
    if not world.component_id(ParticleEmitter):
        world.register_component(ParticleEmitter, "ParticleEmitter")
    world.set_component(
        entity,
        world.component_id(ParticleEmitter),
        ParticleEmitter(config=config, playing=playing),
    )
    return entity


def emitter_of(world, entity):
    return world.get_component(entity, world.component_id(ParticleEmitter))


def quiet_config(**kwargs):
    base = dict(spawn_rate=0.0, speed=FloatRange(0.0), lifetime=FloatRange(100.0))
    base.update(kwargs)
    return EmitterConfig(**base)


def test_pool_spawn_until_full():
    pool = ParticlePool(3)
    indices = [pool.spawn() for _ in range(4)]
    assert indices[:3] == [0, 1, 2]
    assert indices[3] == -1
    assert pool.count == pool.capacity == 3


def test_pool_kill_swaps_last_into_place():
    pool = ParticlePool(3)
    for value in (1.0, 2.0, 3.0):
        pool[pool.spawn()].age = value
    pool.kill(0)
    assert pool.count == 2
    assert [p.age for p in pool] == [3.0, 2.0]


def test_pool_kill_out_of_range_raises():
    pool = ParticlePool(2)
    pool.spawn()
    with pytest.raises(IndexError):
        pool.kill(1)


def test_pool_reserve_grows_capacity():
    pool = ParticlePool()
    pool.reserve(5)
    assert pool.capacity == 5
    pool.reserve(2)
    assert pool.capacity == 5


def test_float_range_sample_in_bounds():
    rng = Lcg(7)
    r = FloatRange(2.0, 4.0)
    samples = [r.sample(rng) for _ in range(100)]
    assert all(2.0 <= s <= 4.0 for s in samples)
    assert FloatRange(3.5).sample(rng) == 3.5


def test_spawn_point_uses_emitter_position_and_inherited_velocity():
    state = EmitterState(pool=ParticlePool(1), rng=Lcg(1))
    spawn_particle(state, quiet_config(), Vec2(5.0, 6.0), Vec2(2.0, -3.0))
    p = state.pool[0]
    assert (p.position.x, p.position.y) == (5.0, 6.0)
    assert p.velocity.x == pytest.approx(2.0)
    assert p.velocity.y == pytest.approx(-3.0)
    assert p.age == 0.0
    assert p.size == p.size_start


def test_spawn_when_full_does_nothing():
    state = EmitterState(pool=ParticlePool(1), rng=Lcg(1))
    spawn_particle(state, quiet_config(), Vec2())
    spawn_particle(state, quiet_config(), Vec2())
    assert state.pool.count == 1


def test_spawn_shapes_stay_within_their_region():
    rng_state = EmitterState(pool=ParticlePool(50), rng=Lcg(3))
    circle = quiet_config(shape=EmissionShape.CIRCLE, shape_radius=4.0)
    for _ in range(20):
        spawn_particle(rng_state, circle, Vec2(1.0, 1.0))
    assert all(math.hypot(p.position.x - 1.0, p.position.y - 1.0) <= 4.0 + 1e-9 for p in rng_state.pool)

    ring_state = EmitterState(pool=ParticlePool(20), rng=Lcg(3))
    ring = quiet_config(shape=EmissionShape.RING, shape_radius=4.0)
    for _ in range(20):
        spawn_particle(ring_state, ring, Vec2())
    assert all(math.hypot(p.position.x, p.position.y) == pytest.approx(4.0) for p in ring_state.pool)


def test_spawn_box_and_line():
    state = EmitterState(pool=ParticlePool(40), rng=Lcg(9))
    box = quiet_config(shape=EmissionShape.BOX, shape_extents=Vec2(2.0, 3.0))
    line = quiet_config(shape=EmissionShape.LINE, shape_extents=Vec2(2.0, 3.0))
    for _ in range(20):
        spawn_particle(state, box, Vec2())
    for _ in range(20):
        spawn_particle(state, line, Vec2(0.0, 7.0))
    particles = list(state.pool)
    assert all(abs(p.position.x) <= 2.0 and abs(p.position.y) <= 3.0 for p in particles[:20])
    assert all(abs(p.position.x) <= 2.0 and p.position.y == 7.0 for p in particles[20:])


def test_continuous_spawn_rate():
    world = World()
    entity = make_emitter(world, quiet_config(spawn_rate=10.0))
    res = ParticleSystemResource()
    particle_system_update(res, 0.5, world)
    assert res.emitters[entity].pool.count == 5


def test_spawn_capped_by_max_particles():
    world = World()
    entity = make_emitter(world, quiet_config(spawn_rate=1000.0, max_particles=8))
    res = ParticleSystemResource()
    particle_system_update(res, 1.0, world)
    assert res.emitters[entity].pool.count == 8


def test_burst_fires_once():
    world = World()
    entity = make_emitter(world, quiet_config(bursts=[Burst(time=0.0, count=7, cycles=1)]))
    res = ParticleSystemResource()
    particle_system_update(res, 0.1, world)
    particle_system_update(res, 0.1, world)
    state = res.emitters[entity]
    assert state.pool.count == 7
    assert state.burst_cycles_done == [1]


def test_not_playing_spawns_nothing_and_finishes():
    world = World()
    entity = make_emitter(world, quiet_config(spawn_rate=10.0), playing=False)
    res = ParticleSystemResource()
    particle_system_update(res, 0.5, world)
    state = res.emitters[entity]
    assert state.pool.count == 0
    assert state.finished is True


def test_non_looping_duration_stops_emitter():
    world = World()
    config = quiet_config(
        spawn_rate=10.0, lifetime=FloatRange(0.2), duration=1.0, looping=False
    )
    entity = make_emitter(world, config)
    res = ParticleSystemResource()
    particle_system_update(res, 0.5, world)
    assert emitter_of(world, entity).playing is True
    particle_system_update(res, 0.5, world)
    assert emitter_of(world, entity).playing is False
    assert res.emitters[entity].finished is True


def test_looping_duration_resets_elapsed():
    world = World()
    config = quiet_config(duration=1.0, looping=True)
    entity = make_emitter(world, config)
    res = ParticleSystemResource()
    particle_system_update(res, 0.5, world)
    particle_system_update(res, 0.5, world)
    assert res.emitters[entity].elapsed == 0.0
    assert emitter_of(world, entity).playing is True


def test_gravity_and_drag():
    world = World()
    falling = make_emitter(
        world, quiet_config(gravity=Vec2(0.0, 10.0), bursts=[Burst(count=1)])
    )
    dragged = make_emitter(
        world, quiet_config(speed=FloatRange(50.0), drag=100.0, bursts=[Burst(count=1)])
    )
    res = ParticleSystemResource()
    particle_system_update(res, 0.5, world)
    p = res.emitters[falling].pool[0]
    assert p.velocity.y > 0 and p.position.y > 0
    q = res.emitters[dragged].pool[0]
    assert (q.velocity.x, q.velocity.y) == (0.0, 0.0)


def test_bounds_clamp_positions():
    world = World()
    config = quiet_config(
        speed=FloatRange(100.0),
        bounds_min=Vec2(-1.0, -1.0),
        bounds_max=Vec2(1.0, 1.0),
        bursts=[Burst(count=20)],
    )
    entity = make_emitter(world, config)
    res = ParticleSystemResource()
    particle_system_update(res, 0.5, world)
    pool = res.emitters[entity].pool
    assert pool.count == 20
    assert all(-1.0 <= p.position.x <= 1.0 and -1.0 <= p.position.y <= 1.0 for p in pool)


def test_size_interpolates_over_lifetime():
    world = World()
    config = quiet_config(
        lifetime=FloatRange(2.0),
        size_start=FloatRange(10.0),
        size_end=FloatRange(0.0),
        bursts=[Burst(count=1)],
    )
    entity = make_emitter(world, config)
    res = ParticleSystemResource()
    particle_system_update(res, 1.0, world)
    p = res.emitters[entity].pool[0]
    assert p.size == pytest.approx(p.size_start + (p.size_end - p.size_start) * p.age / p.lifetime)
    assert 0.0 < p.size < 10.0


def test_same_seed_is_deterministic():
    def positions():
        world = World()
        config = EmitterConfig(
            spawn_rate=20.0, seed=42, shape=EmissionShape.CIRCLE, shape_radius=3.0
        )
        entity = make_emitter(world, config)
        res = ParticleSystemResource()
        particle_system_update(res, 0.5, world)
        return [(p.position.x, p.position.y) for p in res.emitters[entity].pool]

    first = positions()
    assert first == positions()
    assert len(first) > 0


def test_prewarm_spawns_before_first_frame():
    world = World()
    entity = make_emitter(world, quiet_config(spawn_rate=10.0, pre_warm_time=0.5))
    res = ParticleSystemResource()
    particle_system_update(res, 0.0, world)
    state = res.emitters[entity]
    assert state.elapsed == pytest.approx(0.5)
    assert state.pool.count > 0


def test_state_removed_when_entity_destroyed():
    world = World()
    entity = make_emitter(world, quiet_config())
    res = ParticleSystemResource()
    particle_system_update(res, 0.1, world)
    assert entity in res.emitters
    world.destroy_entity(entity)
    particle_system_update(res, 0.1, world)
    assert entity not in res.emitters


def test_render_local_space_and_additive():
    world = World()
    config = quiet_config(
        space=ParticleSpace.LOCAL,
        blend_mode=ParticleBlendMode.ADDITIVE,
        bursts=[Burst(count=3)],
    )
    entity = make_emitter(world, config, position=(10.0, 20.0))
    res = ParticleSystemResource()
    particle_system_update(res, 0.1, world)
    renderer = RecordingRenderer()
    particle_system_render(res, renderer, world)
    pool = res.emitters[entity].pool
    assert len(renderer.sprites) == pool.count == 3
    for call, p in zip(renderer.sprites, pool):
        pos = call[1]
        assert pos.x == pytest.approx(p.position.x + 10.0)
        assert pos.y == pytest.approx(p.position.y + 20.0)
        assert call[9] is True
        assert 0 <= call[6].a <= 255


def test_plugin_runs_in_app():
    app = App(Config(thread_count=1))
    renderer = RecordingRenderer()
    app.add_plugin(ParticlePlugin(renderer))
    app.startup()
    entity = make_emitter(app.world, quiet_config(spawn_rate=10.0))
    app.run_frame(0.1)
    res = app.get_resource(ParticleSystemResource)
    count = res.emitters[entity].pool.count
    assert count >= 1
    assert len(renderer.sprites) == count