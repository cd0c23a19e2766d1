# driftecs

`driftecs` is a compact entity-component-system runtime for 2D games, written
in plain Python with no third-party dependencies.

## What it provides

- **A world** (`driftecs.world.World`) that owns entities and their
  components. Components are addressed by their registered type or by the
  integer id returned from `register_component`. `set_component` records a
  change tick and, for a new component, an add tick (`change_tick`,
  `add_tick`). Built-in components (`Transform2D`, `Sprite`, `Camera`,
  `Name`, `Parent`, `Children`) live in `driftecs.components`, together with
  `Vec2`, `Color`, `ColorF`, `Rect`, `Flip` and the `Script` helper.
- **Queries** (`driftecs.query.Query`) over component types, with the
  filter terms `With`, `Without`, `Changed`, `Added` and `Maybe` (optional
  component, yields `None` when missing). `iter()`, `iter_with_entity()`,
  `contains()`, `is_empty()` and `single()` (raises `ValueError` unless
  exactly one entity matches).
- **Deferred commands** (`driftecs.commands.Commands`) to spawn, insert,
  remove and despawn, plus `push(fn)` for arbitrary callables, all applied in
  order by `flush(world)`. Despawning an entity also destroys the entities
  listed in its `Children` component.
- **A phased scheduler** (`driftecs.scheduler`) with the phases
  `Phase.STARTUP`, `PRE_UPDATE`, `UPDATE`, `POST_UPDATE`, `EXTRACT`, `RENDER`
  and `RENDER_FLUSH`. Systems that declare their data access with
  `AccessDescriptor(type_id, AccessMode.READ | WRITE)` are grouped into
  non-conflicting batches that may run together on a `ThreadPool`.
- **An application object** (`driftecs.app.App`) holding resources,
  plugins, event handlers, state enter/exit systems and the frame loop. A
  `Time` resource (`delta`, `elapsed`, `frame`) is updated every frame;
  `delta` is clamped to 0.25 seconds.
- **Generational handles** (`driftecs.handle_pool.HandlePool`): a handle
  to a destroyed slot stays invalid after the slot is reused.
- **An asset server** (`driftecs.assets.AssetServer`) that forwards
  texture, sound and font loads to loader functions installed by plugins,
  returning the null `Handle` when none is installed.
- **Gameplay plugins and systems**: transform hierarchy
  (`driftecs.hierarchy.HierarchyPlugin`, `propagate_transforms`), sprite
  animation (`driftecs.animation.SpriteAnimationPlugin`), input state
  (`driftecs.input.InputPlugin`, `InputResource`), camera follow and shake
  (`driftecs.camera.CameraPlugin`), handle-based particle emitters
  (`driftecs.particles.ParticleResource`), component-driven particle
  emitters with shapes, bursts, pre-warm, drag and bounds
  (`driftecs.particle_system.ParticlePlugin`), and motion trails
  (`driftecs.trail.TrailPlugin`).
- **Logging** (`driftecs.log.log(level, fmt, *args)`) writing one line to
  standard error, prefixed with `[TRACE]`, `[DEBUG]`, `[INFO] `, `[WARN] `
  or `[ERROR]`.

## A first look

```python
from driftecs.app import App, Config
from driftecs.components import Transform2D, Vec2
from driftecs.scheduler import Phase


def move_right(app):
    world = app.world
    for entity in world.entities_with(Transform2D):
        t = world.get_component(entity, Transform2D)
        t.position = Vec2(t.position.x + 1.0, t.position.y)


app = App(Config(thread_count=1))
app.add_system("move_right", Phase.UPDATE, move_right)
app.run(max_frames=60)
```

A system added with only a function receives the `App` and always runs on
its own. A system added with `deps=[...]` takes no arguments and may share a
batch with systems whose declared access does not conflict:

```python
from driftecs.scheduler import AccessDescriptor, AccessMode

app.add_system(
    "count",
    Phase.UPDATE,
    lambda: print(len(app.world.entities_with(Transform2D))),
    deps=[AccessDescriptor(Transform2D, AccessMode.READ)],
)
```

Ordering inside a phase can be constrained with `App.order_after`,
`App.order_before`, `App.set_system_set` and `App.configure_set_order`;
`run_condition` skips a system when it returns false.

Frames can also be driven by hand with `App.run_frame(dt)`, which returns
whether the app is still running. Posting a `QuitEvent` with
`App.post_event` ends the loop.

## Plugins

A plugin subclasses `driftecs.app.Plugin` and implements `build(app)`
(`finish(app)` is called after every plugin has been built). Plugins and
`PluginGroup`s passed to `App.add_plugin` / `App.add_plugins` are built when
the app starts, before the startup systems run.

```python
from driftecs.app import App
from driftecs.animation import SpriteAnimationPlugin
from driftecs.camera import CameraPlugin
from driftecs.hierarchy import HierarchyPlugin
from driftecs.input import InputPlugin

app = App()
app.add_plugin(InputPlugin())
app.add_plugin(HierarchyPlugin())
app.add_plugin(SpriteAnimationPlugin())
app.add_plugin(CameraPlugin())
```

## Input

Input arrives as plain event objects from `driftecs.input` (`KeyDown`,
`KeyUp`, `MouseMotion`, `MouseButtonDown`, `MouseButtonUp`, `MouseWheel`,
`GamepadAdded`, `GamepadRemoved`, `GamepadButtonDown`, `GamepadButtonUp`,
`GamepadAxisMotion`). Post them with `App.post_event`; `InputPlugin` routes
them to its `InputResource`, which answers `key_pressed`, `key_held`,
`key_released`, the matching mouse and gamepad queries, `mouse_position`,
`mouse_delta` and `mouse_wheel_delta`.

## Drawing

The particle and trail systems draw through a renderer object you supply,
either to the plugin's constructor or as a resource stored under the key
`driftecs.particle_system.RENDERER_KEY`. Particles call
`renderer.draw_sprite(...)`; trails call
`renderer.draw_line(a, b, color, width)`.

## What it does not do

`driftecs` opens no window, has no GPU renderer, and reads no devices:
input must be posted as events, and drawing only happens through a renderer
object you provide. It has no audio, physics, font, tilemap or UI support,
and no command-line program.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.