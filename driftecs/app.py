"""The application: resources, plugins, systems, states and the frame loop."""

from __future__ import annotations

import os
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterable

from .assets import AssetServer
from .commands import Commands
from .log import LogLevel, log
from .scheduler import (
    AccessDescriptor,
    Phase,
    SystemEntry,
    ThreadPool,
    run_systems,
    run_systems_parallel,
    sort_by_set,
)
from .world import World

__all__ = ["Config", "Time", "QuitEvent", "Plugin", "PluginGroup", "App"]

_MAX_DT = 0.25
_FPS_SMOOTHING = 0.9
_MAX_AUTO_THREADS = 7


@dataclass
class Config:
    """Window and scheduler settings; zero sizes and an empty title mean defaults."""

    title: str = ""
    width: int = 0
    height: int = 0
    fullscreen: bool = False
    resizable: bool = False
    vsync: bool = True
    thread_count: int = 0

    def resolved_title(self) -> str:
        return self.title or "Drift Engine"

    def resolved_size(self) -> tuple[int, int]:
        return (self.width if self.width > 0 else 1280, self.height if self.height > 0 else 720)


@dataclass
class Time:
    """Frame timing: clamped delta, seconds since start and frame number."""

    delta: float = 0.0
    elapsed: float = 0.0
    frame: int = 0


@dataclass(frozen=True)
class QuitEvent:
    """Posting this event ends the main loop."""


class Plugin(ABC):
    """Registers resources, systems and event handlers with an app."""

    @abstractmethod
    def build(self, app: "App") -> None: ...

    def finish(self, app: "App") -> None:
        """Called after every plugin has been built."""

    @property
    def name(self) -> str:
        return type(self).__name__


class PluginGroup(ABC):
    """Bundles several plugins together."""

    @abstractmethod
    def build(self, app: "App") -> None: ...


class App:
    """Owns the world, resources and systems and drives frames."""

    def __init__(self, config: Config | None = None) -> None:
        self._config = config or Config()
        self._world = World()
        self._commands = Commands(self._world)
        self._thread_commands: dict[int, Commands] = {}
        self._thread_commands_lock = threading.Lock()
        self._main_thread = threading.get_ident()
        self._pool: ThreadPool | None = None
        self._running = False
        self._started = False
        self._resources: dict[Hashable, Any] = {}
        self._systems: dict[Phase, list[SystemEntry]] = {phase: [] for phase in Phase}
        self._on_enter: dict[tuple[Any, Any], list[SystemEntry]] = {}
        self._on_exit: dict[tuple[Any, Any], list[SystemEntry]] = {}
        self._state_processors: list[Callable[[], Any]] = []
        self._initial_enters: list[Callable[[], Any]] = []
        self._handlers: list[Any] = []
        self._event_updates: list[Callable[[], Any]] = []
        self._set_order: dict[Phase, list[int]] = {}
        self._plugins: list[Plugin] = []
        self._groups: list[PluginGroup] = []
        self._pending_events: deque[Any] = deque()
        self._time = Time()
        self._frame = 0
        self._fps = 0.0
        self._elapsed = 0.0

    # ---- properties ----

    @property
    def world(self) -> World:
        return self._world

    @property
    def config(self) -> Config:
        return self._config

    @property
    def running(self) -> bool:
        return self._running

    @property
    def frame(self) -> int:
        return self._frame

    @property
    def fps(self) -> float:
        return self._fps

    # ---- configuration ----

    def set_config(self, config: Config) -> "App":
        self._config = config
        return self

    def add_plugin(self, plugin: Plugin | type[Plugin] | None) -> "App":
        """Queue a plugin (instance or class); it is built during startup."""
        if plugin is None:
            return self
        if isinstance(plugin, type):
            plugin = plugin()
        self._plugins.append(plugin)
        return self

    def add_plugins(self, group: PluginGroup | type[PluginGroup] | None) -> "App":
        if group is None:
            return self
        if isinstance(group, type):
            group = group()
        self._groups.append(group)
        return self

    def add_event_handler(self, handler: Any) -> None:
        """Register an object whose ``process_event(event)`` sees every posted event."""
        if handler is not None:
            self._handlers.append(handler)

    def add_system(
        self,
        name: str,
        phase: Phase,
        fn: Callable[..., Any],
        deps: Iterable[AccessDescriptor] | None = None,
        run_condition: Callable[["App"], bool] | None = None,
    ) -> "App":
        """Add a system to a phase.

        Without ``deps`` the function receives the app and runs alone; with
        ``deps`` it takes no arguments and may run beside non-conflicting systems.
        """
        entry = SystemEntry(name=name or "", phase=Phase(phase), run_condition=run_condition)
        if deps is None:
            entry.app_fn = fn
        else:
            entry.deps = list(deps)
            entry.fn = fn
        self._systems[entry.phase].append(entry)
        return self

    # ---- resources ----

    def add_resource(self, resource: Any, key: Hashable | None = None) -> Any:
        """Store a resource (instance or class to construct) under ``key`` or its type."""
        if isinstance(resource, type):
            resource = resource()
        self._resources[key if key is not None else type(resource)] = resource
        return resource

    def get_resource(self, key: Hashable) -> Any:
        return self._resources.get(key)

    # ---- events and states ----

    def register_event_update(self, fn: Callable[[], Any]) -> None:
        """Call ``fn`` at the start of every frame."""
        self._event_updates.append(fn)

    def register_state_transition(self, processor: Callable[[], Any]) -> None:
        self._state_processors.append(processor)

    def register_initial_state_enter(self, fn: Callable[[], Any]) -> None:
        self._initial_enters.append(fn)

    def on_enter(self, state_type: Any, value: Any, name: str, fn: Callable[["App"], Any]) -> None:
        self._on_enter.setdefault((state_type, value), []).append(
            SystemEntry(name=name or "", app_fn=fn)
        )

    def on_exit(self, state_type: Any, value: Any, name: str, fn: Callable[["App"], Any]) -> None:
        self._on_exit.setdefault((state_type, value), []).append(
            SystemEntry(name=name or "", app_fn=fn)
        )

    def run_on_enter_systems(self, state_type: Any, value: Any) -> None:
        run_systems(self._on_enter.get((state_type, value), []), self)

    def run_on_exit_systems(self, state_type: Any, value: Any) -> None:
        run_systems(self._on_exit.get((state_type, value), []), self)

    def process_state_transitions(self) -> None:
        for processor in self._state_processors:
            processor()

    def post_event(self, event: Any) -> None:
        """Queue an input or window event for the next frame's event pass."""
        self._pending_events.append(event)

    # ---- commands ----

    def flush_commands(self) -> None:
        self._commands.flush(self._world)

    def commands(self) -> Commands:
        """The command buffer for the calling thread.

        Worker threads of the parallel scheduler get their own buffers,
        which are flushed after each parallel batch.
        """
        ident = threading.get_ident()
        if ident == self._main_thread or self._pool is None:
            return self._commands
        with self._thread_commands_lock:
            buffer = self._thread_commands.get(ident)
            if buffer is None:
                buffer = Commands(self._world)
                self._thread_commands[ident] = buffer
            return buffer

    def _flush_thread_commands(self) -> None:
        with self._thread_commands_lock:
            buffers = list(self._thread_commands.values())
        for buffer in buffers:
            buffer.flush(self._world)

    # ---- lifecycle ----

    def startup(self) -> None:
        """Build plugins, order systems and run startup systems; runs once."""
        if self._started:
            return
        self._started = True
        self._main_thread = threading.get_ident()

        width, height = self._config.resolved_size()
        log(LogLevel.INFO, "Drift engine initialised (%dx%d)", width, height)

        threads = self._config.thread_count
        if threads <= 0:
            threads = max(1, min((os.cpu_count() or 1) - 1, _MAX_AUTO_THREADS))
        if threads > 1:
            self._pool = ThreadPool(threads - 1)
            log(LogLevel.INFO, "Parallel scheduler: %d threads (%d workers + main)", threads, threads - 1)
        else:
            log(LogLevel.INFO, "Parallel scheduler: sequential mode (1 thread)")

        self.add_resource(self._world, World)
        self.add_resource(self._time, Time)
        self.add_resource(AssetServer())

        for group in self._groups:
            group.build(self)
        for plugin in self._plugins:
            plugin.build(self)
        for plugin in self._plugins:
            plugin.finish(self)

        for phase in (Phase.PRE_UPDATE, Phase.UPDATE, Phase.POST_UPDATE):
            order = self._set_order.get(phase)
            if order is not None:
                sort_by_set(self._systems[phase], order)

        run_systems(self._systems[Phase.STARTUP], self)
        self.flush_commands()

        for enter in self._initial_enters:
            enter()
        self.flush_commands()
        self._initial_enters.clear()

        self._running = True

    def _run_parallel_phase(self, phase: Phase) -> None:
        run_systems_parallel(self._systems[phase], self, self._pool, self._flush_thread_commands)
        self.flush_commands()

    def run_frame(self, dt: float) -> bool:
        """Run one frame with the given delta; return whether the app keeps running."""
        self.startup()

        raw_dt = dt
        dt = min(dt, _MAX_DT)
        instant = 1.0 / dt if dt > 0 else 0.0
        self._fps = (
            self._fps * _FPS_SMOOTHING + instant * (1.0 - _FPS_SMOOTHING) if self._fps > 0 else instant
        )
        self._elapsed += raw_dt
        self._time.delta = dt
        self._time.elapsed = self._elapsed
        self._time.frame = self._frame

        self._world.set_current_tick(self._frame + 1)

        for update in self._event_updates:
            update()

        self._run_parallel_phase(Phase.PRE_UPDATE)

        while self._pending_events:
            event = self._pending_events.popleft()
            for handler in self._handlers:
                handler.process_event(event)
            if isinstance(event, QuitEvent):
                self._running = False
        if not self._running:
            return False

        self.process_state_transitions()

        self._run_parallel_phase(Phase.UPDATE)
        self._run_parallel_phase(Phase.POST_UPDATE)
        run_systems(self._systems[Phase.EXTRACT], self)
        run_systems(self._systems[Phase.RENDER], self)
        run_systems(self._systems[Phase.RENDER_FLUSH], self)

        self._frame += 1
        return self._running

    def run(self, max_frames: int | None = None) -> int:
        """Run frames timed by the wall clock until quit or ``max_frames``; return 0."""
        self.startup()
        frames = 0
        last = time.perf_counter()
        try:
            while self._running and (max_frames is None or frames < max_frames):
                now = time.perf_counter()
                dt, last = now - last, now
                self.run_frame(dt)
                frames += 1
        finally:
            self._running = False
            if self._pool is not None:
                self._pool.close()
                self._pool = None
        log(LogLevel.INFO, "Drift engine shut down")
        return 0

    def quit(self) -> None:
        self._running = False

    # ---- ordering ----

    def last_system_index(self, phase: Phase) -> int:
        systems = self._systems[Phase(phase)]
        return len(systems) - 1 if systems else 0

    def order_after(self, phase: Phase, index: int, dep_name: str) -> None:
        systems = self._systems[Phase(phase)]
        if 0 <= index < len(systems) and dep_name:
            systems[index].must_run_after.append(dep_name)

    def order_before(self, phase: Phase, index: int, target_name: str) -> None:
        systems = self._systems[Phase(phase)]
        if 0 <= index < len(systems) and target_name:
            systems[index].must_run_before.append(target_name)

    def set_system_set(self, phase: Phase, index: int, set_id: int) -> None:
        systems = self._systems[Phase(phase)]
        if 0 <= index < len(systems):
            systems[index].system_set = set_id

    def configure_set_order(self, phase: Phase, order: Iterable[int]) -> None:
        self._set_order[Phase(phase)] = list(order)