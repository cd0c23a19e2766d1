"""Keyboard, mouse and gamepad state built from posted input events."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

from .app import App, Plugin
from .components import Vec2
from .log import LogLevel, log
from .scheduler import AccessDescriptor, AccessMode, Phase

__all__ = [
    "MAX_KEYS",
    "MAX_GAMEPADS",
    "MAX_GAMEPAD_AXES",
    "MAX_GAMEPAD_BUTTONS",
    "MAX_MOUSE_BUTTONS",
    "MouseButton",
    "KeyDown",
    "KeyUp",
    "MouseMotion",
    "MouseButtonDown",
    "MouseButtonUp",
    "MouseWheel",
    "GamepadAdded",
    "GamepadRemoved",
    "GamepadButtonDown",
    "GamepadButtonUp",
    "GamepadAxisMotion",
    "InputResource",
    "InputPlugin",
]

MAX_KEYS = 512
MAX_GAMEPADS = 4
MAX_GAMEPAD_AXES = 6
MAX_GAMEPAD_BUTTONS = 15
MAX_MOUSE_BUTTONS = 5
_AXIS_SCALE = 32768.0


class MouseButton(IntEnum):
    LEFT = 1
    MIDDLE = 2
    RIGHT = 3
    X1 = 4
    X2 = 5


@dataclass(frozen=True)
class KeyDown:
    scancode: int


@dataclass(frozen=True)
class KeyUp:
    scancode: int


@dataclass(frozen=True)
class MouseMotion:
    x: float
    y: float
    xrel: float = 0.0
    yrel: float = 0.0


@dataclass(frozen=True)
class MouseButtonDown:
    button: int


@dataclass(frozen=True)
class MouseButtonUp:
    button: int


@dataclass(frozen=True)
class MouseWheel:
    y: float


@dataclass(frozen=True)
class GamepadAdded:
    which: int


@dataclass(frozen=True)
class GamepadRemoved:
    which: int


@dataclass(frozen=True)
class GamepadButtonDown:
    which: int
    button: int


@dataclass(frozen=True)
class GamepadButtonUp:
    which: int
    button: int


@dataclass(frozen=True)
class GamepadAxisMotion:
    which: int
    axis: int
    value: int


@dataclass
class _Gamepad:
    instance_id: int
    axes: list[float] = field(default_factory=lambda: [0.0] * MAX_GAMEPAD_AXES)
    current: list[bool] = field(default_factory=lambda: [False] * MAX_GAMEPAD_BUTTONS)
    previous: list[bool] = field(default_factory=lambda: [False] * MAX_GAMEPAD_BUTTONS)


class InputResource:
    """Tracks this frame's and last frame's input state."""

    def __init__(self) -> None:
        self._keys_current = [False] * MAX_KEYS
        self._keys_previous = [False] * MAX_KEYS
        self._mouse_pos = Vec2()
        self._mouse_delta = Vec2()
        self._mouse_current = [False] * (MAX_MOUSE_BUTTONS + 1)
        self._mouse_previous = [False] * (MAX_MOUSE_BUTTONS + 1)
        self._wheel = 0.0
        self._logical = (0.0, 0.0)
        self._window = (0, 0)
        self._gamepads: list[_Gamepad | None] = [None] * MAX_GAMEPADS
        log(LogLevel.INFO, "Input system initialised")

    # ---- frame / events ----

    def begin_frame(self) -> None:
        """Snapshot current state as previous and reset per-frame accumulators."""
        self._keys_previous = list(self._keys_current)
        self._mouse_previous = list(self._mouse_current)
        self._mouse_delta = Vec2()
        self._wheel = 0.0
        for pad in self._gamepads:
            if pad is not None:
                pad.previous = list(pad.current)

    def _find_gamepad(self, instance_id: int) -> _Gamepad | None:
        return next(
            (pad for pad in self._gamepads if pad is not None and pad.instance_id == instance_id),
            None,
        )

    def process_event(self, event: object) -> None:
        match event:
            case KeyDown(scancode=sc) if 0 <= sc < MAX_KEYS:
                self._keys_current[sc] = True
            case KeyUp(scancode=sc) if 0 <= sc < MAX_KEYS:
                self._keys_current[sc] = False
            case MouseMotion():
                self._mouse_pos = Vec2(event.x, event.y)
                self._mouse_delta = Vec2(
                    self._mouse_delta.x + event.xrel, self._mouse_delta.y + event.yrel
                )
            case MouseButtonDown(button=btn) if 1 <= btn <= MAX_MOUSE_BUTTONS:
                self._mouse_current[btn] = True
            case MouseButtonUp(button=btn) if 1 <= btn <= MAX_MOUSE_BUTTONS:
                self._mouse_current[btn] = False
            case MouseWheel(y=y):
                self._wheel += y
            case GamepadAdded(which=which):
                self._add_gamepad(which)
            case GamepadRemoved(which=which):
                for slot, pad in enumerate(self._gamepads):
                    if pad is not None and pad.instance_id == which:
                        self._gamepads[slot] = None
                        log(LogLevel.INFO, "Gamepad disconnected from slot %d", slot)
                        break
            case GamepadButtonDown(which=which, button=btn) | GamepadButtonUp(which=which, button=btn):
                pad = self._find_gamepad(which)
                if pad is not None and 0 <= btn < MAX_GAMEPAD_BUTTONS:
                    pad.current[btn] = isinstance(event, GamepadButtonDown)
            case GamepadAxisMotion(which=which, axis=axis, value=value):
                pad = self._find_gamepad(which)
                if pad is not None and 0 <= axis < MAX_GAMEPAD_AXES:
                    pad.axes[axis] = value / _AXIS_SCALE
            case _:
                pass

    def _add_gamepad(self, which: int) -> None:
        for slot, pad in enumerate(self._gamepads):
            if pad is None:
                self._gamepads[slot] = _Gamepad(which)
                log(LogLevel.INFO, "Gamepad connected in slot %d", slot)
                return
        log(LogLevel.WARN, "No free gamepad slot for new device")

    # ---- keyboard ----

    def _key_state(self, key: int) -> tuple[bool, bool] | None:
        k = int(key)
        if not 0 <= k < MAX_KEYS:
            return None
        return self._keys_current[k], self._keys_previous[k]

    def key_pressed(self, key: int) -> bool:
        state = self._key_state(key)
        return state is not None and state[0] and not state[1]

    def key_held(self, key: int) -> bool:
        state = self._key_state(key)
        return state is not None and state[0]

    def key_released(self, key: int) -> bool:
        state = self._key_state(key)
        return state is not None and not state[0] and state[1]

    # ---- mouse ----

    def set_logical_size(self, width: float, height: float) -> None:
        self._logical = (float(width), float(height))

    def set_window_size(self, width: int, height: int) -> None:
        self._window = (int(width), int(height))

    def _to_logical(self, v: Vec2) -> Vec2:
        lw, lh = self._logical
        ww, wh = self._window
        if lw > 0 and lh > 0 and ww > 0 and wh > 0:
            return Vec2(v.x * (lw / ww), v.y * (lh / wh))
        return Vec2(v.x, v.y)

    def mouse_position(self) -> Vec2:
        """Mouse position, scaled to the logical resolution when both sizes are known."""
        return self._to_logical(self._mouse_pos)

    def mouse_delta(self) -> Vec2:
        return self._to_logical(self._mouse_delta)

    def _button_state(self, button: int) -> tuple[bool, bool] | None:
        b = int(button)
        if not 1 <= b <= MAX_MOUSE_BUTTONS:
            return None
        return self._mouse_current[b], self._mouse_previous[b]

    def mouse_button_pressed(self, button: int) -> bool:
        state = self._button_state(button)
        return state is not None and state[0] and not state[1]

    def mouse_button_held(self, button: int) -> bool:
        state = self._button_state(button)
        return state is not None and state[0]

    def mouse_button_released(self, button: int) -> bool:
        state = self._button_state(button)
        return state is not None and not state[0] and state[1]

    def mouse_wheel_delta(self) -> float:
        return self._wheel

    # ---- gamepads ----

    def _pad(self, index: int) -> _Gamepad | None:
        if not 0 <= index < MAX_GAMEPADS:
            return None
        return self._gamepads[index]

    def gamepad_connected(self, index: int) -> bool:
        return self._pad(index) is not None

    def gamepad_axis(self, index: int, axis: int) -> float:
        pad = self._pad(index)
        if pad is None or not 0 <= axis < MAX_GAMEPAD_AXES:
            return 0.0
        return pad.axes[axis]

    def _pad_button(self, index: int, button: int) -> tuple[bool, bool] | None:
        pad = self._pad(index)
        if pad is None or not 0 <= button < MAX_GAMEPAD_BUTTONS:
            return None
        return pad.current[button], pad.previous[button]

    def gamepad_button_pressed(self, index: int, button: int) -> bool:
        state = self._pad_button(index, button)
        return state is not None and state[0] and not state[1]

    def gamepad_button_held(self, index: int, button: int) -> bool:
        state = self._pad_button(index, button)
        return state is not None and state[0]

    def gamepad_button_released(self, index: int, button: int) -> bool:
        state = self._pad_button(index, button)
        return state is not None and not state[0] and state[1]


class InputPlugin(Plugin):
    """Adds the input resource, routes events to it and snapshots it each frame."""

    def build(self, app: App) -> None:
        input_res = app.add_resource(InputResource())
        app.add_event_handler(input_res)
        width, height = app.config.resolved_size()
        input_res.set_logical_size(width, height)
        input_res.set_window_size(width, height)
        app.add_system(
            "input_begin_frame",
            Phase.PRE_UPDATE,
            input_res.begin_frame,
            deps=[AccessDescriptor(InputResource, AccessMode.WRITE)],
        )