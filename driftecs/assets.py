"""Asset server that forwards loads to loaders installed by plugins."""

from __future__ import annotations

from typing import Callable

from .handle_pool import Handle

__all__ = ["AssetServer"]


class AssetServer:
    """Loads textures, sounds and fonts through pluggable loaders.

    Without a loader, each load returns the null handle.
    """

    def __init__(self) -> None:
        self._texture_loader: Callable[[str], Handle] | None = None
        self._sound_loader: Callable[[str], Handle] | None = None
        self._font_loader: Callable[[str, int], Handle] | None = None

    def set_texture_loader(self, fn: Callable[[str], Handle] | None) -> None:
        self._texture_loader = fn

    def set_sound_loader(self, fn: Callable[[str], Handle] | None) -> None:
        self._sound_loader = fn

    def set_font_loader(self, fn: Callable[[str, int], Handle] | None) -> None:
        self._font_loader = fn

    def load_texture(self, path: str) -> Handle:
        return self._texture_loader(path) if self._texture_loader else Handle()

    def load_sound(self, path: str) -> Handle:
        return self._sound_loader(path) if self._sound_loader else Handle()

    def load_font(self, path: str, size_px: int) -> Handle:
        return self._font_loader(path, size_px) if self._font_loader else Handle()