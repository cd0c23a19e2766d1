"""Generational handles and the slot pool that issues them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Iterator, TypeVar

__all__ = ["Handle", "HandlePool"]

_INDEX_BITS = 20
_INDEX_MASK = (1 << _INDEX_BITS) - 1
_GENERATION_MASK = 0xFFF

V = TypeVar("V")


@dataclass(frozen=True)
class Handle:
    """Opaque id packing a slot index and a generation; id 0 is the null handle."""

    id: int = 0

    @classmethod
    def make(cls, index: int, generation: int) -> "Handle":
        return cls(((generation & _GENERATION_MASK) << _INDEX_BITS) | (index & _INDEX_MASK))

    @property
    def index(self) -> int:
        return self.id & _INDEX_MASK

    @property
    def generation(self) -> int:
        return (self.id >> _INDEX_BITS) & _GENERATION_MASK

    def valid(self) -> bool:
        return self.id != 0


@dataclass
class _Slot:
    value: Any = None
    generation: int = 1
    alive: bool = False


class HandlePool(Generic[V]):
    """Slot storage addressed by generational handles. Slot 0 is reserved."""

    def __init__(self) -> None:
        self._slots: list[_Slot] = []
        self._free: list[int] = []
        self.clear()

    def create(self, value: V) -> Handle:
        if self._free:
            index = self._free.pop()
        else:
            index = len(self._slots)
            self._slots.append(_Slot())
        slot = self._slots[index]
        slot.value = value
        slot.alive = True
        return Handle.make(index, slot.generation)

    def destroy(self, handle: Handle) -> None:
        if not self.valid(handle):
            return
        slot = self._slots[handle.index]
        slot.alive = False
        slot.generation = (slot.generation + 1) & _GENERATION_MASK
        slot.value = None
        self._free.append(handle.index)

    def valid(self, handle: Handle) -> bool:
        if handle.id == 0 or handle.index >= len(self._slots):
            return False
        slot = self._slots[handle.index]
        return slot.alive and slot.generation == handle.generation

    def get(self, handle: Handle) -> V | None:
        """Return the stored value, or None for a stale or null handle."""
        if not self.valid(handle):
            return None
        return self._slots[handle.index].value

    def items(self) -> Iterator[tuple[Handle, V]]:
        """Yield (handle, value) for every live slot in index order."""
        for index, slot in enumerate(self._slots):
            if index and slot.alive:
                yield Handle.make(index, slot.generation), slot.value

    def alive_count(self) -> int:
        return sum(1 for index, slot in enumerate(self._slots) if index and slot.alive)

    def clear(self) -> None:
        self._slots = [_Slot(generation=0)]
        self._free = []