"""System entries, conflict detection and the batch-parallel scheduler."""

from __future__ import annotations

import concurrent.futures
import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from functools import partial
from typing import Any, Callable, Hashable, Sequence

from .log import LogLevel, log

__all__ = [
    "Phase",
    "AccessMode",
    "AccessDescriptor",
    "SystemEntry",
    "ThreadPool",
    "conflicts",
    "is_exclusive",
    "next_batch",
    "run_systems",
    "run_systems_parallel",
    "sort_by_set",
]

_DEADLOCK_WARN_SECONDS = 5.0


class Phase(IntEnum):
    """Points in a frame at which systems run."""

    STARTUP = 0
    PRE_UPDATE = 1
    UPDATE = 2
    POST_UPDATE = 3
    EXTRACT = 4
    RENDER = 5
    RENDER_FLUSH = 6


class AccessMode(Enum):
    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class AccessDescriptor:
    """One piece of data a system touches and how."""

    type_id: Hashable
    mode: AccessMode = AccessMode.READ


@dataclass
class SystemEntry:
    """A registered system.

    ``fn`` takes no arguments and declares its data access in ``deps``;
    ``app_fn`` receives the whole app and therefore always runs alone.
    """

    name: str = ""
    phase: Phase = Phase.UPDATE
    deps: list[AccessDescriptor] = field(default_factory=list)
    fn: Callable[[], Any] | None = None
    app_fn: Callable[[Any], Any] | None = None
    run_condition: Callable[[Any], bool] | None = None
    system_set: int = -1
    must_run_after: list[str] = field(default_factory=list)
    must_run_before: list[str] = field(default_factory=list)
    last_duration_us: int = 0

    @property
    def is_lambda(self) -> bool:
        return self.app_fn is not None

    def should_run(self, app: Any) -> bool:
        return self.run_condition is None or bool(self.run_condition(app))

    def run(self, app: Any) -> None:
        """Call the system and record how long it took."""
        start = time.perf_counter_ns()
        if self.app_fn is not None:
            self.app_fn(app)
        elif self.fn is not None:
            self.fn()
        self.last_duration_us = (time.perf_counter_ns() - start) // 1000


class ThreadPool:
    """Runs batches of tasks on worker threads; the calling thread takes the first task."""

    def __init__(self, num_threads: int) -> None:
        self._workers = max(0, int(num_threads))
        self._executor = (
            concurrent.futures.ThreadPoolExecutor(max_workers=self._workers)
            if self._workers
            else None
        )

    def __enter__(self) -> "ThreadPool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def _guarded(task: Callable[[], Any], where: str) -> None:
        try:
            task()
        except Exception as exc:  # a failing task must not stop the batch
            log(LogLevel.ERROR, "ThreadPool: %s task threw: %s", where, exc)

    def run_batch(self, tasks: Sequence[Callable[[], Any]]) -> None:
        """Run every task and block until all have finished.

        Exceptions raised by tasks are logged, not propagated.
        """
        if not tasks:
            return
        if self._executor is None:
            for task in tasks:
                self._guarded(task, "main-thread")
            return

        pending = {self._executor.submit(self._guarded, task, "worker") for task in tasks[1:]}
        self._guarded(tasks[0], "main-thread")
        while pending:
            _, pending = concurrent.futures.wait(pending, timeout=_DEADLOCK_WARN_SECONDS)
            if pending:
                log(
                    LogLevel.ERROR,
                    "ThreadPool: possible deadlock - remaining=%d, tasks=%d",
                    len(pending),
                    len(tasks),
                )

    def thread_count(self) -> int:
        """Worker threads plus the calling thread."""
        return self._workers + 1

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            self._workers = 0


def conflicts(a: SystemEntry, b: SystemEntry) -> bool:
    """True if both touch the same data and at least one of them writes it."""
    return any(
        da.type_id == db.type_id
        and (da.mode is AccessMode.WRITE or db.mode is AccessMode.WRITE)
        for da in a.deps
        for db in b.deps
    )


def is_exclusive(system: SystemEntry) -> bool:
    """A system runs alone if it needs the whole app or declares no function."""
    return system.is_lambda or system.fn is None


def _blocked_by_order(systems: Sequence[SystemEntry], completed: set[int], index: int) -> bool:
    system = systems[index]
    for p in range(index):
        if p in completed:
            continue
        if conflicts(system, systems[p]) or systems[p].name in system.must_run_after:
            return True
    return any(
        system.name in other.must_run_before
        for p, other in enumerate(systems)
        if p != index and p not in completed
    )


def next_batch(systems: Sequence[SystemEntry], completed: set[int], app: Any) -> list[int]:
    """Pick the indices of the next group of systems that may run together.

    Systems whose run condition is false are added to ``completed`` and skipped.
    An exclusive system is returned alone.
    """
    batch: list[int] = []
    for i, system in enumerate(systems):
        if i in completed:
            continue
        if not system.should_run(app):
            completed.add(i)
            continue
        if is_exclusive(system):
            if not batch:
                return [i]
            continue
        if any(conflicts(system, systems[j]) for j in batch):
            continue
        if _blocked_by_order(systems, completed, i):
            continue
        batch.append(i)
    return batch


def run_systems(systems: Sequence[SystemEntry], app: Any) -> None:
    """Run systems one after another in order, honouring run conditions."""
    for system in systems:
        if system.should_run(app):
            system.run(app)


def run_systems_parallel(
    systems: Sequence[SystemEntry],
    app: Any,
    pool: ThreadPool | None,
    flush: Callable[[], Any] | None = None,
) -> None:
    """Run systems in batches of non-conflicting ones.

    ``flush`` is called after every batch that ran on several threads.
    Without a pool of more than one thread, the systems run sequentially.
    """
    if not systems:
        return
    if pool is None or pool.thread_count() <= 1:
        run_systems(systems, app)
        return

    completed: set[int] = set()
    while len(completed) < len(systems):
        batch = next_batch(systems, completed, app)
        if not batch:
            break
        if len(batch) == 1:
            systems[batch[0]].run(app)
        else:
            pool.run_batch([partial(systems[i].run, app) for i in batch])
            if flush is not None:
                flush()
        completed.update(batch)


def sort_by_set(systems: list[SystemEntry], order: Sequence[int]) -> None:
    """Stable in-place sort by position of each system's set in ``order``.

    Systems without a set, or with a set not in ``order``, go last.
    """
    priority = {set_id: i for i, set_id in enumerate(order)}
    last = len(order)
    systems.sort(
        key=lambda s: priority.get(s.system_set, last) if s.system_set >= 0 else last
    )