"""Build task registry.

Build-config modules register target-producing tasks as a side effect of
being loaded. The builder activates a fresh collector, imports the module and
restores the previous state afterwards, whatever the outcome. Registering a
task while no build config is being loaded is a programmer error.

The active collector lives in a context variable rather than a bare global.
Loading is additionally serialized process-wide, so one package's tasks can
never be attributed to another package.
"""

from __future__ import annotations

import asyncio
import hashlib
import importlib.util
import logging
import sys
import weakref
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from monobuild.factory.common import BuildTask

logger = logging.getLogger(__name__)


class RegistrationOutsideBuildError(Exception):
    """Raised when a build task is registered outside a build-config load."""

    def __init__(
        self,
        message: str = "build configs must be loaded by the builder",
        code: str = "registration_outside_build",
    ) -> None:
        super().__init__(message)
        self.code = code


class BuildConfigLoadError(Exception):
    """Raised when a build-config module cannot be imported."""

    def __init__(self, path: Path, message: str, code: str = "build_config_error") -> None:
        super().__init__(f"Failed to load build config {path}: {message}")
        self.path = path
        self.code = code


class TaskCollector:
    """Ordered list of tasks registered during one build-config load."""

    def __init__(self) -> None:
        self._tasks: list[BuildTask] = []

    def add(self, task: BuildTask) -> None:
        self._tasks.append(task)

    @property
    def tasks(self) -> list[BuildTask]:
        return list(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)


_current_collector: ContextVar[TaskCollector | None] = ContextVar(
    "monobuild_task_collector", default=None
)
_load_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock] = (
    weakref.WeakKeyDictionary()
)


def current_collector() -> TaskCollector | None:
    """Return the collector of the build-config load in progress, if any."""
    return _current_collector.get()


def add_build_task(task: BuildTask) -> BuildTask:
    """Register a build task with the build config being loaded.

    Returns the task unchanged, so this can be used as a decorator.

    Raises:
        RegistrationOutsideBuildError: If no build config is being loaded.
    """
    collector = current_collector()
    if collector is None:
        raise RegistrationOutsideBuildError()
    collector.add(task)
    return task


@contextmanager
def collect_tasks() -> Iterator[TaskCollector]:
    """Activate a fresh collector for the duration of the block."""
    collector = TaskCollector()
    token = _current_collector.set(collector)
    try:
        yield collector
    finally:
        _current_collector.reset(token)


def _module_name(path: Path) -> str:
    digest = hashlib.sha256(str(path).encode("utf-8")).hexdigest()[:12]
    return f"monobuild_config_{digest}"


def import_build_config(path: Path) -> None:
    """Import a build-config module from its file path.

    The module is executed on every call; a previously imported copy is
    discarded first.

    Raises:
        BuildConfigLoadError: If the path cannot be imported as a module.
    """
    name = _module_name(path)
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise BuildConfigLoadError(path, "not an importable Python file")

    module = importlib.util.module_from_spec(spec)
    sys.modules.pop(name, None)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(name, None)
        raise


def _get_load_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _load_locks.get(loop)
    if lock is None:
        lock = _load_locks[loop] = asyncio.Lock()
    return lock


async def load_build_config(path: Path) -> list[BuildTask]:
    """Load a build-config module and return the tasks it registered.

    Loads are serialized across the process. The import itself runs in a
    worker thread with the collector context propagated.

    Returns:
        Registered tasks, in registration order.
    """
    async with _get_load_lock():
        with collect_tasks() as collector:
            logger.debug("Loading build config: %s", path)
            await asyncio.to_thread(import_build_config, path)
        logger.debug("Build config %s registered %d task(s)", path, len(collector))
        return collector.tasks


__all__ = [
    "BuildConfigLoadError",
    "RegistrationOutsideBuildError",
    "TaskCollector",
    "add_build_task",
    "collect_tasks",
    "current_collector",
    "import_build_config",
    "load_build_config",
]
