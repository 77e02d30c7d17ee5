"""File system access for builds: glob, read and watch.

This module handles:
- The file system interface used by build tasks, bundlers and the builder
- Watchers exposing a cancellable subscription to a tagged event stream
- A local implementation on top of ``watchdog``

Watchdog delivers events on its observer thread; local watchers hand them to
the event loop that was running when the watcher was opened.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Callable, Sequence
from pathlib import Path
from typing import Protocol

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

from monobuild.types import WatchEvent, WatchEventKind

logger = logging.getLogger(__name__)

WatchListener = Callable[[WatchEvent], None]

CHANGE_EVENT_TYPES = frozenset(
    {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}
)


class Subscription(Protocol):
    def dispose(self) -> None: ...


class Watcher(Protocol):
    """Watches a single file."""

    def subscribe(self, listener: WatchListener) -> Subscription: ...

    def close(self) -> None: ...


class FileSystem(Protocol):
    """File system collaborator."""

    def glob(self, patterns: str | Sequence[str], *, cwd: Path) -> AsyncIterator[str]: ...

    async def read_file(self, path: str | Path, encoding: str = "utf-8") -> str: ...

    def watch(self, path: str) -> Watcher: ...


class _StreamSubscription:
    def __init__(self, stream: WatchEventStream, listener: WatchListener) -> None:
        self._stream = stream
        self._listener = listener

    def dispose(self) -> None:
        self._stream.unsubscribe(self._listener)


class WatchEventStream:
    """Fan-out of watch events to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[WatchListener] = []

    def subscribe(self, listener: WatchListener) -> Subscription:
        self._listeners.append(listener)
        return _StreamSubscription(self, listener)

    def unsubscribe(self, listener: WatchListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: WatchEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)


class _PathEventHandler(FileSystemEventHandler):
    """Forwards watchdog events concerning one file to its watcher."""

    def __init__(self, watcher: LocalWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in CHANGE_EVENT_TYPES:
            return
        paths = {os.path.abspath(os.fsdecode(event.src_path))}
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.add(os.path.abspath(os.fsdecode(dest_path)))
        if self._watcher.abspath in paths:
            self._watcher.dispatch(WatchEvent(WatchEventKind.CHANGED, self._watcher.path))


class LocalWatcher:
    """Watcher for one local file, backed by a shared watchdog observer."""

    def __init__(self, path: str, fs: LocalFileSystem) -> None:
        self.path = path
        self.abspath = os.path.abspath(path)
        self._fs = fs
        self._stream = WatchEventStream()
        self._handler = _PathEventHandler(self)
        self._watch: ObservedWatch | None = None
        self._error: OSError | None = None
        self._closed = False
        try:
            self._loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

        try:
            self._watch = fs.schedule(self._handler, os.path.dirname(self.abspath))
        except OSError as e:
            logger.debug("Cannot watch %s: %s", path, e)
            self._error = e

    def subscribe(self, listener: WatchListener) -> Subscription:
        """Subscribe to change and error events.

        A watcher that failed to open reports the failure to each new
        subscriber as an ``ERRORED`` event, delivered asynchronously.
        """
        subscription = self._stream.subscribe(listener)
        if self._error is not None:
            event = WatchEvent(WatchEventKind.ERRORED, self.path, self._error)
            if self._loop is not None and not self._loop.is_closed():
                self._loop.call_soon(self._stream.emit, event)
            else:
                self._stream.emit(event)
        return subscription

    def dispatch(self, event: WatchEvent) -> None:
        """Deliver an event to subscribers on the owning event loop."""
        if self._closed:
            return
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._stream.emit, event)
        else:
            self._stream.emit(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream.clear()
        if self._watch is not None:
            self._fs.unschedule(self._handler, self._watch)
            self._watch = None


class LocalFileSystem:
    """Local file system with watchdog-based watchers.

    Args:
        observer_factory: Creates the watchdog observer; the observer thread
            is started on first watch.
    """

    def __init__(self, observer_factory: Callable[[], BaseObserver] = Observer) -> None:
        self._observer_factory = observer_factory
        self._observer: BaseObserver | None = None
        self._watch_refs: dict[ObservedWatch, int] = {}

    async def glob(self, patterns: str | Sequence[str], *, cwd: Path) -> AsyncIterator[str]:
        """Yield files matching ``patterns``, relative to ``cwd``.

        Matches of each pattern are sorted; a file matched by several patterns
        is yielded once.
        """
        if isinstance(patterns, str):
            patterns = [patterns]
        seen: set[str] = set()
        for pattern in patterns:
            matches = await asyncio.to_thread(_glob_files, cwd, pattern)
            for match in matches:
                if match not in seen:
                    seen.add(match)
                    yield match

    async def read_file(self, path: str | Path, encoding: str = "utf-8") -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding=encoding)

    def watch(self, path: str) -> LocalWatcher:
        return LocalWatcher(path, self)

    def schedule(self, handler: FileSystemEventHandler, directory: str) -> ObservedWatch:
        """Register ``handler`` for events in ``directory`` (non-recursive)."""
        observer = self._get_observer()
        watch = observer.schedule(handler, directory, recursive=False)
        self._watch_refs[watch] = self._watch_refs.get(watch, 0) + 1
        return watch

    def unschedule(self, handler: FileSystemEventHandler, watch: ObservedWatch) -> None:
        """Remove ``handler``; the directory watch is dropped with its last handler."""
        if self._observer is None:
            return
        count = self._watch_refs.get(watch, 0) - 1
        if count > 0:
            self._watch_refs[watch] = count
            self._observer.remove_handler_for_watch(handler, watch)
            return
        self._watch_refs.pop(watch, None)
        try:
            self._observer.unschedule(watch)
        except KeyError:
            logger.debug("Watch already removed: %s", watch.path)

    def close(self) -> None:
        """Stop the observer thread."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        self._watch_refs.clear()

    def _get_observer(self) -> BaseObserver:
        if self._observer is None:
            self._observer = self._observer_factory()
            self._observer.start()
        return self._observer


def _glob_files(cwd: Path, pattern: str) -> list[str]:
    return sorted(
        path.relative_to(cwd).as_posix() for path in cwd.glob(pattern) if path.is_file()
    )


__all__ = [
    "FileSystem",
    "LocalFileSystem",
    "LocalWatcher",
    "Subscription",
    "WatchEventStream",
    "WatchListener",
    "Watcher",
]
