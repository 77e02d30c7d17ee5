"""Per-package builder.

This module handles:
- Resolving a package's build targets from its build-config module (memoized)
- Driving the bundler for each target and writing every output
- Collecting the files each bundle depends on
- Keeping one file watcher per dependency while watching, reconciled by set
  difference after every successful build

Build failures never propagate out of ``Builder.build()``: they are reported,
logged, and leave the watched files of the last successful build in place.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from monobuild.build.registry import load_build_config
from monobuild.factory.common import BuildCall, BuildContext, BuildTarget
from monobuild.types import WatchEvent, WatchEventKind

if TYPE_CHECKING:
    from monobuild.build.cancel import CancelToken
    from monobuild.bundler import BundleHandle, Bundler
    from monobuild.filesystem import FileSystem, Subscription, Watcher
    from monobuild.factory.common import BuildTask
    from monobuild.workspace import Package

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str], None]

EMPTY_SET: frozenset[str] = frozenset()


@dataclass
class LiveWatcher:
    """An open watcher and the builder's subscription to it."""

    watcher: Watcher
    subscription: Subscription

    def dispose(self) -> None:
        self.subscription.dispose()
        self.watcher.close()


class Builder:
    """Builds one package and keeps its file watchers in sync.

    Args:
        package: The package to build.
        fs: File system used by build tasks and for watching.
        bundler: Bundler producing the package's artifacts.
    """

    # Resolved targets per package key, for the process lifetime
    _targets: ClassVar[dict[str, tuple[BuildTarget, ...]]] = {}

    def __init__(self, package: Package, fs: FileSystem, bundler: Bundler) -> None:
        self.package = package
        self.fs = fs
        self.bundler = bundler
        self._watchers: dict[str, LiveWatcher] = {}
        self._watch_files: frozenset[str] = EMPTY_SET
        self._on_file_change: ChangeCallback | None = None
        self._is_watching = False

    @property
    def is_watching(self) -> bool:
        return self._is_watching

    @property
    def watch_files(self) -> frozenset[str]:
        """Files of the last successful build."""
        return self._watch_files

    @property
    def watchers(self) -> dict[str, LiveWatcher]:
        """Live watchers by path (a copy)."""
        return dict(self._watchers)

    async def build(self, call: BuildCall, cancel: CancelToken | None = None) -> bool:
        """Build every target of the package, in order.

        Cancellation is polled before each bundler invocation and before each
        output write. Outputs already written are left on disk.

        Args:
            call: Reporter and build options.
            cancel: Optional cancellation token.

        Returns:
            True if the build succeeded, False if it failed or was aborted.
        """
        package = self.package
        reporter = call.reporter
        bundle: BundleHandle | None = None

        reporter.package_build_started(package)
        try:
            watch_files: set[str] = set()
            targets = await self.get_targets(call)
            for target in targets:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                logger.debug("Bundling %s:%s", package.name, target.name)
                bundle = await self.bundler.bundle(target.input, cwd=package.directory)
                for output in target.outputs:
                    if cancel is not None:
                        cancel.raise_if_cancelled()
                    await bundle.write(output)

                watch_files.update(await bundle.watch_files())

                # Closed once, even if close itself fails
                handle, bundle = bundle, None
                await handle.close()

            reporter.package_build_succeeded(package)
            self._set_watch_files(frozenset(watch_files))
            return True
        except Exception as e:
            reporter.package_build_failed(package)
            reporter.log_error(package.name, e)
            logger.error("Build of %s failed: %s", package.name, e, exc_info=call.is_debug)
            return False
        finally:
            if bundle is not None:
                await self._close_bundle(bundle)

    async def get_targets(self, call: BuildCall) -> tuple[BuildTarget, ...]:
        """Return the package's targets, loading the build config on first use.

        All tasks run concurrently; the result keeps registration order.
        """
        package = self.package
        targets = Builder._targets.get(package.key)
        if targets is not None:
            return targets

        tasks: list[BuildTask] = []
        if package.build_config_path is not None:
            tasks = await load_build_config(package.build_config_path)

        context = BuildContext.from_call(
            call,
            cwd=package.directory,
            module_name=package.name,
            fs=self.fs,
        )
        results = await asyncio.gather(*(task(context) for task in tasks))
        targets = tuple(target for result in results for target in result)
        Builder._targets[package.key] = targets
        logger.debug("Resolved %d target(s) for %s", len(targets), package.name)
        return targets

    @classmethod
    def invalidate_targets(cls, package: Package | None = None) -> None:
        """Drop cached targets of ``package``, or of every package."""
        if package is None:
            cls._targets.clear()
        else:
            cls._targets.pop(package.key, None)

    def start_watching(self, callback: ChangeCallback) -> None:
        """Open a watcher per file of the last successful build.

        ``callback`` receives the path of every changed file. No-op if the
        builder is already watching.
        """
        if self._is_watching:
            return

        self._on_file_change = callback
        for path in sorted(self._watch_files):
            self._open_watcher(path)
        self._is_watching = True

    def stop_watching(self) -> None:
        """Close every watcher and forget the watched files. No-op if idle."""
        if not self._is_watching:
            return

        for live in self._watchers.values():
            live.dispose()
        self._watchers.clear()
        self._watch_files = EMPTY_SET
        self._on_file_change = None
        self._is_watching = False

    def _set_watch_files(self, next_watch_files: frozenset[str]) -> None:
        if not self._is_watching:
            self._watch_files = next_watch_files
            return

        for path in sorted(self._watch_files - next_watch_files):
            self._close_watcher(path)
        # New paths, and paths whose watcher was dropped after an error
        for path in sorted(next_watch_files):
            if path not in self._watchers:
                self._open_watcher(path)

        self._watch_files = next_watch_files

    def _open_watcher(self, path: str) -> None:
        watcher = self.fs.watch(path)
        subscription = watcher.subscribe(functools.partial(self._on_watch_event, watcher))
        self._watchers[path] = LiveWatcher(watcher, subscription)

    def _close_watcher(self, path: str) -> None:
        live = self._watchers.pop(path, None)
        if live is not None:
            live.dispose()

    def _on_watch_event(self, watcher: Watcher, event: WatchEvent) -> None:
        live = self._watchers.get(event.path)
        if live is None or live.watcher is not watcher:
            # Stale event from a watcher that was already closed
            return

        if event.kind is WatchEventKind.ERRORED:
            logger.debug("Dropping watcher for %s: %s", event.path, event.error)
            del self._watchers[event.path]
            live.dispose()
        elif self._on_file_change is not None:
            self._on_file_change(event.path)

    async def _close_bundle(self, bundle: BundleHandle) -> None:
        try:
            await bundle.close()
        except Exception:
            logger.exception("Failed to close bundle of %s", self.package.name)


__all__ = ["Builder", "ChangeCallback", "LiveWatcher"]
