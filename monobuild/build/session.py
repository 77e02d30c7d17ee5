"""Build sessions over several packages.

This module handles:
- Building a set of packages concurrently, bounded by settings
- Watch mode: rebuilding a package when one of its files changes, with
  debouncing and cancellation of a superseded in-flight build
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from monobuild.build.builder import Builder
from monobuild.build.cancel import CancelToken
from monobuild.config import Settings, get_settings

if TYPE_CHECKING:
    from monobuild.bundler import Bundler
    from monobuild.factory.common import BuildCall
    from monobuild.filesystem import FileSystem
    from monobuild.workspace import Package

logger = logging.getLogger(__name__)


class BuildSession:
    """One builder per package plus the watch/rebuild loop.

    Args:
        packages: Packages of the session, in workspace order.
        fs: File system shared by the builders.
        bundler: Bundler shared by the builders.
        settings: Optional settings; uses defaults if not provided.
    """

    def __init__(
        self,
        packages: Sequence[Package],
        fs: FileSystem,
        bundler: Bundler,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.builders: dict[str, Builder] = {
            package.name: Builder(package, fs, bundler) for package in packages
        }
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._running: dict[str, asyncio.Task[bool]] = {}
        self._tokens: dict[str, CancelToken] = {}

    async def build_all(
        self,
        call: BuildCall,
        cancel: CancelToken | None = None,
    ) -> dict[str, bool]:
        """Build every package.

        Returns:
            Success of each package build, by package name.
        """
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_builds)

        async def run(builder: Builder) -> bool:
            async with semaphore:
                return await builder.build(call, cancel)

        results = await asyncio.gather(*(run(builder) for builder in self.builders.values()))
        return dict(zip(self.builders, results, strict=True))

    async def watch(self, call: BuildCall, stop: asyncio.Event | None = None) -> None:
        """Build every package, then rebuild packages as their files change.

        Runs until ``stop`` is set (or forever), then closes all watchers.
        """
        stop = stop or asyncio.Event()
        try:
            await self.build_all(call)
            for name, builder in self.builders.items():
                builder.start_watching(
                    lambda path, name=name: self._on_file_change(name, path, call)
                )
            logger.info("Watching %d package(s)", len(self.builders))
            await stop.wait()
        finally:
            await self.close()

    async def close(self) -> None:
        """Stop watching, drop pending rebuilds and abort running ones."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        for token in self._tokens.values():
            token.cancel("Watch session closed")
        running = list(self._running.values())
        if running:
            await asyncio.wait(running)
        self._running.clear()
        self._tokens.clear()
        for builder in self.builders.values():
            builder.stop_watching()

    def _on_file_change(self, name: str, path: str, call: BuildCall) -> None:
        logger.debug("Changed: %s (%s)", path, name)
        timer = self._timers.pop(name, None)
        if timer is not None:
            timer.cancel()
        loop = asyncio.get_running_loop()
        self._timers[name] = loop.call_later(
            self.settings.watch_debounce_ms / 1000, self._start_rebuild, name, call
        )

    def _start_rebuild(self, name: str, call: BuildCall) -> None:
        self._timers.pop(name, None)
        previous = self._running.get(name)
        previous_token = self._tokens.get(name)
        if previous_token is not None:
            previous_token.cancel("Superseded by a newer change")

        token = CancelToken()
        self._tokens[name] = token
        task = asyncio.ensure_future(self._rebuild(name, call, token, previous))
        self._running[name] = task
        task.add_done_callback(lambda done, name=name: self._on_rebuild_done(name, done))

    async def _rebuild(
        self,
        name: str,
        call: BuildCall,
        token: CancelToken,
        previous: asyncio.Task[bool] | None,
    ) -> bool:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        if token.cancelled:
            return False
        logger.info("Rebuilding %s", name)
        return await self.builders[name].build(call, token)

    def _on_rebuild_done(self, name: str, task: asyncio.Task[bool]) -> None:
        if self._running.get(name) is task:
            del self._running[name]
            self._tokens.pop(name, None)


__all__ = ["BuildSession"]
