"""Shared fixtures and in-memory collaborators for monobuild tests.

The fakes record every call so tests can assert on the exact sequence of
bundler invocations, watcher openings and reporter notifications.
"""

import asyncio
import fnmatch
import json
import logging
import textwrap
from collections.abc import AsyncIterator, Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest

from monobuild.build.builder import Builder
from monobuild.bundler import BundlerInvocationError
from monobuild.factory.common import BuildCall, BuildContext
from monobuild.filesystem import Subscription, WatchEventStream, WatchListener
from monobuild.types import Env, WatchEvent, WatchEventKind
from monobuild.workspace import Package, load_package

MAIN_TARGET_CONFIG = """
from monobuild.factory import define_input, define_output, define_target, register_targets

register_targets(
    define_target(
        "main",
        define_input("main", input="src/index.ts"),
        [
            define_output("esm", dir="dist", format="esm"),
            define_output("cjs", dir="dist/cjs", format="cjs"),
        ],
    )
)
"""


class FakeWatcher:
    """Watcher whose events are emitted by the test."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.stream = WatchEventStream()
        self.closed = False

    def subscribe(self, listener: WatchListener) -> Subscription:
        return self.stream.subscribe(listener)

    def close(self) -> None:
        self.closed = True
        self.stream.clear()

    def emit_change(self) -> None:
        self.stream.emit(WatchEvent(WatchEventKind.CHANGED, self.path))

    def emit_error(self, error: BaseException | None = None) -> None:
        self.stream.emit(
            WatchEvent(WatchEventKind.ERRORED, self.path, error or OSError("watch failed"))
        )


class FakeFileSystem:
    """In-memory file system matching ``files`` with fnmatch patterns."""

    def __init__(self, files: Sequence[str] = (), contents: dict[str, str] | None = None) -> None:
        self.files = list(files)
        self.contents = contents or {}
        self.opened: list[FakeWatcher] = []

    async def glob(self, patterns: str | Sequence[str], *, cwd: Path) -> AsyncIterator[str]:
        if isinstance(patterns, str):
            patterns = [patterns]
        seen: set[str] = set()
        for pattern in patterns:
            for path in self.files:
                if fnmatch.fnmatch(path, pattern) and path not in seen:
                    seen.add(path)
                    yield path

    async def read_file(self, path: str | Path, encoding: str = "utf-8") -> str:
        return self.contents[str(path)]

    def watch(self, path: str) -> FakeWatcher:
        watcher = FakeWatcher(path)
        self.opened.append(watcher)
        return watcher

    def live_watchers(self) -> dict[str, FakeWatcher]:
        return {w.path: w for w in self.opened if not w.closed}


class FakeBundle:
    """Bundle handle recording writes on its bundler."""

    def __init__(self, bundler: "FakeBundler", input_options: dict[str, Any]) -> None:
        self.bundler = bundler
        self.input_options = input_options
        self.written: list[dict[str, Any]] = []
        self.closed = False

    async def write(self, output_options: Any) -> None:
        self.bundler.calls.append(("write", self.input_options.get("input"), dict(output_options)))
        await asyncio.sleep(0)
        if self.bundler.fail_on_write:
            raise BundlerInvocationError("write failed", exit_code=1)
        self.written.append(dict(output_options))

    async def watch_files(self) -> Sequence[str]:
        return list(self.bundler.watch_files)

    async def close(self) -> None:
        self.closed = True
        self.bundler.calls.append(("close", self.input_options.get("input")))
        if self.bundler.on_close is not None:
            self.bundler.on_close()


class FakeBundler:
    """Bundler recording every call.

    Attributes:
        watch_files: Files reported by every bundle.
        fail_on_bundle: Make ``bundle()`` raise.
        fail_on_write: Make ``write()`` raise.
        on_bundle: Called after each bundle is created.
        on_close: Called after each bundle is closed.
    """

    def __init__(self, watch_files: Sequence[str] = ()) -> None:
        self.watch_files = list(watch_files)
        self.calls: list[tuple[Any, ...]] = []
        self.bundles: list[FakeBundle] = []
        self.cwds: list[Path] = []
        self.fail_on_bundle = False
        self.fail_on_write = False
        self.on_bundle: Callable[[], None] | None = None
        self.on_close: Callable[[], None] | None = None

    async def bundle(self, input_options: Any, *, cwd: Path) -> FakeBundle:
        self.calls.append(("bundle", input_options.get("input")))
        self.cwds.append(cwd)
        if self.fail_on_bundle:
            raise BundlerInvocationError("bundle failed")
        bundle = FakeBundle(self, dict(input_options))
        self.bundles.append(bundle)
        if self.on_bundle is not None:
            self.on_bundle()
        return bundle


class RecordingReporter:
    """Reporter keeping notifications in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []
        self.errors: list[tuple[str, BaseException]] = []
        self.active = 0
        self.max_active = 0

    def package_build_started(self, package: Package) -> None:
        self.events.append(("started", package.name))
        self.active += 1
        self.max_active = max(self.max_active, self.active)

    def package_build_succeeded(self, package: Package) -> None:
        self.events.append(("succeeded", package.name))
        self.active -= 1

    def package_build_failed(self, package: Package) -> None:
        self.events.append(("failed", package.name))
        self.active -= 1

    def log_error(self, module_name: str, error: BaseException) -> None:
        self.errors.append((module_name, error))

    def count(self, kind: str, name: str) -> int:
        return self.events.count((kind, name))


@pytest.fixture(autouse=True)
def clear_target_cache() -> None:
    """Targets are cached for the process lifetime; isolate tests."""
    Builder.invalidate_targets()


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """CLI commands configure the monobuild logger; undo it after each test."""
    yield
    logger = logging.getLogger("monobuild")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def reporter() -> RecordingReporter:
    """Create a recording reporter."""
    return RecordingReporter()


@pytest.fixture
def call(reporter: RecordingReporter) -> BuildCall:
    """Create a development build call."""
    return BuildCall(reporter=reporter)


@pytest.fixture
def fake_fs() -> FakeFileSystem:
    """Create an empty in-memory file system."""
    return FakeFileSystem()


@pytest.fixture
def fake_bundler() -> FakeBundler:
    """Create a recording bundler."""
    return FakeBundler()


@pytest.fixture
def context(tmp_path: Path, reporter: RecordingReporter, fake_fs: FakeFileSystem) -> BuildContext:
    """Create a production build context rooted at tmp_path."""
    return BuildContext(
        reporter=reporter,
        cwd=tmp_path,
        env=Env.PRODUCTION,
        module_name="pkg",
        is_watch=False,
        is_debug=False,
        fs=fake_fs,
    )


@pytest.fixture
def write_package() -> Callable[..., Package]:
    """Return a helper writing a package directory and loading it."""

    def write(
        directory: Path,
        name: str,
        build_config: str | None = None,
        **manifest: Any,
    ) -> Package:
        directory.mkdir(parents=True, exist_ok=True)
        (directory / "package.json").write_text(json.dumps({"name": name, **manifest}))
        if build_config is not None:
            (directory / "build.config.py").write_text(textwrap.dedent(build_config))
        return load_package(directory)

    return write


@pytest.fixture
def main_config() -> str:
    """Build config declaring one target with esm and cjs outputs."""
    return MAIN_TARGET_CONFIG


@pytest.fixture
def main_package(tmp_path: Path, write_package: Callable[..., Package]) -> Package:
    """Create a package with one target and two outputs."""
    return write_package(tmp_path / "main-pkg", "main-pkg", MAIN_TARGET_CONFIG)
