"""Tests for filesystem.py module.

The watchdog observer is replaced with a mock; no thread is started.
"""

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from watchdog.events import DirModifiedEvent, FileClosedEvent, FileModifiedEvent, FileMovedEvent

from monobuild.filesystem import LocalFileSystem, WatchEventStream
from monobuild.types import WatchEvent, WatchEventKind


@pytest.fixture
def observer() -> MagicMock:
    """Create a mock watchdog observer sharing one watch per directory."""
    observer = MagicMock()
    watches: dict[str, MagicMock] = {}

    def schedule(handler, directory, recursive=False):
        return watches.setdefault(directory, MagicMock(path=directory))

    observer.schedule.side_effect = schedule
    return observer


@pytest.fixture
def local_fs(observer: MagicMock) -> LocalFileSystem:
    """Create a local file system using the mock observer."""
    return LocalFileSystem(observer_factory=lambda: observer)


class TestWatchEventStream:
    """Tests for WatchEventStream."""

    def test_emit_to_subscribers(self) -> None:
        """Every subscriber receives emitted events."""
        stream = WatchEventStream()
        first: list[WatchEvent] = []
        second: list[WatchEvent] = []
        stream.subscribe(first.append)
        stream.subscribe(second.append)

        event = WatchEvent(WatchEventKind.CHANGED, "/a.ts")
        stream.emit(event)

        assert first == [event]
        assert second == [event]

    def test_dispose_unsubscribes(self) -> None:
        """A disposed subscription receives nothing further."""
        stream = WatchEventStream()
        received: list[WatchEvent] = []
        subscription = stream.subscribe(received.append)

        subscription.dispose()
        subscription.dispose()
        stream.emit(WatchEvent(WatchEventKind.CHANGED, "/a.ts"))

        assert received == []
        assert len(stream) == 0


class TestGlobAndRead:
    """Tests for LocalFileSystem.glob and read_file."""

    @pytest.mark.asyncio
    async def test_glob_relative_sorted_unique(self, tmp_path: Path) -> None:
        """Matches are relative, sorted per pattern and yielded once."""
        (tmp_path / "src" / "nested").mkdir(parents=True)
        for name in ["src/b.ts", "src/a.ts", "src/nested/c.ts", "src/readme.md"]:
            (tmp_path / name).write_text("")

        fs = LocalFileSystem()
        matches = [p async for p in fs.glob(["src/*.ts", "src/**/*.ts"], cwd=tmp_path)]

        assert matches == ["src/a.ts", "src/b.ts", "src/nested/c.ts"]

    @pytest.mark.asyncio
    async def test_glob_skips_directories(self, tmp_path: Path) -> None:
        """Directories matching a pattern are not yielded."""
        (tmp_path / "pages").mkdir()
        (tmp_path / "pages" / "home.ts").write_text("")
        fs = LocalFileSystem()
        assert [p async for p in fs.glob("*", cwd=tmp_path)] == []

    @pytest.mark.asyncio
    async def test_read_file(self, tmp_path: Path) -> None:
        """read_file returns the decoded contents."""
        path = tmp_path / "tsconfig.json"
        path.write_text('{"compilerOptions": {}}', encoding="utf-8")
        assert await LocalFileSystem().read_file(path) == '{"compilerOptions": {}}'


class TestLocalWatcher:
    """Tests for LocalWatcher on top of the observer."""

    @pytest.mark.asyncio
    async def test_change_delivered_on_loop(
        self, tmp_path: Path, local_fs: LocalFileSystem, observer: MagicMock
    ) -> None:
        """Events for the watched file reach subscribers via the event loop."""
        path = str(tmp_path / "a.ts")
        watcher = local_fs.watch(path)
        received: list[WatchEvent] = []
        watcher.subscribe(received.append)

        handler = observer.schedule.call_args.args[0]
        handler.dispatch(FileModifiedEvent(path))
        handler.dispatch(FileModifiedEvent(str(tmp_path / "other.ts")))
        handler.dispatch(DirModifiedEvent(str(tmp_path)))
        handler.dispatch(FileClosedEvent(path))
        await asyncio.sleep(0)

        assert received == [WatchEvent(WatchEventKind.CHANGED, path)]
        observer.start.assert_called_once()
        assert observer.schedule.call_args.args[1] == str(tmp_path)

    @pytest.mark.asyncio
    async def test_move_onto_watched_file(
        self, tmp_path: Path, local_fs: LocalFileSystem, observer: MagicMock
    ) -> None:
        """Replacing the file by a rename counts as a change."""
        path = str(tmp_path / "a.ts")
        watcher = local_fs.watch(path)
        received: list[WatchEvent] = []
        watcher.subscribe(received.append)

        handler = observer.schedule.call_args.args[0]
        handler.dispatch(FileMovedEvent(str(tmp_path / ".a.ts.tmp"), path))
        await asyncio.sleep(0)

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_open_failure_reported_as_error(
        self, tmp_path: Path, local_fs: LocalFileSystem, observer: MagicMock
    ) -> None:
        """A watch that cannot be opened is reported as an ERRORED event."""
        observer.schedule.side_effect = FileNotFoundError("no such directory")
        watcher = local_fs.watch(str(tmp_path / "missing" / "a.ts"))
        received: list[WatchEvent] = []
        watcher.subscribe(received.append)

        assert received == []
        await asyncio.sleep(0)

        assert len(received) == 1
        assert received[0].kind is WatchEventKind.ERRORED
        assert isinstance(received[0].error, FileNotFoundError)

    @pytest.mark.asyncio
    async def test_close_unschedules_last_handler(
        self, tmp_path: Path, local_fs: LocalFileSystem, observer: MagicMock
    ) -> None:
        """Watchers of one directory share a watch, dropped with the last one."""
        first = local_fs.watch(str(tmp_path / "a.ts"))
        second = local_fs.watch(str(tmp_path / "b.ts"))

        first.close()
        observer.remove_handler_for_watch.assert_called_once()
        observer.unschedule.assert_not_called()

        second.close()
        second.close()
        observer.unschedule.assert_called_once()

    @pytest.mark.asyncio
    async def test_closed_watcher_is_silent(
        self, tmp_path: Path, local_fs: LocalFileSystem, observer: MagicMock
    ) -> None:
        """Events arriving after close are dropped."""
        path = str(tmp_path / "a.ts")
        watcher = local_fs.watch(path)
        received: list[WatchEvent] = []
        watcher.subscribe(received.append)
        handler = observer.schedule.call_args.args[0]

        watcher.close()
        handler.dispatch(FileModifiedEvent(path))
        await asyncio.sleep(0)

        assert received == []

    def test_close_stops_observer(self, tmp_path: Path, local_fs: LocalFileSystem, observer) -> None:
        """Closing the file system stops and joins the observer thread."""
        local_fs.watch(str(tmp_path / "a.ts"))
        local_fs.close()
        observer.stop.assert_called_once()
        observer.join.assert_called_once()
