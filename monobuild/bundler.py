"""Bundler interface and command-line bundler adapter.

This module handles:
- The interface the builder drives (bundle -> write outputs -> watch files -> close)
- Composing esbuild-compatible command lines from input and output options
- Executing the bundler with asyncio subprocesses in the package directory
- Plugin hooks and the watched-file list of a bundle
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import shlex
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol

from monobuild.filesystem import FileSystem, LocalFileSystem

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = ("esbuild",)

# Keep only the end of bundler output in error messages
ERROR_OUTPUT_TAIL = 2000


class BundlerInvocationError(Exception):
    """Raised when the bundler fails to produce or write a bundle."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "bundler_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


class BundleHandle(Protocol):
    """A bundle produced from one input."""

    async def write(self, output_options: Mapping[str, Any]) -> None: ...

    async def watch_files(self) -> Sequence[str]: ...

    async def close(self) -> None: ...


class Bundler(Protocol):
    """Produces bundle handles from input options."""

    async def bundle(self, input_options: Mapping[str, Any], *, cwd: Path) -> BundleHandle: ...


def normalize_entries(entries: Any) -> dict[str, str]:
    """Normalize the ``input`` option to a mapping of entry name to path.

    Accepts a single path, a list of paths or a mapping of name to path.
    Names of unnamed entries are the file stem.

    Raises:
        ValueError: If the option is missing or of an unsupported type.
    """
    if isinstance(entries, str):
        return {Path(entries).stem: entries}
    if isinstance(entries, Mapping):
        return {str(name): str(path) for name, path in entries.items()}
    if isinstance(entries, list | tuple):
        return {Path(path).stem: str(path) for path in entries}
    raise ValueError(f"Unsupported input entries: {entries!r}")


def compose_bundle_command(
    command: Sequence[str],
    input_options: Mapping[str, Any],
    output_options: Mapping[str, Any],
) -> list[str]:
    """Compose the bundler command line for one output.

    Args:
        command: Bundler executable and fixed arguments.
        input_options: Resolved input options (``input``, ``external``,
            ``platform``, ``args``...).
        output_options: Resolved output options (``dir`` or ``file``,
            ``format``, ``minify``, ``sourcemap``, ``args``...).

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = list(command)

    entries = normalize_entries(input_options.get("input"))
    if isinstance(input_options.get("input"), Mapping):
        cmd.extend(f"{name}={path}" for name, path in entries.items())
    else:
        cmd.extend(entries.values())

    if input_options.get("bundle", True):
        cmd.append("--bundle")

    if input_options.get("platform"):
        cmd.append(f"--platform={input_options['platform']}")

    for external in input_options.get("external", []):
        cmd.append(f"--external:{external}")

    # Output location: a single file takes precedence over a directory
    if output_options.get("file"):
        cmd.append(f"--outfile={output_options['file']}")
    elif output_options.get("dir"):
        cmd.append(f"--outdir={output_options['dir']}")

    if output_options.get("format"):
        cmd.append(f"--format={output_options['format']}")

    if output_options.get("minify"):
        cmd.append("--minify")

    if output_options.get("sourcemap"):
        cmd.append("--sourcemap")

    cmd.extend(input_options.get("args", []))
    cmd.extend(output_options.get("args", []))
    return cmd


async def _call_hook(plugin: Any, hook: str, *args: Any) -> None:
    method = getattr(plugin, hook, None)
    if method is None:
        return
    result = method(*args)
    if inspect.isawaitable(result):
        await result


class CommandBundle:
    """Bundle handle backed by an esbuild-compatible command-line bundler."""

    def __init__(
        self,
        command: Sequence[str],
        input_options: Mapping[str, Any],
        cwd: Path,
        fs: FileSystem,
        timeout: float | None = None,
    ) -> None:
        self.command = list(command)
        self.input_options = dict(input_options)
        self.cwd = cwd
        self.timeout = timeout
        self.fs = fs
        self.plugins: list[Any] = list(self.input_options.pop("plugins", []))
        self._extra_watch_files: set[str] = set()
        self._closed = False

    def add_watch_file(self, path: str | Path) -> None:
        """Add a file to the watched-file list (used by plugins)."""
        self._extra_watch_files.add(str(self.cwd / path))

    async def start(self) -> None:
        for plugin in self.plugins:
            await _call_hook(plugin, "build_start", self, self.input_options)

    async def write(self, output_options: Mapping[str, Any]) -> None:
        """Run the bundler for one output.

        Raises:
            BundlerInvocationError: If the bundle is closed, the bundler cannot
                be started, times out or exits with a non-zero code.
        """
        if self._closed:
            raise BundlerInvocationError("Bundle is closed", code="bundle_closed")

        options = dict(output_options)
        plugins = [*self.plugins, *options.pop("plugins", [])]
        cmd = compose_bundle_command(self.command, self.input_options, options)
        cmd_str = shlex.join(cmd)
        logger.info("Executing bundler: %s", cmd_str)
        logger.debug("Working directory: %s", self.cwd)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=self.cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise BundlerInvocationError(
                f"Failed to execute bundler: {e}",
                code="execution_error",
            ) from e

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise BundlerInvocationError(
                f"Bundler timed out after {self.timeout} seconds",
                exit_code=-1,
                code="bundler_timeout",
            ) from e

        output = stdout.decode("utf-8", errors="replace") if stdout else ""
        if output:
            logger.debug("Bundler output:\n%s", output)
        if process.returncode != 0:
            raise BundlerInvocationError(
                f"Bundler failed with exit code {process.returncode}: "
                f"{output[-ERROR_OUTPUT_TAIL:].strip()}",
                exit_code=process.returncode,
            )

        for plugin in plugins:
            await _call_hook(plugin, "write_bundle", self, options)

    async def watch_files(self) -> Sequence[str]:
        """Return the files this bundle depends on.

        These are the entry files, the files matching the input's ``watch``
        globs and the files added by plugins.
        """
        files = {
            str(self.cwd / path)
            for path in normalize_entries(self.input_options.get("input")).values()
        }
        patterns = self.input_options.get("watch", [])
        if patterns:
            async for path in self.fs.glob(patterns, cwd=self.cwd):
                files.add(str(self.cwd / path))
        files.update(self._extra_watch_files)
        return sorted(files)

    async def close(self) -> None:
        self._closed = True


class CommandBundler:
    """Bundler adapter running an esbuild-compatible CLI per output.

    Args:
        command: Default bundler executable and fixed arguments; an input may
            override it with its ``command`` option.
        timeout: Per-output timeout in seconds (None = no timeout).
        fs: File system used to expand ``watch`` globs.
    """

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_COMMAND,
        timeout: float | None = None,
        fs: FileSystem | None = None,
    ) -> None:
        self.command = list(command)
        self.timeout = timeout
        self.fs = fs if fs is not None else LocalFileSystem()

    async def bundle(self, input_options: Mapping[str, Any], *, cwd: Path) -> CommandBundle:
        """Prepare a bundle for ``input_options`` in ``cwd``.

        Raises:
            BundlerInvocationError: If the input has no usable entries.
        """
        options = dict(input_options)
        command = options.pop("command", None) or self.command
        try:
            normalize_entries(options.get("input"))
        except ValueError as e:
            raise BundlerInvocationError(str(e), code="invalid_input") from e

        bundle = CommandBundle(command, options, cwd, fs=self.fs, timeout=self.timeout)
        await bundle.start()
        return bundle


__all__ = [
    "BundleHandle",
    "Bundler",
    "BundlerInvocationError",
    "CommandBundle",
    "CommandBundler",
    "compose_bundle_command",
    "normalize_entries",
]
