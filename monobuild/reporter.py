"""Build progress reporting.

Reporters are purely observational: nothing they return influences control
flow.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Protocol

from rich.console import Console
from rich.traceback import Traceback

from monobuild.types import BuildStatus

if TYPE_CHECKING:
    from monobuild.workspace import Package


class Reporter(Protocol):
    """Receives build progress notifications."""

    def package_build_started(self, package: Package) -> None: ...

    def package_build_succeeded(self, package: Package) -> None: ...

    def package_build_failed(self, package: Package) -> None: ...

    def log_error(self, module_name: str, error: BaseException) -> None: ...


class ConsoleReporter:
    """Reporter printing build progress to a rich console."""

    def __init__(self, console: Console | None = None, verbose: bool = False) -> None:
        self.console = console or Console(stderr=True)
        self.verbose = verbose
        self.statuses: dict[str, BuildStatus] = {}
        self._started: dict[str, float] = {}

    def package_build_started(self, package: Package) -> None:
        self.statuses[package.name] = BuildStatus.RUNNING
        self._started[package.name] = time.monotonic()
        if self.verbose:
            self.console.print(f"[cyan]Building[/cyan] {package.name}")

    def package_build_succeeded(self, package: Package) -> None:
        self.statuses[package.name] = BuildStatus.SUCCEEDED
        self.console.print(
            f"[green]Built[/green] {package.name} in {self._elapsed(package):.2f}s"
        )

    def package_build_failed(self, package: Package) -> None:
        self.statuses[package.name] = BuildStatus.FAILED
        self.console.print(
            f"[red]Failed[/red] {package.name} after {self._elapsed(package):.2f}s"
        )

    def log_error(self, module_name: str, error: BaseException) -> None:
        self.console.print(f"[red]{module_name}:[/red] {error}")
        if self.verbose and error.__traceback__ is not None:
            self.console.print(
                Traceback.from_exception(type(error), error, error.__traceback__)
            )

    @property
    def failed(self) -> list[str]:
        return [name for name, status in self.statuses.items() if status is BuildStatus.FAILED]

    def _elapsed(self, package: Package) -> float:
        started = self._started.pop(package.name, None)
        return 0.0 if started is None else time.monotonic() - started


__all__ = ["ConsoleReporter", "Reporter"]
