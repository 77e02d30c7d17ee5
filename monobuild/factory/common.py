"""Build context, targets and tasks shared by declarations and the builder."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from monobuild.types import Env

if TYPE_CHECKING:
    from monobuild.filesystem import FileSystem
    from monobuild.reporter import Reporter

T = TypeVar("T")


@dataclass(frozen=True)
class BuildCall:
    """Caller-supplied part of a build context.

    Attributes:
        reporter: Receives build progress notifications.
        env: Environment the build targets.
        is_watch: Whether the build runs as part of a watch session.
        is_debug: Whether debug output was requested.
    """

    reporter: Reporter
    env: Env = Env.DEVELOPMENT
    is_watch: bool = False
    is_debug: bool = False


@dataclass(frozen=True)
class BuildContext:
    """Context passed to build tasks.

    Attributes:
        reporter: Receives build progress notifications.
        cwd: Package directory; every relative path resolves against it.
        env: Environment the build targets.
        module_name: Declared name of the package.
        is_watch: Whether the build runs as part of a watch session.
        is_debug: Whether debug output was requested.
        fs: File system used to glob and read package files.
    """

    reporter: Reporter
    cwd: Path
    env: Env
    module_name: str
    is_watch: bool
    is_debug: bool
    fs: FileSystem

    @classmethod
    def from_call(
        cls,
        call: BuildCall,
        *,
        cwd: Path,
        module_name: str,
        fs: FileSystem,
    ) -> BuildContext:
        return cls(
            reporter=call.reporter,
            cwd=cwd,
            env=call.env,
            module_name=module_name,
            is_watch=call.is_watch,
            is_debug=call.is_debug,
            fs=fs,
        )


@dataclass(frozen=True)
class BuildTarget:
    """One bundler invocation: a single input and one or more outputs."""

    name: str
    input: Mapping[str, Any]
    outputs: tuple[Mapping[str, Any], ...] = field(default_factory=tuple)


BuildTask = Callable[[BuildContext], Awaitable[Sequence[BuildTarget]]]


@dataclass(frozen=True)
class Configurator(Generic[T]):
    """A configuration value computed from the build context.

    ``fn`` receives the value currently configured for the key (``None``
    when the configurator is the value itself) and the context.
    """

    fn: Callable[[Any, BuildContext], T]

    def resolve(self, current: Any, context: BuildContext) -> T:
        return self.fn(current, context)


def resolve_value(value: Any, context: BuildContext) -> Any:
    """Resolve configurators nested in lists and mappings."""
    if isinstance(value, Configurator):
        return value.resolve(None, context)
    if isinstance(value, Mapping):
        return resolve_options(value, context)
    if isinstance(value, list | tuple):
        return type(value)(resolve_value(item, context) for item in value)
    return value


def resolve_options(options: Mapping[str, Any], context: BuildContext) -> dict[str, Any]:
    """Resolve configurators and drop keys whose resolved value is ``None``."""
    resolved: dict[str, Any] = {}
    for key, value in options.items():
        value = resolve_value(value, context)
        if value is not None:
            resolved[key] = value
    return resolved


def is_env(context: BuildContext, *envs: Env) -> bool:
    """Return True if the context targets one of ``envs``."""
    return context.env in envs


def in_env(*envs: Env) -> Configurator[bool]:
    """Configurator resolving to True when building for one of ``envs``."""
    return Configurator(lambda _, context: is_env(context, *envs))


__all__ = [
    "BuildCall",
    "BuildContext",
    "BuildTarget",
    "BuildTask",
    "Configurator",
    "in_env",
    "is_env",
    "resolve_options",
    "resolve_value",
]
