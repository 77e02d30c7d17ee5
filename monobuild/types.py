"""Shared type definitions for monobuild.

This module contains enums and small records shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum


class Env(str, Enum):
    """Build environment a package is built for."""

    DEVELOPMENT = "dev"
    STAGING = "stag"
    PRODUCTION = "prod"


class BuildStatus(str, Enum):
    """Status of a package build."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class WatchEventKind(str, Enum):
    """Kind of event delivered by a file watcher."""

    CHANGED = "changed"
    ERRORED = "errored"


@dataclass(frozen=True)
class WatchEvent:
    """Event delivered to watcher subscribers.

    Attributes:
        kind: Whether the file changed or the watcher failed.
        path: Path the watcher was opened for.
        error: The underlying error for ``ERRORED`` events.
    """

    kind: WatchEventKind
    path: str
    error: BaseException | None = None


__all__ = [
    "BuildStatus",
    "Env",
    "WatchEvent",
    "WatchEventKind",
]
