"""Build orchestration module.

This module handles:
- Build task registration while build-config modules load
- Per-package target resolution and bundler invocation
- File watcher reconciliation across rebuilds
- Build sessions and watch mode over several packages
"""

# The registry must be importable before the builder: declarations in
# monobuild.factory register tasks through it.
from monobuild.build.registry import (
    BuildConfigLoadError,
    RegistrationOutsideBuildError,
    add_build_task,
    load_build_config,
)
from monobuild.build.cancel import AbortError, CancelToken
from monobuild.build.builder import Builder
from monobuild.build.session import BuildSession

__all__ = [
    "AbortError",
    "BuildConfigLoadError",
    "BuildSession",
    "Builder",
    "CancelToken",
    "RegistrationOutsideBuildError",
    "add_build_task",
    "load_build_config",
]
