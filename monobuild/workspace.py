"""Workspace discovery: packages, manifests and build-config modules.

A workspace root declares package directories either in ``monobuild.yaml``::

    packages:
      - packages/*
      - tools/cli

or, failing that, in the ``workspaces`` field of its ``package.json``. Each
package directory holds a ``package.json`` manifest and, optionally, a
build-config module (``build.config.py`` by default).
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_WORKSPACE_FILE = "monobuild.yaml"
DEFAULT_MANIFEST_NAME = "package.json"
DEFAULT_BUILD_CONFIG_NAME = "build.config.py"

# npm package names, optionally scoped
PACKAGE_NAME_PATTERN = re.compile(r"^(@[a-z0-9][a-z0-9._~-]*/)?[a-z0-9][a-z0-9._~-]*$")


class WorkspaceError(Exception):
    """Raised when the workspace or a package manifest is invalid."""

    def __init__(self, message: str, code: str = "workspace_error") -> None:
        super().__init__(message)
        self.code = code


class PackageDeclaration(BaseModel):
    """Validated package manifest; unknown keys are preserved."""

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str = Field(description="Declared module name")
    version: str | None = Field(default=None)
    private: bool = Field(default=False)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the name is a valid package name."""
        if not PACKAGE_NAME_PATTERN.match(v):
            raise ValueError(f"invalid package name '{v}'")
        return v


class WorkspaceSchema(BaseModel):
    """Schema of ``monobuild.yaml``."""

    model_config = ConfigDict(extra="forbid")

    packages: list[str] = Field(
        default_factory=list, description="Glob patterns of package directories"
    )


@dataclass(frozen=True, eq=False)
class Package:
    """A workspace package.

    Attributes:
        declaration: Validated manifest.
        directory: Package root directory.
        build_config_path: Build-config module, if the package has one.
    """

    declaration: PackageDeclaration
    directory: Path
    build_config_path: Path | None = None

    @property
    def name(self) -> str:
        return self.declaration.name

    @property
    def key(self) -> str:
        """Stable identity used to cache per-package state."""
        return str(self.directory.resolve())


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the content is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file and return its contents as a dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the content is not an object.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def load_package(
    directory: Path,
    manifest_name: str = DEFAULT_MANIFEST_NAME,
    build_config_name: str = DEFAULT_BUILD_CONFIG_NAME,
) -> Package:
    """Load the package rooted at ``directory``.

    Raises:
        WorkspaceError: If the manifest is missing or invalid.
    """
    manifest_path = directory / manifest_name
    try:
        declaration = PackageDeclaration.model_validate(load_json(manifest_path))
    except FileNotFoundError as e:
        raise WorkspaceError(
            f"Missing manifest: {manifest_path}", code="manifest_not_found"
        ) from e
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        raise WorkspaceError(
            f"Invalid manifest {manifest_path}: {e}", code="invalid_manifest"
        ) from e

    build_config_path = directory / build_config_name
    return Package(
        declaration=declaration,
        directory=directory.resolve(),
        build_config_path=build_config_path.resolve() if build_config_path.is_file() else None,
    )


def find_package_patterns(
    root: Path,
    workspace_file: str = DEFAULT_WORKSPACE_FILE,
    manifest_name: str = DEFAULT_MANIFEST_NAME,
) -> list[str]:
    """Return the package directory globs declared by the workspace root.

    Raises:
        WorkspaceError: If no workspace declaration is found or it is invalid.
    """
    workspace_path = root / workspace_file
    if workspace_path.is_file():
        try:
            return WorkspaceSchema.model_validate(load_yaml(workspace_path)).packages
        except (ValueError, yaml.YAMLError, ValidationError) as e:
            raise WorkspaceError(
                f"Invalid workspace file {workspace_path}: {e}", code="invalid_workspace"
            ) from e

    manifest_path = root / manifest_name
    if manifest_path.is_file():
        try:
            workspaces = load_json(manifest_path).get("workspaces", [])
        except ValueError as e:
            raise WorkspaceError(
                f"Invalid manifest {manifest_path}: {e}", code="invalid_manifest"
            ) from e
        # Yarn also accepts {"packages": [...]}
        if isinstance(workspaces, dict):
            workspaces = workspaces.get("packages", [])
        if isinstance(workspaces, list) and all(isinstance(p, str) for p in workspaces):
            return workspaces
        raise WorkspaceError(
            f"Invalid 'workspaces' field in {manifest_path}", code="invalid_workspace"
        )

    raise WorkspaceError(
        f"No {workspace_file} or {manifest_name} found in {root}", code="workspace_not_found"
    )


def load_workspace(
    root: Path,
    workspace_file: str = DEFAULT_WORKSPACE_FILE,
    manifest_name: str = DEFAULT_MANIFEST_NAME,
    build_config_name: str = DEFAULT_BUILD_CONFIG_NAME,
) -> list[Package]:
    """Discover the packages of the workspace rooted at ``root``.

    Directories matched by the package globs that have no manifest are
    skipped. Packages are returned in pattern order, sorted within a pattern.

    Raises:
        WorkspaceError: If the workspace declaration is invalid, a manifest is
            invalid or two packages share a name.
    """
    patterns = find_package_patterns(root, workspace_file, manifest_name)
    packages: list[Package] = []
    seen_dirs: set[Path] = set()
    names: dict[str, Path] = {}

    for pattern in patterns:
        for directory in sorted(root.glob(pattern)):
            directory = directory.resolve()
            if directory in seen_dirs or not (directory / manifest_name).is_file():
                continue
            seen_dirs.add(directory)

            package = load_package(directory, manifest_name, build_config_name)
            if package.name in names:
                raise WorkspaceError(
                    f"Duplicate package name '{package.name}': "
                    f"{names[package.name]} and {directory}",
                    code="duplicate_package",
                )
            names[package.name] = directory
            packages.append(package)

    return packages


def select_packages(packages: Sequence[Package], names: Iterable[str] | None) -> list[Package]:
    """Select packages by name, keeping workspace order.

    Raises:
        WorkspaceError: If a requested name is not a workspace package.
    """
    if not names:
        return list(packages)
    wanted = set(names)
    unknown = wanted - {package.name for package in packages}
    if unknown:
        raise WorkspaceError(
            f"Unknown package(s): {', '.join(sorted(unknown))}", code="package_not_found"
        )
    return [package for package in packages if package.name in wanted]


__all__ = [
    "Package",
    "PackageDeclaration",
    "WorkspaceError",
    "WorkspaceSchema",
    "find_package_patterns",
    "load_json",
    "load_package",
    "load_workspace",
    "load_yaml",
    "select_packages",
]
