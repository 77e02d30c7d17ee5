"""Tests for workspace.py module."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from monobuild.workspace import (
    PackageDeclaration,
    WorkspaceError,
    find_package_patterns,
    load_package,
    load_workspace,
    load_yaml,
    select_packages,
)


def write_manifest(directory: Path, data: dict) -> None:
    """Write a package.json into ``directory``."""
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "package.json").write_text(json.dumps(data))


@pytest.fixture
def yaml_workspace(tmp_path: Path) -> Path:
    """Create a workspace declared in monobuild.yaml."""
    (tmp_path / "monobuild.yaml").write_text("packages:\n  - packages/*\n  - tools/cli\n")
    write_manifest(tmp_path / "packages" / "ui", {"name": "@acme/ui", "version": "1.0.0"})
    write_manifest(tmp_path / "packages" / "core", {"name": "@acme/core"})
    write_manifest(tmp_path / "tools" / "cli", {"name": "acme-cli", "bin": {"acme": "cli.js"}})
    (tmp_path / "packages" / "core" / "build.config.py").write_text("")
    (tmp_path / "packages" / "docs").mkdir()
    return tmp_path


class TestPackageDeclaration:
    """Tests for PackageDeclaration model."""

    def test_scoped_name(self) -> None:
        """Scoped npm names are accepted."""
        assert PackageDeclaration(name="@acme/ui").name == "@acme/ui"

    def test_invalid_name(self) -> None:
        """Names with uppercase letters or spaces are rejected."""
        with pytest.raises(ValidationError):
            PackageDeclaration(name="My Package")

    def test_unknown_fields_preserved(self) -> None:
        """Other manifest fields are kept."""
        declaration = PackageDeclaration.model_validate({"name": "ui", "main": "dist/index.js"})
        assert declaration.model_extra == {"main": "dist/index.js"}


class TestLoadPackage:
    """Tests for load_package function."""

    def test_missing_manifest(self, tmp_path: Path) -> None:
        """A directory without a manifest is an error."""
        with pytest.raises(WorkspaceError) as exc_info:
            load_package(tmp_path)
        assert exc_info.value.code == "manifest_not_found"

    def test_invalid_json(self, tmp_path: Path) -> None:
        """A manifest that is not JSON is an error."""
        (tmp_path / "package.json").write_text("{not json")
        with pytest.raises(WorkspaceError) as exc_info:
            load_package(tmp_path)
        assert exc_info.value.code == "invalid_manifest"

    def test_missing_name(self, tmp_path: Path) -> None:
        """The manifest must declare a name."""
        write_manifest(tmp_path, {"version": "1.0.0"})
        with pytest.raises(WorkspaceError) as exc_info:
            load_package(tmp_path)
        assert exc_info.value.code == "invalid_manifest"

    def test_build_config_detected(self, tmp_path: Path) -> None:
        """The build config path is set only when the file exists."""
        write_manifest(tmp_path, {"name": "ui"})
        assert load_package(tmp_path).build_config_path is None

        (tmp_path / "build.config.py").write_text("")
        package = load_package(tmp_path)
        assert package.build_config_path == (tmp_path / "build.config.py").resolve()
        assert package.key == str(tmp_path.resolve())


class TestFindPackagePatterns:
    """Tests for find_package_patterns function."""

    def test_npm_workspaces(self, tmp_path: Path) -> None:
        """The workspaces field of the root package.json is used as fallback."""
        write_manifest(tmp_path, {"name": "root", "private": True, "workspaces": ["packages/*"]})
        assert find_package_patterns(tmp_path) == ["packages/*"]

    def test_yarn_workspaces(self, tmp_path: Path) -> None:
        """Yarn's object form of workspaces is accepted."""
        write_manifest(tmp_path, {"name": "root", "workspaces": {"packages": ["libs/*"]}})
        assert find_package_patterns(tmp_path) == ["libs/*"]

    def test_invalid_workspaces_field(self, tmp_path: Path) -> None:
        """A workspaces field that is not a list of globs is rejected."""
        write_manifest(tmp_path, {"name": "root", "workspaces": "packages/*"})
        with pytest.raises(WorkspaceError) as exc_info:
            find_package_patterns(tmp_path)
        assert exc_info.value.code == "invalid_workspace"

    def test_unknown_key_in_workspace_file(self, tmp_path: Path) -> None:
        """monobuild.yaml only accepts known keys."""
        (tmp_path / "monobuild.yaml").write_text("packages: []\npackage: []\n")
        with pytest.raises(WorkspaceError) as exc_info:
            find_package_patterns(tmp_path)
        assert exc_info.value.code == "invalid_workspace"

    def test_no_workspace(self, tmp_path: Path) -> None:
        """A directory without a workspace declaration is an error."""
        with pytest.raises(WorkspaceError) as exc_info:
            find_package_patterns(tmp_path)
        assert exc_info.value.code == "workspace_not_found"

    def test_empty_yaml(self, tmp_path: Path) -> None:
        """An empty YAML file loads as an empty mapping."""
        path = tmp_path / "monobuild.yaml"
        path.write_text("")
        assert load_yaml(path) == {}
        assert find_package_patterns(tmp_path) == []


class TestLoadWorkspace:
    """Tests for load_workspace and select_packages."""

    def test_discovers_packages(self, yaml_workspace: Path) -> None:
        """Packages come in pattern order, sorted within a pattern."""
        packages = load_workspace(yaml_workspace)

        assert [p.name for p in packages] == ["@acme/core", "@acme/ui", "acme-cli"]
        assert packages[0].build_config_path is not None
        assert packages[1].build_config_path is None
        assert packages[1].declaration.version == "1.0.0"

    def test_duplicate_names(self, tmp_path: Path) -> None:
        """Two packages cannot share a name."""
        (tmp_path / "monobuild.yaml").write_text("packages:\n  - packages/*\n")
        write_manifest(tmp_path / "packages" / "a", {"name": "dup"})
        write_manifest(tmp_path / "packages" / "b", {"name": "dup"})

        with pytest.raises(WorkspaceError) as exc_info:
            load_workspace(tmp_path)
        assert exc_info.value.code == "duplicate_package"

    def test_overlapping_patterns(self, yaml_workspace: Path) -> None:
        """A directory matched by two patterns is loaded once."""
        (yaml_workspace / "monobuild.yaml").write_text(
            "packages:\n  - packages/*\n  - packages/ui\n"
        )
        assert [p.name for p in load_workspace(yaml_workspace)] == ["@acme/core", "@acme/ui"]

    def test_select_packages(self, yaml_workspace: Path) -> None:
        """Selection keeps workspace order; no names selects everything."""
        packages = load_workspace(yaml_workspace)

        assert select_packages(packages, None) == packages
        selected = select_packages(packages, ["acme-cli", "@acme/core"])
        assert [p.name for p in selected] == ["@acme/core", "acme-cli"]

    def test_select_unknown_package(self, yaml_workspace: Path) -> None:
        """Selecting a package that does not exist is an error."""
        with pytest.raises(WorkspaceError) as exc_info:
            select_packages(load_workspace(yaml_workspace), ["nope"])
        assert exc_info.value.code == "package_not_found"
        assert "nope" in str(exc_info.value)
