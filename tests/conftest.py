"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
import tomlkit

from mono_bump.graph import WorkspaceGraph, build_graph
from mono_bump.models import DependencyKind, DependencySpec, PackageInfo
from mono_bump.requirements import dep_canonical_name

PackageFactory = Callable[..., PackageInfo]


def make_package(
    name: str,
    version: str = "1.0.0",
    deps: list[str] | None = None,
    *,
    dev: list[str] | None = None,
    build: list[str] | None = None,
    publishable: bool = True,
    published: str | None = None,
) -> PackageInfo:
    """Build a PackageInfo as the manifest reader would.

    ``deps``, ``dev`` and ``build`` are PEP 508 strings; field paths mimic
    [project].dependencies, [dependency-groups].dev and [build-system].requires.
    """
    specs: list[DependencySpec] = []
    for kind, prefix, values in (
        (DependencyKind.NORMAL, ("project", "dependencies"), deps),
        (DependencyKind.DEV, ("dependency-groups", "dev"), dev),
        (DependencyKind.BUILD, ("build-system", "requires"), build),
    ):
        for i, dep_str in enumerate(values or []):
            specs.append(
                DependencySpec(
                    name=dep_canonical_name(dep_str),
                    requirement=dep_str,
                    kind=kind,
                    field=(*prefix, i),
                )
            )
    return PackageInfo(
        name=name,
        path=f"packages/{name}",
        version=version,
        publishable=publishable,
        published_version=published,
        dependencies=specs,
    )


@pytest.fixture
def package() -> PackageFactory:
    """Factory for PackageInfo objects with declared dependencies."""
    return make_package


@pytest.fixture
def chain_graph() -> WorkspaceGraph:
    """a → b → c → d, caret requirements, all at 1.0.0 and released."""
    return build_graph(
        [
            make_package("a", deps=["b>=1.0.0,<2.0.0"], published="1.0.0"),
            make_package("b", deps=["c>=1.0.0,<2.0.0"], published="1.0.0"),
            make_package("c", deps=["d>=1.0.0,<2.0.0"], published="1.0.0"),
            make_package("d", published="1.0.0"),
        ]
    )


@pytest.fixture
def diamond_graph() -> WorkspaceGraph:
    """a and b depend on d; c depends on a and b."""
    return build_graph(
        [
            make_package("a", deps=["d>=1.0.0,<2.0.0"]),
            make_package("b", deps=["d~=1.0"]),
            make_package("c", deps=["a==1.0.0", "b>=1.0.0"]),
            make_package("d"),
        ]
    )


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


@pytest.fixture
def write_workspace(tmp_path: Path) -> Callable[..., Path]:
    """Write a uv workspace into tmp_path.

    Takes a mapping of member directory name → member pyproject.toml text
    and optional extra root pyproject content. Returns the workspace root.
    """

    def write(members: dict[str, str], root_extra: str = "") -> Path:
        _write(
            tmp_path / "pyproject.toml",
            '[tool.uv.workspace]\nmembers = ["packages/*"]\n' + root_extra,
        )
        for directory, content in members.items():
            _write(tmp_path / "packages" / directory / "pyproject.toml", content)
        return tmp_path

    return write


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep>=1.0",
]

[project.optional-dependencies]
dev = ["pytest>=8.0", "another-internal>=0.5"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal>=0.1"]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[build-system]
requires = ["hatchling"]

[dependency-groups]
test = ["hypothesis>=6.0", {include-group = "lint"}]
lint = ["ruff"]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]
exclude = ["libs/legacy"]
"""
    return tomlkit.parse(content)
