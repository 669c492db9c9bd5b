"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying pyproject.toml
files. This is important for maintaining readable, diff-friendly files.
"""

from __future__ import annotations

import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name
from tomlkit.exceptions import TOMLKitError

from .errors import UnreadableManifest
from .models import DependencyKind, FieldPath

TOOL_NAME = "mono-bump"
PRIVATE_CLASSIFIER = "Private :: Do Not Upload"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Returns a TOMLDocument that preserves formatting when modified and saved.

    Raises:
        UnreadableManifest: If the file is missing or is not valid TOML.
    """
    try:
        return tomlkit.parse(path.read_text())
    except OSError as exc:
        raise UnreadableManifest(str(path), exc.strerror or str(exc)) from exc
    except TOMLKitError as exc:
        raise UnreadableManifest(str(path), str(exc)) from exc


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting.

    Writes to a temporary file next to ``path`` and renames it into place,
    so readers see either the old file or the new one.
    """
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=".pyproject.", suffix=".tmp"
    )
    tmp = Path(tmp_name)
    try:
        with open(fd, "w", encoding="utf-8") as fh:
            fh.write(tomlkit.dumps(doc))
        tmp.replace(path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.

    Args:
        doc: Parsed pyproject.toml document.
        fallback: Value to return if name is not specified.
    """
    return canonicalize_name(doc.get("project", {}).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """Extract version from [project].version, defaulting to '0.0.0'.

    Raises:
        ValueError: If the version is declared dynamic; it cannot be bumped
            by editing the manifest.
    """
    project = doc.get("project", {})
    if "version" in project.get("dynamic", []):
        raise ValueError("dynamic versions are not supported")
    return str(project.get("version", "0.0.0"))


def get_tool_table(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Return the [tool.mono-bump] table as plain Python values, or an empty dict."""
    table = doc.get("tool", {}).get(TOOL_NAME)
    return dict(table.unwrap()) if table is not None else {}


def is_publishable(doc: tomlkit.TOMLDocument) -> bool:
    """A package is private if it carries the "Do Not Upload" classifier
    or sets ``publish = false`` in [tool.mono-bump]."""
    classifiers = doc.get("project", {}).get("classifiers", [])
    if PRIVATE_CLASSIFIER in classifiers:
        return False
    return bool(get_tool_table(doc).get("publish", True))


def iter_dependency_fields(
    doc: tomlkit.TOMLDocument,
) -> Iterator[tuple[FieldPath, str, DependencyKind]]:
    """Yield every dependency string with its location and kind.

    Gathers dependencies from these locations:
    - [project].dependencies (main runtime deps)
    - [project].optional-dependencies.* (extras like [dev], [test])
    - [build-system].requires (build backends and plugins)
    - [dependency-groups].* (PEP 735 dependency groups)
    - [tool.uv].dev-dependencies (legacy uv dev deps)

    Entries that are not strings (e.g. ``{include-group = "..."}``) are
    skipped.
    """
    project = doc.get("project", {})

    def strings(
        values: Any, prefix: FieldPath, kind: DependencyKind
    ) -> Iterator[tuple[FieldPath, str, DependencyKind]]:
        for i, value in enumerate(values or []):
            if isinstance(value, str):
                yield (*prefix, i), str(value), kind

    yield from strings(
        project.get("dependencies"), ("project", "dependencies"), DependencyKind.NORMAL
    )
    # Extras are part of the published metadata
    for group, values in project.get("optional-dependencies", {}).items():
        yield from strings(
            values,
            ("project", "optional-dependencies", str(group)),
            DependencyKind.NORMAL,
        )
    yield from strings(
        doc.get("build-system", {}).get("requires"),
        ("build-system", "requires"),
        DependencyKind.BUILD,
    )
    for group, values in doc.get("dependency-groups", {}).items():
        yield from strings(
            values, ("dependency-groups", str(group)), DependencyKind.DEV
        )
    yield from strings(
        doc.get("tool", {}).get("uv", {}).get("dev-dependencies"),
        ("tool", "uv", "dev-dependencies"),
        DependencyKind.DEV,
    )


def get_field(doc: tomlkit.TOMLDocument, field: FieldPath) -> Any:
    """Look up a value by path, returning None if any step is missing."""
    node: Any = doc
    for key in field:
        try:
            node = node[key]
        except (KeyError, IndexError, TypeError):
            return None
    return node


def set_field(doc: tomlkit.TOMLDocument, field: FieldPath, value: str) -> None:
    """Set a value by path. Every container on the way must already exist."""
    node: Any = doc
    for key in field[:-1]:
        node = node[key]
    node[field[-1]] = value


def get_workspace_member_globs(
    doc: tomlkit.TOMLDocument,
) -> tuple[list[str], list[str]]:
    """Extract workspace member and exclude glob patterns from [tool.uv.workspace].

    These patterns (e.g., "packages/*", "libs/*") define which directories
    contain workspace packages.

    Raises:
        ValueError: If no workspace members are defined.
    """
    workspace = doc.get("tool", {}).get("uv", {}).get("workspace", {})
    members = workspace.get("members")
    if not members:
        raise ValueError("no [tool.uv.workspace] members defined")
    return list(members), list(workspace.get("exclude", []))
