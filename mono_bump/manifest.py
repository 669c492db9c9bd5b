"""Reading workspace manifests and applying planned edits to them.

The reader turns every member pyproject.toml into a PackageInfo; the writer
applies Mutation records produced by the rewrite planner, one manifest at a
time and all-or-nothing per manifest.
"""

from __future__ import annotations

import glob
from collections.abc import Iterable
from pathlib import Path

from packaging.requirements import InvalidRequirement

from .errors import UnreadableManifest, WriteFailure
from .models import DependencySpec, Mutation, PackageInfo
from .requirements import dep_canonical_name
from .rewrite import group_by_manifest
from .toml import (
    get_field,
    get_project_name,
    get_project_version,
    get_workspace_member_globs,
    is_publishable,
    iter_dependency_fields,
    load_pyproject,
    save_pyproject,
    set_field,
)
from .versions import parse_version


def find_member_dirs(root: Path) -> list[Path]:
    """Expand [tool.uv.workspace] member globs into package directories.

    Directories without a pyproject.toml and directories matched by an
    ``exclude`` glob are skipped. Order follows the member globs, each
    expanded alphabetically.
    """
    root_manifest = root / "pyproject.toml"
    root_doc = load_pyproject(root_manifest)
    try:
        member_globs, exclude_globs = get_workspace_member_globs(root_doc)
    except ValueError as exc:
        raise UnreadableManifest(str(root_manifest), str(exc)) from exc

    excluded = {
        Path(match).resolve()
        for pattern in exclude_globs
        for match in glob.glob(str(root / pattern))
    }

    member_dirs: list[Path] = []
    for pattern in member_globs:
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match)
            if p.resolve() in excluded or p in member_dirs:
                continue
            if (p / "pyproject.toml").exists():
                member_dirs.append(p)
    return member_dirs


def read_package(root: Path, package_dir: Path) -> PackageInfo:
    """Read one member's pyproject.toml.

    Raises:
        UnreadableManifest: On invalid TOML, an unparseable version or a
            malformed requirement string.
    """
    manifest = package_dir / "pyproject.toml"
    doc = load_pyproject(manifest)
    try:
        version = get_project_version(doc)
        parse_version(version)
        dependencies = [
            DependencySpec(
                name=dep_canonical_name(dep_str),
                requirement=dep_str,
                kind=kind,
                field=field,
            )
            for field, dep_str, kind in iter_dependency_fields(doc)
        ]
    except InvalidRequirement as exc:
        raise UnreadableManifest(str(manifest), f"invalid requirement: {exc}") from exc
    except ValueError as exc:
        raise UnreadableManifest(str(manifest), str(exc)) from exc

    return PackageInfo(
        name=get_project_name(doc, package_dir.name),
        path=package_dir.relative_to(root).as_posix(),
        version=version,
        publishable=is_publishable(doc),
        dependencies=dependencies,
    )


def discover_packages(root: Path) -> list[PackageInfo]:
    """Scan the workspace rooted at ``root`` and read every member.

    A single unreadable manifest aborts the scan: reasoning about a partial
    workspace could silently skip dependents.

    Returns:
        PackageInfo for every member, in discovery order.
    """
    member_dirs = find_member_dirs(root)
    if not member_dirs:
        raise UnreadableManifest(
            str(root / "pyproject.toml"), "no packages found matching workspace members"
        )
    return [read_package(root, d) for d in member_dirs]


def apply_mutations(root: Path, mutations: Iterable[Mutation]) -> list[str]:
    """Apply mutation records to the manifests under ``root``.

    All mutations for one manifest are applied in memory and written with a
    single atomic replace. Each mutation's ``old`` value must still be what
    the manifest contains; otherwise the manifest was edited since it was
    read and nothing is written for it.

    Returns:
        Relative paths of the manifests that were written.

    Raises:
        WriteFailure: On the first manifest that cannot be updated. Manifests
            written before it keep their new content.
    """
    written: list[str] = []
    for manifest, changes in group_by_manifest(mutations).items():
        path = root / manifest
        try:
            doc = load_pyproject(path)
        except UnreadableManifest as exc:
            raise WriteFailure(manifest, exc.reason) from exc

        for change in changes:
            current = get_field(doc, change.field)
            if current is not None and str(current) != change.old:
                raise WriteFailure(
                    manifest,
                    f"{'.'.join(map(str, change.field))} is {str(current)!r}, "
                    f"expected {change.old!r}",
                )
            try:
                set_field(doc, change.field, change.new)
            except (KeyError, IndexError, TypeError) as exc:
                raise WriteFailure(
                    manifest, f"missing field {'.'.join(map(str, change.field))}"
                ) from exc

        try:
            save_pyproject(path, doc)
        except OSError as exc:
            raise WriteFailure(manifest, exc.strerror or str(exc)) from exc
        written.append(manifest)
    return written
