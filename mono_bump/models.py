"""Data models for mono-bump.

These Pydantic models represent the workspace as read from disk and the
plans computed from it. Plans are pure data: nothing here touches the
filesystem.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, model_validator

from .versions import parse_version

if TYPE_CHECKING:
    from .graph import WorkspaceGraph

# Location of a value inside a TOML document, e.g. ("project", "dependencies", 2)
FieldPath = tuple[str | int, ...]

VERSION_FIELD: FieldPath = ("project", "version")


class DependencyKind(str, Enum):
    """Where a requirement was declared.

    Only normal and build requirements end up in published metadata, so only
    they constrain publish order and version propagation.
    """

    NORMAL = "normal"
    DEV = "dev"
    BUILD = "build"


class BumpKind(str, Enum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


class BumpReason(str, Enum):
    ROOT = "root-explicit"
    FORCED = "dependent-forced"
    STALE = "dependent-requirement-stale"


class DependencySpec(BaseModel):
    """A single requirement string as declared in a manifest.

    Attributes:
        name: Canonical (PEP 503) name of the required package.
        requirement: The PEP 508 string exactly as written.
        kind: Which section of the manifest it came from.
        field: Path to the string inside the TOML document.
    """

    name: str
    requirement: str
    kind: DependencyKind = DependencyKind.NORMAL
    field: FieldPath = ()


class PackageInfo(BaseModel):
    """Metadata for a single package in the monorepo workspace.

    Attributes:
        name: Canonical package name.
        path: Relative path from workspace root to the package directory.
        version: Current version string from pyproject.toml, as written.
        publishable: False for private packages that must never be uploaded.
        published_version: Latest released version (from git tags), if any.
        dependencies: Every declared requirement, internal and external.
    """

    name: str
    path: str
    version: str
    publishable: bool = True
    published_version: str | None = None
    dependencies: list[DependencySpec] = Field(default_factory=list)

    @property
    def manifest(self) -> str:
        return f"{self.path.rstrip('/')}/pyproject.toml"


class DependencyEdge(BaseModel):
    """``dependent`` requires ``dependency`` (both workspace members)."""

    dependent: str
    dependency: str
    requirement: str
    kind: DependencyKind
    field: FieldPath = ()

    @property
    def published(self) -> bool:
        """True if the edge appears in published package metadata."""
        return self.kind is not DependencyKind.DEV


class BumpRequest(BaseModel):
    """What the user asked for: bump ``package`` by ``kind``.

    Attributes:
        package: Root package name.
        kind: Component to increment.
        breaking: Treat the change as breaking even if ``kind`` is not major.
        force_dependents: Also patch-bump every transitive dependent.
    """

    package: str
    kind: BumpKind
    breaking: bool = False
    force_dependents: bool = False

    @property
    def is_breaking(self) -> bool:
        return self.breaking or self.kind is BumpKind.MAJOR


class VersionBump(BaseModel):
    """Records a version change for a package.

    Attributes:
        old: The version before bumping.
        new: The version after bumping.
    """

    old: str
    new: str


class BumpEntry(VersionBump):
    """One package's part of a bump plan.

    Attributes:
        name: Package name.
        reason: Why the package is in the plan.
        retarget: Dependencies whose requirement strings get rewritten.
    """

    name: str
    reason: BumpReason
    retarget: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_versions(self) -> BumpEntry:
        old, new = parse_version(self.old), parse_version(self.new)
        if self.reason is BumpReason.STALE:
            if self.old != self.new:
                raise ValueError(
                    f"{self.name}: a requirement-only entry cannot change the version"
                )
        elif new <= old:
            raise ValueError(f"{self.name}: new version {self.new} <= {self.old}")
        return self

    @property
    def version_changed(self) -> bool:
        return self.old != self.new


class BumpPlan(BaseModel):
    """Consistent set of version bumps computed for one request.

    Entries are kept in dependency order: a package appears after every
    package it depends on.
    """

    root: str
    entries: dict[str, BumpEntry] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.entries

    def version_of(self, name: str, graph: WorkspaceGraph) -> str:
        """Version ``name`` will have once the plan is applied."""
        entry = self.entries.get(name)
        return entry.new if entry else graph[name].version

    def bumps(self) -> dict[str, VersionBump]:
        """Only the entries whose own version changes."""
        return {
            name: VersionBump(old=e.old, new=e.new)
            for name, e in self.entries.items()
            if e.version_changed
        }


class Mutation(BaseModel):
    """Set ``field`` in ``manifest`` from ``old`` to ``new``."""

    manifest: str
    field: FieldPath
    old: str | None
    new: str


class PublishResult(BaseModel):
    """Outcome of a completed publish run."""

    published: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
