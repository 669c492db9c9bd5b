"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0")
and for the PEP 440 spellings commonly found in pyproject.toml files.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import semver
from packaging.version import InvalidVersion
from packaging.version import Version as Pep440Version

if TYPE_CHECKING:
    from .models import BumpKind


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3-rc.1+build.5" → prerelease and build kept

    PEP 440 strings that are not valid semver ("1.0.0rc1", "2.0.dev3") are
    mapped onto the equivalent semver prerelease.

    Raises:
        ValueError: If the string is not a version at all.
    """
    try:
        return semver.Version.parse(version_str, optional_minor_and_patch=True)
    except ValueError:
        pass

    try:
        pep = Pep440Version(version_str)
    except InvalidVersion as exc:
        raise ValueError(f"{version_str!r} is not a valid version") from exc

    major, minor, patch = (list(pep.release) + [0, 0])[:3]
    prerelease = None
    if pep.pre:
        prerelease = f"{pep.pre[0]}.{pep.pre[1]}"
    elif pep.dev is not None:
        prerelease = f"dev.{pep.dev}"
    return semver.Version(major, minor, patch, prerelease=prerelease, build=pep.local)


def to_pep440(version: semver.Version) -> Pep440Version:
    """Convert a semver version for use with packaging specifiers.

    Prerelease tags packaging cannot express are dropped, so comparisons
    fall back to the release part only.
    """
    try:
        return Pep440Version(str(version))
    except InvalidVersion:
        return Pep440Version(str(version.finalize_version()))


def bump_version(version_str: str, kind: BumpKind) -> str:
    """Increment ``version_str`` at ``kind`` and return it as a string.

    Lower components are reset to zero; prerelease and build metadata
    are dropped.

    Examples:
        ("1.2.3", major) → "2.0.0"
        ("1.2.3", minor) → "1.3.0"
        ("1.2", patch) → "1.2.1"
    """
    v = parse_version(version_str)
    if kind == "major":
        return str(v.bump_major())
    if kind == "minor":
        return str(v.bump_minor())
    return str(v.replace(patch=v.patch + 1, prerelease=None, build=None))


def is_newer(version_str: str, than: str | None) -> bool:
    """True if ``version_str`` is strictly newer than ``than``.

    ``than`` is None for a package that was never released.
    """
    if than is None:
        return True
    return parse_version(version_str) > parse_version(than)
