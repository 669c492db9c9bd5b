"""Dependency requirement utilities.

Provides functions for parsing PEP 508 dependency strings, deciding whether
a requirement still accepts a version, and rewriting a requirement to target
a new version while keeping the comparator style its author chose.
"""

from __future__ import annotations

from enum import Enum

import semver
from packaging.requirements import Requirement
from packaging.utils import canonicalize_name
from packaging.version import Version as Pep440Version

from .versions import parse_version, to_pep440


class RequirementStyle(str, Enum):
    """Comparator shapes that mono-bump knows how to retarget."""

    EXACT = "exact"  # ==1.2.3
    TILDE = "tilde"  # ~=1.2.3
    CARET = "caret"  # >=1.2.3,<2.0.0
    MINIMUM = "minimum"  # >=1.2.3
    UNPINNED = "unpinned"  # no specifier, or a direct URL
    CUSTOM = "custom"


def dep_canonical_name(dep_str: str) -> str:
    """Extract the canonical package name from a PEP 508 dependency string.

    Handles version specifiers, extras, and normalizes the name per PEP 503
    (lowercase, hyphens instead of underscores).

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"
    """
    return canonicalize_name(Requirement(dep_str).name)


def _with_specifier(req: Requirement, specifier: str) -> str:
    # Sort extras alphabetically for consistent output
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    marker = f"; {req.marker}" if req.marker else ""
    return f"{req.name}{extras}{specifier}{marker}"


def pin_dep(dep_str: str, version: str) -> str:
    """Pin a PEP 508 dependency to an exact version.

    Preserves any extras and environment markers specified in the original
    dependency string, but replaces the version specifier with an exact pin.

    Examples:
        pin_dep("requests>=2.0", "2.31.0") → "requests==2.31.0"
        pin_dep("pkg[extra1,extra2]~=1.0", "1.5.0") → "pkg[extra1,extra2]==1.5.0"
    """
    return _with_specifier(Requirement(dep_str), f"=={_pep440(version)}")


def requirement_style(dep_str: str) -> RequirementStyle:
    """Classify the comparator used by a requirement string."""
    req = Requirement(dep_str)
    if req.url or not req.specifier:
        return RequirementStyle.UNPINNED

    specs = list(req.specifier)
    ops = {s.operator for s in specs}
    if len(specs) == 1:
        spec = specs[0]
        if spec.operator in ("==", "===") and "*" not in spec.version:
            return RequirementStyle.EXACT
        if spec.operator == "~=":
            return RequirementStyle.TILDE
        if spec.operator == ">=":
            return RequirementStyle.MINIMUM
    elif len(specs) == 2 and ops == {">=", "<"}:
        return RequirementStyle.CARET
    return RequirementStyle.CUSTOM


def caret_upper(version: semver.Version) -> semver.Version:
    """Exclusive upper bound of a caret range starting at ``version``.

    Examples:
        1.2.3 → 2.0.0
        0.2.3 → 0.3.0
        0.0.3 → 0.0.4
    """
    if version.major > 0:
        return version.bump_major()
    if version.minor > 0:
        return version.bump_minor()
    return semver.Version(0, 0, version.patch + 1)


def accepts(dep_str: str, version: str) -> bool:
    """True if the requirement is satisfied by ``version``.

    Prereleases are allowed: the version being tested is the one the
    workspace is about to publish, not a candidate picked by a resolver.
    """
    req = Requirement(dep_str)
    if req.url or not req.specifier:
        return True
    return req.specifier.contains(to_pep440(parse_version(version)), prereleases=True)


def retarget_requirement(dep_str: str, version: str) -> str:
    """Rewrite a requirement so its lower bound is ``version``.

    The comparator style is preserved; unknown shapes are replaced by a
    caret range. Unpinned requirements are returned unchanged.

    Examples:
        ("pkg==1.0.0", "2.0.0") → "pkg==2.0.0"
        ("pkg~=1.2", "2.0.0") → "pkg~=2.0"
        ("pkg>=1.0.0,<2.0.0", "2.0.0") → "pkg>=2.0.0,<3.0.0"
        ("pkg>=0.3", "0.4.0") → "pkg>=0.4.0"
    """
    style = requirement_style(dep_str)
    if style is RequirementStyle.UNPINNED:
        return dep_str

    req = Requirement(dep_str)
    rewritten = _retarget(req, style, version)
    # Keep the author's spelling when the rewrite means the same thing
    if str(Requirement(rewritten)) == str(req):
        return dep_str
    return rewritten


def _retarget(req: Requirement, style: RequirementStyle, version: str) -> str:
    target = parse_version(version)
    if style is RequirementStyle.EXACT:
        return pin_dep(str(req), version)
    if style is RequirementStyle.MINIMUM:
        return _with_specifier(req, f">={_pep440(version)}")
    if style is RequirementStyle.TILDE:
        (spec,) = list(req.specifier)
        width = max(2, len(Pep440Version(spec.version).release))
        parts = [target.major, target.minor, target.patch] + [0] * (width - 3)
        return _with_specifier(req, "~=" + ".".join(str(p) for p in parts[:width]))
    return _with_specifier(
        req, f">={_pep440(version)},<{caret_upper(target.finalize_version())}"
    )


def _pep440(version: str) -> str:
    return str(to_pep440(parse_version(version)))
