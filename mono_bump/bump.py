"""Version bump propagation.

Given a request to bump one package, work out which other packages have to
change with it:

1. The root gets its requested bump.
2. Direct dependents whose requirement no longer accepts the root's new
   version get that requirement rewritten (always, for breaking changes).
3. With ``force_dependents``, every transitive dependent also gets a patch
   bump and its requirements on bumped packages are retargeted.

Versions are bumped relative to the last published version when one is
known, so re-running a request against an already rewritten workspace
yields an empty plan.
"""

from __future__ import annotations

from .graph import WorkspaceGraph, dependents_closure
from .models import (
    BumpEntry,
    BumpKind,
    BumpPlan,
    BumpReason,
    BumpRequest,
    PackageInfo,
)
from .requirements import accepts, retarget_requirement
from .versions import bump_version, parse_version


def default_bump_kind(version_str: str, breaking: bool) -> BumpKind:
    """Pick the bump kind when the user only says whether it is breaking.

    Semver treats 0.x specially: a breaking change there bumps the minor
    component instead of the major one.
    """
    if not breaking:
        return BumpKind.PATCH
    if parse_version(version_str).major == 0:
        return BumpKind.MINOR
    return BumpKind.MAJOR


def default_kind_for(info: PackageInfo, breaking: bool) -> BumpKind:
    # 0.x vs 1.x is decided by the released version when there is one
    return default_bump_kind(info.published_version or info.version, breaking)


def target_version(version: str, published: str | None, kind: BumpKind) -> str | None:
    """New version for a package, or None if ``version`` is already there.

    The bump is applied to the published version when known, otherwise to
    the current one.

    Examples:
        ("1.2.3", None, minor) → "1.3.0"
        ("1.3.0", "1.2.3", minor) → None (already bumped)
        ("1.2.4", "1.2.3", major) → "2.0.0"
    """
    target = bump_version(published or version, kind)
    if parse_version(version) >= parse_version(target):
        return None
    return target


def _needs_retarget(
    graph: WorkspaceGraph,
    dependent: str,
    dependency: str,
    version: str,
    *,
    always: bool,
) -> bool:
    """Whether ``dependent``'s requirements on ``dependency`` must change.

    A requirement is rewritten when it rejects ``version``, or whenever
    ``always`` is set. Rewrites that would not change the string do not
    count.
    """
    for edge in graph.edges_between(dependent, dependency):
        if not edge.published:
            continue
        if always or not accepts(edge.requirement, version):
            if retarget_requirement(edge.requirement, version) != edge.requirement:
                return True
    return False


def plan_bump(graph: WorkspaceGraph, request: BumpRequest) -> BumpPlan:
    """Compute the version bumps needed for ``request``.

    Args:
        graph: The workspace as read from disk.
        request: Root package, bump kind and propagation flags.

    Returns:
        A plan whose entries are in dependency order (root first). Packages
        with nothing to change are left out, so the plan may be empty.

    Raises:
        UnknownPackage: If the root is not a workspace member.
    """
    root = graph[request.package]
    plan = BumpPlan(root=root.name)

    new_root = target_version(root.version, root.published_version, request.kind)
    if new_root is not None:
        plan.entries[root.name] = BumpEntry(
            name=root.name, old=root.version, new=new_root, reason=BumpReason.ROOT
        )
    root_version = plan.version_of(root.name, graph)

    if not request.force_dependents:
        # Requirements on the root that no longer accept its new version
        for dependent in graph.dependents(root.name):
            if not _needs_retarget(
                graph, dependent, root.name, root_version, always=request.is_breaking
            ):
                continue
            info = graph[dependent]
            plan.entries[dependent] = BumpEntry(
                name=dependent,
                old=info.version,
                new=info.version,
                reason=BumpReason.STALE,
                retarget=[root.name],
            )
        return plan

    closure = dependents_closure(graph, root.name)
    scope = {root.name, *closure}
    # Topological order guarantees every dependency is finalized first
    for name in graph.topo_order(closure):
        info = graph[name]
        retarget = [
            dep
            for dep in graph.dependencies(name)
            if dep in scope
            and _needs_retarget(
                graph,
                name,
                dep,
                plan.version_of(dep, graph),
                always=True,
            )
        ]
        new = target_version(info.version, info.published_version, BumpKind.PATCH)
        if new is not None:
            plan.entries[name] = BumpEntry(
                name=name,
                old=info.version,
                new=new,
                reason=BumpReason.FORCED,
                retarget=retarget,
            )
        elif retarget:
            plan.entries[name] = BumpEntry(
                name=name,
                old=info.version,
                new=info.version,
                reason=BumpReason.STALE,
                retarget=retarget,
            )
    return plan


def describe_plan(plan: BumpPlan) -> list[str]:
    """Human-readable lines, one per plan entry."""
    lines: list[str] = []
    for name, entry in plan.entries.items():
        change = f"{entry.old} → {entry.new}" if entry.version_changed else entry.old
        deps = ""
        if entry.retarget:
            deps = f" (requirements on {', '.join(entry.retarget)})"
        lines.append(f"  {name}: {change} [{entry.reason.value}]{deps}")
    return lines
