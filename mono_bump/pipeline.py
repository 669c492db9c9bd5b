"""Bump and publish pipelines: discover → plan → rewrite / publish.

This module wires the pure planning steps to the outside world:
1. Discover all packages in the workspace and their release tags
2. Build the dependency graph
3. For ``bump``: plan the version bumps and rewrite the manifests
4. For ``publish``: plan the publish order, then build, upload and tag
   each package in turn

Nothing is written before planning has fully succeeded, so a failed run can
simply be repeated.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import partial
from pathlib import Path

from packaging.utils import canonicalize_name

from .bump import describe_plan, plan_bump
from .config import Settings, load_settings
from .errors import VersionNotBumped
from .graph import WorkspaceGraph, build_graph
from .manifest import apply_mutations, discover_packages
from .models import BumpPlan, BumpRequest, PackageInfo, PublishResult
from .publish import PublishInvoker, UvPublisher, plan_publish, publish_packages
from .rewrite import plan_rewrites
from .shell import git, step
from .toml import load_pyproject
from .versions import is_newer, parse_version


def find_published_versions(
    root: Path, names: Iterable[str], settings: Settings
) -> dict[str, str | None]:
    """Find the most recent released version of each package.

    Releases are marked by git tags following ``settings.tag_format``
    ({package-name}/v{version} by default). Tags whose version part does not
    parse are ignored.

    Returns:
        Map of package name to its last released version, or None if the
        package was never released (or ``root`` is not a git repository).
    """
    step("Finding published versions")

    published: dict[str, str | None] = {}
    for name in names:
        tags = git("tag", "--list", settings.tag_pattern(name), cwd=root, check=False)
        best: str | None = None
        best_parsed = None
        for tag in tags.splitlines():
            version = settings.version_from_tag(name, tag.strip())
            if version is None:
                continue
            try:
                parsed = parse_version(version)
            except ValueError:
                continue
            if best_parsed is None or parsed > best_parsed:
                best, best_parsed = version, parsed
        published[name] = best
        print(f"  {name}: {best or '<none>'}")

    return published


def load_workspace(
    root: Path, *, use_tags: bool = True
) -> tuple[Settings, WorkspaceGraph]:
    """Read settings and every manifest under ``root`` into a graph.

    Args:
        root: Workspace root (the directory holding [tool.uv.workspace]).
        use_tags: Look up published versions from git tags.
    """
    step("Discovering workspace packages")

    settings = load_settings(load_pyproject(root / "pyproject.toml"))
    packages = discover_packages(root)

    excluded = {canonicalize_name(n) for n in settings.exclude}
    for info in packages:
        if info.name in excluded:
            info.publishable = False

    if use_tags:
        published = find_published_versions(root, [p.name for p in packages], settings)
        for info in packages:
            info.published_version = published[info.name]

    graph = build_graph(packages)
    for name in graph.names:
        print(f"  {describe_package(graph, name)}")
    return settings, graph


def describe_package(graph: WorkspaceGraph, name: str) -> str:
    info = graph[name]
    deps = graph.dependencies(name)
    arrow = f" → [{', '.join(deps)}]" if deps else ""
    private = " [private]" if not info.publishable else ""
    return f"{name} {info.version} ({info.path}){private}{arrow}"


def run_bump(
    root: Path, graph: WorkspaceGraph, request: BumpRequest, *, dry_run: bool = False
) -> BumpPlan:
    """Plan ``request`` and rewrite the affected manifests.

    Args:
        root: Workspace root the manifest paths are relative to.
        graph: Workspace graph from load_workspace().
        request: What to bump.
        dry_run: Print the plan and the edits without writing anything.

    Returns:
        The computed plan (possibly empty).
    """
    step(f"Planning {request.kind.value} bump of {request.package}")
    plan = plan_bump(graph, request)
    if plan.is_empty():
        print("  Nothing to bump: versions and requirements are up to date")
        return plan
    for line in describe_plan(plan):
        print(line)

    mutations = plan_rewrites(graph, plan)
    step("Rewriting manifests" + (" (dry run)" if dry_run else ""))
    for m in mutations:
        field = ".".join(str(k) for k in m.field)
        print(f"  {m.manifest} {field}: {m.old} → {m.new}")

    if not dry_run:
        written = apply_mutations(root, mutations)
        print(f"  Updated {len(written)} manifests")
    return plan


def check_targets_bumped(graph: WorkspaceGraph, targets: Iterable[str]) -> None:
    """Refuse to publish a target whose version was already released.

    Raises:
        VersionNotBumped: For the first such target.
    """
    for name in targets:
        info = graph[name]
        if info.published_version and not is_newer(
            info.version, info.published_version
        ):
            raise VersionNotBumped(name, info.version, info.published_version)


def tag_release(root: Path, settings: Settings, info: PackageInfo) -> None:
    """Create a git tag marking ``info`` as released."""
    tag = settings.tag_for(info.name, info.version)
    git("tag", tag, cwd=root)
    print(f"  Tagged {tag}")


def run_publish(
    root: Path,
    settings: Settings,
    graph: WorkspaceGraph,
    targets: list[str] | None = None,
    *,
    allow_only_deps: bool = False,
    only: bool = False,
    dry_run: bool = False,
    invoker: PublishInvoker | None = None,
) -> PublishResult:
    """Publish ``targets`` (default: everything) and their dependencies.

    Args:
        root: Workspace root.
        settings: Workspace settings.
        graph: Workspace graph from load_workspace().
        targets: Packages to publish; None means every publishable package.
        allow_only_deps: Publish only the targets' dependencies.
        only: Publish exactly ``targets``, without their dependencies.
        dry_run: Print the publish order and stop.
        invoker: Replaces the default UvPublisher.

    Raises:
        VersionNotBumped: If an explicit target is not newer than its
            published version (unless ``allow_only_deps``).
        PublishFailure: If a package fails to publish; nothing after it is
            attempted.
    """
    if targets and not allow_only_deps:
        check_targets_bumped(graph, targets)

    step("Planning publish order")
    order = plan_publish(
        graph,
        targets or None,
        allow_only_deps=allow_only_deps,
        include_dependencies=not only,
    )
    if not order:
        print("  Nothing to publish")
        return PublishResult()
    for i, name in enumerate(order, start=1):
        print(f"  {i}. {name} {graph[name].version}")

    if dry_run:
        return PublishResult()

    step(f"Publishing {len(order)} packages")
    on_published = (
        partial(tag_release, root, settings) if settings.tag_published else None
    )
    result = publish_packages(
        graph, order, invoker or UvPublisher(root, settings), on_published
    )
    print(
        f"\n  Published {len(result.published)}, "
        f"skipped {len(result.skipped)} already released"
    )
    return result


def check_versions(
    root: Path, settings: Settings, graph: WorkspaceGraph
) -> list[str]:
    """Find packages changed since their last release but not bumped.

    A package needs a bump if files under its directory changed between its
    release tag and HEAD while its version still equals the released one.

    Returns:
        One message per offending package; empty if everything is fine.
    """
    step("Checking that changed packages were bumped")

    problems: list[str] = []
    for name in graph.names:
        info = graph[name]
        if not info.publishable or info.published_version is None:
            continue
        if is_newer(info.version, info.published_version):
            print(f"  {name}: {info.published_version} → {info.version}")
            continue

        tag = settings.tag_for(name, info.published_version)
        changed = git(
            "diff", "--name-only", tag, "HEAD", "--", info.path, cwd=root, check=False
        )
        if changed:
            problems.append(
                f"{name}: changed since {tag} but version is still {info.version}"
            )
            print(f"  {name}: changed since {tag}, needs a bump")
        else:
            print(f"  {name}: unchanged since {tag}")
    return problems
