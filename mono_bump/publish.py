"""Publish ordering and the publish loop.

Packages must reach the registry in dependency order: a registry may reject
a package whose declared dependency version is not resolvable yet. The loop
is therefore strictly sequential and stops at the first failure.
"""

from __future__ import annotations

import shutil
import subprocess
import time
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from .config import Settings
from .errors import CyclicDependency, PublishFailure, TagFailure, UnknownPackage
from .graph import WorkspaceGraph
from .models import PackageInfo, PublishResult
from .shell import run
from .versions import is_newer

# Builds and uploads one package; returns True on success.
PublishInvoker = Callable[[PackageInfo], bool]

_IN_PROGRESS, _DONE = 1, 2


def plan_publish(
    graph: WorkspaceGraph,
    targets: Iterable[str] | None = None,
    *,
    allow_only_deps: bool = False,
    include_dependencies: bool = True,
) -> list[str]:
    """Compute the order in which packages are published.

    Starting from the targets (every publishable package by default), walks
    their normal/build dependencies depth-first so that each package comes
    after everything it depends on. Independent subtrees are visited in
    discovery order, so the result is stable across runs.

    Args:
        graph: The workspace graph.
        targets: Packages to publish. Their dependencies are included too.
        allow_only_deps: Leave the explicit targets out and publish only
            their dependencies.
        include_dependencies: If False, publish exactly the targets (still
            in dependency order), e.g. to resume an interrupted run.

    Returns:
        Package names, dependencies first, without duplicates. Packages that
        are not publishable never appear.

    Raises:
        UnknownPackage: If a target is not a workspace member.
        CyclicDependency: If the selected packages contain a cycle.
    """
    if targets is None:
        explicit: list[str] = []
        roots = [n for n in graph.names if graph[n].publishable]
    else:
        explicit = list(dict.fromkeys(targets))
        for name in explicit:
            if name not in graph:
                raise UnknownPackage(name)
        roots = sorted(explicit, key=graph.discovery_index)

    if include_dependencies:
        order = _dependency_first(graph, roots)
    else:
        order = graph.topo_order(roots)

    excluded = set(explicit) if allow_only_deps else set()
    return [n for n in order if graph[n].publishable and n not in excluded]


def _dependency_first(graph: WorkspaceGraph, roots: Sequence[str]) -> list[str]:
    """Post-order DFS with three-colour marking over normal/build edges."""
    state: dict[str, int] = {}
    path: list[str] = []
    order: list[str] = []

    def visit(node: str) -> None:
        if state.get(node) == _DONE:
            return
        if state.get(node) == _IN_PROGRESS:
            raise CyclicDependency(path[path.index(node) :] + [node])
        state[node] = _IN_PROGRESS
        path.append(node)
        for dep in sorted(graph.dependencies(node), key=graph.discovery_index):
            visit(dep)
        path.pop()
        state[node] = _DONE
        order.append(node)

    for root in roots:
        visit(root)
    return order


class UvPublisher:
    """Build a package with ``uv build`` and upload it with ``uv publish``.

    Both commands come from Settings, so any other build or upload tool that
    follows the same calling convention can be plugged in.
    """

    def __init__(self, root: Path, settings: Settings) -> None:
        self.root = root
        self.settings = settings

    def __call__(self, package: PackageInfo) -> bool:
        out_dir = self.root / self.settings.dist_dir / package.name
        # Leftovers from an older version would be uploaded again
        shutil.rmtree(out_dir, ignore_errors=True)

        result = run(
            *self.settings.build_command,
            package.path,
            "--out-dir",
            str(out_dir),
            cwd=self.root,
            check=False,
        )
        if result.returncode != 0:
            print(f"  Build of {package.name} failed")
            return False

        dists = sorted(str(p) for p in out_dir.iterdir()) if out_dir.is_dir() else []
        if not dists:
            print(f"  No distributions found in {out_dir}")
            return False

        if self.settings.publish_delay:
            time.sleep(self.settings.publish_delay)

        result = run(*self.settings.publish_command, *dists, cwd=self.root, check=False)
        return result.returncode == 0


def publish_packages(
    graph: WorkspaceGraph,
    order: Sequence[str],
    invoker: PublishInvoker,
    on_published: Callable[[PackageInfo], None] | None = None,
) -> PublishResult:
    """Publish ``order`` one package at a time.

    Packages whose version is not newer than their published version are
    skipped. The next package is only started once the previous one
    succeeded.

    Raises:
        PublishFailure: On the first failed package, carrying what was
            published so far and what is left. Errors raised by the invoker
            (a missing build tool, for instance) are reported the same way.
        TagFailure: If ``on_published`` fails after a successful upload.
    """
    result = PublishResult()
    for i, name in enumerate(order):
        info = graph[name]
        if not is_newer(info.version, info.published_version):
            print(f"  {name} {info.version}: already published, skipping")
            result.skipped.append(name)
            continue

        print(f"\n  {name} {info.version} ({info.path})")
        try:
            ok = invoker(info)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise PublishFailure(
                name, result.published, order[i:], reason=_describe(exc)
            ) from exc
        if not ok:
            raise PublishFailure(name, result.published, order[i:])
        result.published.append(name)

        if on_published is None:
            continue
        try:
            on_published(info)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise TagFailure(
                name, result.published, order[i + 1 :], reason=_describe(exc)
            ) from exc
    return result


def _describe(exc: Exception) -> str:
    if isinstance(exc, subprocess.CalledProcessError) and exc.stderr:
        stderr = exc.stderr
        if isinstance(stderr, bytes):
            stderr = stderr.decode(errors="replace")
        return stderr.strip()
    return str(exc)
