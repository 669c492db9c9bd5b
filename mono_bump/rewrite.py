"""Turning a bump plan into manifest edits.

The planner is pure: it returns Mutation records describing which field of
which pyproject.toml changes from what to what. Applying them is the job of
``mono_bump.manifest.apply_mutations``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from .models import VERSION_FIELD, BumpPlan, Mutation
from .requirements import retarget_requirement

if TYPE_CHECKING:
    from .graph import WorkspaceGraph


def plan_rewrites(graph: WorkspaceGraph, plan: BumpPlan) -> list[Mutation]:
    """Compute every manifest edit needed to apply ``plan``.

    For each entry this yields:
    - the new [project].version, if the version changes;
    - for every retargeted dependency, each normal/build requirement string
      on it, rewritten in its original comparator style to target the
      dependency's planned version.

    Requirement strings that would not change are skipped, as are dev
    requirements. Mutations come out grouped by package in plan order.
    """
    mutations: list[Mutation] = []
    for name, entry in plan.entries.items():
        manifest = graph[name].manifest
        if entry.version_changed:
            mutations.append(
                Mutation(
                    manifest=manifest, field=VERSION_FIELD, old=entry.old, new=entry.new
                )
            )

        for dep in entry.retarget:
            version = plan.version_of(dep, graph)
            for edge in graph.edges_between(name, dep):
                if not edge.published:
                    continue
                new_req = retarget_requirement(edge.requirement, version)
                if new_req != edge.requirement:
                    mutations.append(
                        Mutation(
                            manifest=manifest,
                            field=edge.field,
                            old=edge.requirement,
                            new=new_req,
                        )
                    )
    return mutations


def group_by_manifest(mutations: Iterable[Mutation]) -> dict[str, list[Mutation]]:
    """Group mutations per manifest; each group must be applied as one unit."""
    grouped: dict[str, list[Mutation]] = {}
    for mutation in mutations:
        grouped.setdefault(mutation.manifest, []).append(mutation)
    return grouped
