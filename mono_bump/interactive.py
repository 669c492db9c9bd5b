"""Interactive selection of a bump request.

Only gathers answers; the resulting BumpRequest goes through the same
planning code as a non-interactive ``bump``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import click

from .bump import default_kind_for
from .graph import WorkspaceGraph
from .models import BumpKind, BumpRequest


def select_bump_request(
    graph: WorkspaceGraph,
    *,
    package: str | None = None,
    kind: BumpKind | None = None,
    breaking: bool = False,
    force_dependents: bool = False,
    prompt: Callable[..., Any] = click.prompt,
    confirm: Callable[..., bool] = click.confirm,
) -> BumpRequest:
    """Ask which package to bump, by how much, and whether to force dependents.

    Args:
        graph: Workspace to choose from.
        package: Skip the package question if already known.
        kind, breaking, force_dependents: Defaults for the matching questions,
            usually taken from command-line flags.
        prompt: Prompt function (click.prompt signature), replaceable in tests.
        confirm: Confirm function (click.confirm signature).
    """
    names = graph.names
    if package is None:
        for i, name in enumerate(names, start=1):
            info = graph[name]
            private = "" if info.publishable else " [private]"
            click.echo(f"  {i:>3}. {name} {info.version}{private}")
        choice = prompt(
            "Package to bump",
            type=click.Choice([*names, *(str(i) for i in range(1, len(names) + 1))]),
            show_choices=False,
        )
        package = names[int(choice) - 1] if choice.isdigit() else choice

    info = graph[package]
    breaking = confirm(f"Is this a breaking change to {package}?", default=breaking)
    choice = prompt(
        f"Bump kind for {package} {info.version}",
        type=click.Choice([k.value for k in BumpKind]),
        default=(kind or default_kind_for(info, breaking)).value,
    )
    dependents = graph.dependents(package)
    force = force_dependents
    if dependents:
        force = confirm(
            f"Also bump dependents ({', '.join(dependents)})?",
            default=force_dependents,
        )
    return BumpRequest(
        package=package,
        kind=BumpKind(choice),
        breaking=breaking,
        force_dependents=force,
    )
