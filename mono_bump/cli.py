"""CLI entry point for mono-bump."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from packaging.utils import canonicalize_name

from mono_bump.bump import default_kind_for
from mono_bump.errors import MonoBumpError
from mono_bump.interactive import select_bump_request
from mono_bump.models import BumpKind, BumpRequest
from mono_bump.pipeline import (
    check_versions,
    describe_package,
    load_workspace,
    run_bump,
    run_publish,
)


@contextmanager
def _fail_on_error() -> Iterator[None]:
    """Report mono-bump errors as a clean non-zero exit."""
    try:
        yield
    except MonoBumpError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.version_option(package_name="mono-bump")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Workspace root containing [tool.uv.workspace].",
)
@click.option(
    "--no-tags",
    is_flag=True,
    help="Ignore release tags and treat current versions as unreleased.",
)
@click.pass_context
def cli(ctx: click.Context, root: Path, no_tags: bool) -> None:
    """Version bumps and ordered publishing for uv workspaces."""
    ctx.obj = {"root": root.resolve(), "use_tags": not no_tags}


@cli.command()
@click.argument("package", required=False)
@click.option(
    "--kind",
    type=click.Choice([k.value for k in BumpKind]),
    default=None,
    help="Component to bump. Defaults to patch, or major (minor for 0.x) "
    "with --breaking.",
)
@click.option(
    "--breaking",
    is_flag=True,
    help="Breaking change: rewrite every dependent's requirement on PACKAGE.",
)
@click.option(
    "-D",
    "--force-dependents",
    is_flag=True,
    help="Also bump every package that depends on PACKAGE, transitively.",
)
@click.option(
    "-i",
    "--interactive",
    is_flag=True,
    help="Pick package and bump kind interactively.",
)
@click.option("--dry-run", is_flag=True, help="Show the plan without writing files.")
@click.pass_obj
def bump(
    obj: dict,
    package: str | None,
    kind: str | None,
    breaking: bool,
    force_dependents: bool,
    interactive: bool,
    dry_run: bool,
) -> None:
    """Bump PACKAGE and update the packages that depend on it."""
    with _fail_on_error():
        _, graph = load_workspace(obj["root"], use_tags=obj["use_tags"])
        name = canonicalize_name(package) if package else None

        if interactive:
            request = select_bump_request(
                graph,
                package=name,
                kind=BumpKind(kind) if kind else None,
                breaking=breaking,
                force_dependents=force_dependents,
            )
        elif name is None:
            raise click.UsageError("Missing argument 'PACKAGE' (or use -i).")
        else:
            info = graph[name]
            request = BumpRequest(
                package=name,
                kind=BumpKind(kind) if kind else default_kind_for(info, breaking),
                breaking=breaking,
                force_dependents=force_dependents,
            )

        plan = run_bump(obj["root"], graph, request, dry_run=dry_run)

    if plan.is_empty():
        return
    click.echo()
    verb = "Would bump" if dry_run else "Bumped"
    for name, change in plan.bumps().items():
        click.secho(f"✓ {verb} {name}: {change.old} → {change.new}", fg="green")


@cli.command()
@click.argument("packages", nargs=-1)
@click.option(
    "--allow-only-deps",
    is_flag=True,
    help="Publish the dependencies of PACKAGES but not PACKAGES themselves.",
)
@click.option(
    "--only",
    is_flag=True,
    help="Publish exactly PACKAGES, without their dependencies (to resume).",
)
@click.option("--dry-run", is_flag=True, help="Show the publish order only.")
@click.pass_obj
def publish(
    obj: dict,
    packages: tuple[str, ...],
    allow_only_deps: bool,
    only: bool,
    dry_run: bool,
) -> None:
    """Publish PACKAGES (default: all) in dependency order."""
    if only and not packages:
        raise click.UsageError("--only needs at least one PACKAGE.")

    with _fail_on_error():
        settings, graph = load_workspace(obj["root"], use_tags=obj["use_tags"])
        targets = [canonicalize_name(p) for p in packages] or None
        result = run_publish(
            obj["root"],
            settings,
            graph,
            targets,
            allow_only_deps=allow_only_deps,
            only=only,
            dry_run=dry_run,
        )

    for name in result.published:
        click.secho(f"✓ Published {name} {graph[name].version}", fg="green")


@cli.command()
@click.pass_obj
def check(obj: dict) -> None:
    """Verify that every package changed since its release was bumped."""
    with _fail_on_error():
        settings, graph = load_workspace(obj["root"], use_tags=True)
        problems = check_versions(obj["root"], settings, graph)

    if problems:
        raise click.ClickException(
            f"{len(problems)} package(s) need a version bump:\n"
            + "\n".join(f"  - {p}" for p in problems)
        )
    click.secho("✓ All changed packages have been bumped", fg="green")


@cli.command(name="list")
@click.pass_obj
def list_packages(obj: dict) -> None:
    """List workspace packages, dependencies first."""
    with _fail_on_error():
        _, graph = load_workspace(obj["root"], use_tags=obj["use_tags"])
        order = graph.topo_order(graph.names)

    click.echo()
    for name in order:
        click.echo(describe_package(graph, name))
